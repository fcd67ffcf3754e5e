"""
Shared type definitions for the clinic booking backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.availability import SlotData, SlotView

__all__ = ["SlotData", "SlotView"]
