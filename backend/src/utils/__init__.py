"""
Utility modules for the clinic booking application.

This package contains shared utility functions and helpers used across
the application, including datetime utilities and appointment query helpers.
"""
