"""
Utility functions for consistent appointment queries.

This module contains reusable query functions so that list endpoints apply
the same "upcoming" and ordering rules everywhere.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Query, selectinload

from models import Appointment, User
from utils.datetime_utils import clinic_today


def filter_upcoming_appointments(
    query: Query[Appointment], now: Optional[datetime] = None
) -> Query[Appointment]:
    """
    Keep appointments dated today or later on the clinic calendar.

    Args:
        query: Base query for Appointment
        now: Clock override

    Returns:
        Filtered query
    """
    return query.filter(Appointment.date >= clinic_today(now))


def order_chronologically(query: Query[Appointment]) -> Query[Appointment]:
    """Sort by appointment date, then slot start."""
    return query.order_by(Appointment.date.asc(), Appointment.time.asc(), Appointment.id.asc())


def with_participants(query: Query[Appointment]) -> Query[Appointment]:
    """Eager-load the patient and doctor (with profile) for response building."""
    return query.options(
        selectinload(Appointment.patient),
        selectinload(Appointment.doctor).selectinload(User.doctor_profile),
    )
