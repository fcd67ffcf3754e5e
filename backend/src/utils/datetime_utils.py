"""
Datetime utilities for consistent timezone handling across the application.

All business logic ("today", "now", slot expiry) runs on the clinic's wall
clock, configured through CLINIC_TIMEZONE. Schedule days are persisted as a
single canonical instant per calendar day; see normalize_schedule_date().
"""

import logging
import re
from datetime import datetime, timedelta, date
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

from core.config import CLINIC_TIMEZONE
from core.constants import CANONICAL_SCHEDULE_HOUR_UTC
from core.errors import InvalidDate, InvalidTimeFormat

logger = logging.getLogger(__name__)

CLINIC_TZ = ZoneInfo(CLINIC_TIMEZONE)

# 24-hour wall clock, single-digit hours accepted ("9:05")
TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def clinic_now() -> datetime:
    """
    Get the current datetime on the clinic's wall clock.

    Returns:
        Timezone-aware datetime in the clinic timezone
    """
    return datetime.now(CLINIC_TZ)


def ensure_clinic_tz(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in the clinic timezone.

    Naive datetimes are assumed to already be clinic wall-clock time.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=CLINIC_TZ)
    return dt.astimezone(CLINIC_TZ)


def clinic_today(now: Optional[datetime] = None) -> date:
    """Calendar day of ``now`` (default: current time) on the clinic clock."""
    current = ensure_clinic_tz(now) if now is not None else clinic_now()
    assert current is not None
    return current.date()


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2022-01-01", "2022-1-1")
    - YYYY/MM/DD (e.g., "2022/01/01", "2022/1/1")

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    year = parts[0].zfill(4)
    month = parts[1].zfill(2)
    day = parts[2].zfill(2)

    normalized = f"{year}-{month}-{day}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def to_calendar_date(value: Union[str, date, datetime]) -> date:
    """
    Coerce a request value into a calendar day.

    Datetimes are read on the clinic clock, never by their UTC date.

    Raises:
        InvalidDate: If a string cannot be parsed
    """
    if isinstance(value, datetime):
        aware = ensure_clinic_tz(value)
        assert aware is not None
        return aware.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date_string(value)
    except ValueError as e:
        raise InvalidDate(f"Invalid date format. Expected YYYY-MM-DD: {value}") from e


def normalize_schedule_date(day: Union[str, date, datetime]) -> datetime:
    """
    Map a calendar day to the single instant stored for it.

    Every write path goes through here so one day never ends up stored under
    two different instants. Returned value is naive UTC.
    """
    calendar_day = to_calendar_date(day)
    return datetime(
        calendar_day.year, calendar_day.month, calendar_day.day,
        CANONICAL_SCHEDULE_HOUR_UTC, 0, 0
    )


def schedule_day_range(day: Union[str, date, datetime]) -> Tuple[datetime, datetime]:
    """
    Inclusive [start-of-day, end-of-day] bounds (naive UTC) for a calendar day.

    Read paths match on this range instead of equality so records stored at
    midnight UTC are still found alongside canonical noon records.
    """
    calendar_day = to_calendar_date(day)
    start = datetime(calendar_day.year, calendar_day.month, calendar_day.day)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


def parse_hhmm(value: str) -> int:
    """
    Parse an "HH:MM" wall-clock string into minutes since midnight.

    Raises:
        InvalidTimeFormat: If the string is not a 24-hour HH:MM time
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise InvalidTimeFormat(f"Invalid time format '{value}'. Please use HH:MM format")
    hours, minutes = value.strip().split(':')
    return int(hours) * 60 + int(minutes)


def format_minutes(total_minutes: int) -> str:
    """Format minutes since midnight as zero-padded "HH:MM"."""
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def normalize_hhmm(value: str) -> str:
    """Canonical zero-padded form of an "HH:MM" string ("9:05" -> "09:05")."""
    return format_minutes(parse_hhmm(value))


def minutes_since_midnight(now: Optional[datetime] = None) -> int:
    """Clinic wall-clock minutes since midnight for ``now`` (default: current time)."""
    current = ensure_clinic_tz(now) if now is not None else clinic_now()
    assert current is not None
    return current.hour * 60 + current.minute
