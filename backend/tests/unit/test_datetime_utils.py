"""
Unit tests for clinic clock and schedule date helpers.
"""

from datetime import date, datetime, timezone

import pytest

from core.errors import InvalidDate, InvalidTimeFormat
from utils.datetime_utils import (
    CLINIC_TZ, clinic_today, ensure_clinic_tz, minutes_since_midnight, normalize_hhmm,
    normalize_schedule_date, parse_date_string, parse_hhmm, schedule_day_range, to_calendar_date
)


class TestScheduleDates:
    """Test the canonical stored instant for schedule days."""

    def test_canonical_instant_is_noon(self):
        assert normalize_schedule_date("2030-01-15") == datetime(2030, 1, 15, 12, 0)
        assert normalize_schedule_date(date(2030, 1, 15)) == datetime(2030, 1, 15, 12, 0)

    def test_same_day_from_any_input(self):
        late_evening = datetime(2030, 1, 15, 23, 45, tzinfo=CLINIC_TZ)
        early_morning = datetime(2030, 1, 15, 0, 5, tzinfo=CLINIC_TZ)

        assert normalize_schedule_date(late_evening) == normalize_schedule_date(early_morning)

    def test_aware_datetime_uses_clinic_calendar(self):
        instant = datetime(2030, 1, 15, 20, 0, tzinfo=timezone.utc)
        expected_day = instant.astimezone(CLINIC_TZ).date()

        assert normalize_schedule_date(instant).date() == expected_day

    def test_day_range_covers_legacy_and_canonical(self):
        start, end = schedule_day_range("2030-01-15")

        assert start <= datetime(2030, 1, 15, 0, 0) <= end
        assert start <= normalize_schedule_date("2030-01-15") <= end
        assert not start <= datetime(2030, 1, 16, 0, 0) <= end
        assert not start <= datetime(2030, 1, 14, 23, 59) <= end


class TestDateParsing:
    """Test request date parsing."""

    @pytest.mark.parametrize("value, expected", [
        ("2030-01-15", date(2030, 1, 15)),
        ("2030-1-5", date(2030, 1, 5)),
        ("2030/01/15", date(2030, 1, 15)),
    ])
    def test_parse_date_string(self, value, expected):
        assert parse_date_string(value) == expected

    @pytest.mark.parametrize("value", ["", "15-01", "2030-13-01", "tomorrow"])
    def test_invalid_dates(self, value):
        with pytest.raises(InvalidDate):
            to_calendar_date(value)

    def test_date_passthrough(self):
        assert to_calendar_date(date(2030, 1, 15)) == date(2030, 1, 15)


class TestWallClock:
    """Test HH:MM helpers and the clinic clock."""

    def test_parse_hhmm(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("09:30") == 570
        assert parse_hhmm("23:59") == 1439

    @pytest.mark.parametrize("value", ["24:00", "9:7", "0930", "ab:cd", None])
    def test_parse_hhmm_rejects(self, value):
        with pytest.raises(InvalidTimeFormat):
            parse_hhmm(value)

    def test_normalize_hhmm(self):
        assert normalize_hhmm("9:05") == "09:05"
        assert normalize_hhmm(" 17:00 ") == "17:00"

    def test_minutes_since_midnight(self):
        assert minutes_since_midnight(datetime(2030, 1, 15, 10, 15, tzinfo=CLINIC_TZ)) == 615

    def test_naive_datetimes_are_clinic_time(self):
        naive = datetime(2030, 1, 15, 8, 0)
        aware = ensure_clinic_tz(naive)

        assert aware.tzinfo is not None
        assert aware.hour == 8
        assert clinic_today(naive) == date(2030, 1, 15)
