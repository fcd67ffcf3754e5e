"""
Unit tests for slot grid generation.
"""

import pytest

from core.errors import InvalidSlotCount, InvalidTimeFormat, InvalidWindow, SlotTooShort
from services.slot_grid import generate_slot_grid, resolve_total_slots, window_minutes


class TestGenerateSlotGrid:
    """Test splitting a working window into slots."""

    def test_even_split(self):
        slots = generate_slot_grid("09:00", "12:00", 6)

        assert [s.slot_number for s in slots] == [1, 2, 3, 4, 5, 6]
        assert [s.time_slot for s in slots] == [
            "09:00-09:30", "09:30-10:00", "10:00-10:30",
            "10:30-11:00", "11:00-11:30", "11:30-12:00",
        ]
        assert all(s.duration == 30 for s in slots)
        assert all(s.status == "available" for s in slots)

    def test_slots_are_contiguous(self):
        slots = generate_slot_grid("08:15", "17:45", 19)

        for previous, current in zip(slots, slots[1:]):
            assert previous.end_time == current.start_time

    def test_remainder_is_left_unused(self):
        # 100 minutes / 3 slots = 33 minutes each, one minute of dead time
        slots = generate_slot_grid("09:00", "10:40", 3)

        assert [s.duration for s in slots] == [33, 33, 33]
        assert slots[0].start_time == "09:00"
        assert slots[-1].end_time == "10:39"

    def test_shortest_window_is_one_slot(self):
        slots = generate_slot_grid("09:00", "09:30", 1)

        assert len(slots) == 1
        assert slots[0].time_slot == "09:00-09:30"
        assert slots[0].duration == 30

    @pytest.mark.parametrize("end_time", ["09:05", "09:20", "09:29"])
    def test_window_under_thirty_minutes(self, end_time):
        with pytest.raises(InvalidWindow):
            generate_slot_grid("09:00", end_time, 1)

    def test_fifty_ten_minute_slots(self):
        slots = generate_slot_grid("09:00", "17:20", 50)

        assert len(slots) == 50
        assert slots[-1].end_time == "17:20"
        assert all(s.duration == 10 for s in slots)

    def test_single_digit_hours_are_normalized(self):
        slots = generate_slot_grid("9:00", "10:00", 2)

        assert slots[0].start_time == "09:00"
        assert slots[1].end_time == "10:00"

    @pytest.mark.parametrize("start_time, end_time", [
        ("12:00", "09:00"),
        ("09:00", "09:00"),
    ])
    def test_end_not_after_start(self, start_time, end_time):
        with pytest.raises(InvalidWindow) as exc_info:
            generate_slot_grid(start_time, end_time, 1)
        assert exc_info.value.kind == "InvalidWindow"

    @pytest.mark.parametrize("total_slots", [0, 51, -3, True, "6", 2.5])
    def test_invalid_slot_count(self, total_slots):
        with pytest.raises(InvalidSlotCount):
            generate_slot_grid("09:00", "17:00", total_slots)

    def test_slots_too_short_reports_max_count(self):
        with pytest.raises(SlotTooShort) as exc_info:
            generate_slot_grid("09:00", "10:00", 7)

        assert exc_info.value.max_total_slots == 6
        assert "at most 6 slots" in exc_info.value.message

    @pytest.mark.parametrize("bad_time", ["25:00", "9:5", "noon", "", "12:60"])
    def test_malformed_time(self, bad_time):
        with pytest.raises(InvalidTimeFormat):
            generate_slot_grid(bad_time, "17:00", 4)


class TestWindowRules:
    """Test the window floor and slot count resolution."""

    def test_window_floor(self):
        assert window_minutes("09:00", "09:30") == 30
        with pytest.raises(InvalidWindow) as exc_info:
            window_minutes("09:00", "09:20")
        assert "at least 30 minutes" in exc_info.value.message

    def test_explicit_count_wins(self):
        assert resolve_total_slots("09:00", "12:00", total_slots=4, slot_duration=15) == 4

    def test_count_from_slot_duration(self):
        assert resolve_total_slots("09:00", "10:00", slot_duration=20) == 3
        assert resolve_total_slots("09:00", "10:00", slot_duration=45) == 1
        # Longer than the window still yields one slot
        assert resolve_total_slots("09:00", "10:00", slot_duration=90) == 1

    def test_slot_duration_below_minimum(self):
        with pytest.raises(SlotTooShort) as exc_info:
            resolve_total_slots("09:00", "10:00", slot_duration=5)
        assert exc_info.value.max_total_slots == 6

    def test_default_count(self):
        assert resolve_total_slots("09:00", "12:00") == 6
