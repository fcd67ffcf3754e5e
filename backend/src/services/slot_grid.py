"""
Slot grid generation.

Expands a doctor's working window into a fixed grid of equally long,
contiguous slots. Everything here is pure: no database access, no clock.
"""

import logging
from typing import List, Optional

from core.constants import (
    MIN_WINDOW_MINUTES, MIN_SLOT_MINUTES, MIN_TOTAL_SLOTS, MAX_TOTAL_SLOTS, DEFAULT_TOTAL_SLOTS
)
from core.errors import InvalidWindow, InvalidSlotCount, SlotTooShort
from shared_types import SlotData
from utils.datetime_utils import parse_hhmm, format_minutes

logger = logging.getLogger(__name__)


def window_minutes(start_time: str, end_time: str) -> int:
    """
    Validate a working window and return its length in minutes.

    Raises:
        InvalidTimeFormat: If either bound is not HH:MM
        InvalidWindow: If the window is empty, inverted or shorter than 30 minutes
    """
    start_minutes = parse_hhmm(start_time)
    end_minutes = parse_hhmm(end_time)
    total_minutes = end_minutes - start_minutes

    if total_minutes <= 0:
        raise InvalidWindow("End time must be after start time")
    if total_minutes < MIN_WINDOW_MINUTES:
        raise InvalidWindow(f"Schedule must be at least {MIN_WINDOW_MINUTES} minutes long")
    return total_minutes


def resolve_total_slots(
    start_time: str,
    end_time: str,
    total_slots: Optional[int] = None,
    slot_duration: Optional[int] = None,
) -> int:
    """
    Work out how many slots a save request asks for.

    An explicit ``total_slots`` wins; otherwise a requested ``slot_duration``
    is turned into the number of whole slots that fit the window; otherwise
    the default count is used.
    """
    if total_slots is not None:
        return total_slots
    if slot_duration is not None:
        if slot_duration < MIN_SLOT_MINUTES:
            raise SlotTooShort(
                f"Slot duration must be at least {MIN_SLOT_MINUTES} minutes",
                max_total_slots=window_minutes(start_time, end_time) // MIN_SLOT_MINUTES,
            )
        return max(window_minutes(start_time, end_time) // slot_duration, MIN_TOTAL_SLOTS)
    return DEFAULT_TOTAL_SLOTS


def generate_slot_grid(start_time: str, end_time: str, total_slots: int) -> List[SlotData]:
    """
    Split [start_time, end_time) into ``total_slots`` contiguous slots.

    Each slot lasts floor(window / total_slots) minutes. When the window does
    not divide evenly, the remainder is left unused at the end of the window.

    Args:
        start_time: Window start, "HH:MM" 24-hour
        end_time: Window end, "HH:MM" 24-hour
        total_slots: Number of slots, 1..50

    Returns:
        Slots numbered 1..total_slots, all 'available'

    Raises:
        InvalidTimeFormat: Malformed start or end time
        InvalidWindow: End not after start, or window shorter than 30 minutes
        InvalidSlotCount: total_slots outside [1, 50]
        SlotTooShort: Resulting slots shorter than 10 minutes; carries the
            largest slot count the window supports in ``max_total_slots``
    """
    total_minutes = window_minutes(start_time, end_time)

    if (
        isinstance(total_slots, bool)
        or not isinstance(total_slots, int)
        or not MIN_TOTAL_SLOTS <= total_slots <= MAX_TOTAL_SLOTS
    ):
        raise InvalidSlotCount(
            f"Total slots must be between {MIN_TOTAL_SLOTS} and {MAX_TOTAL_SLOTS}"
        )

    slot_duration = total_minutes // total_slots
    if slot_duration < MIN_SLOT_MINUTES:
        max_total_slots = total_minutes // MIN_SLOT_MINUTES
        raise SlotTooShort(
            f"Slots would be {slot_duration} minutes long; each slot must be at least "
            f"{MIN_SLOT_MINUTES} minutes. Use at most {max_total_slots} slots for this window",
            max_total_slots=max_total_slots,
        )

    cursor = parse_hhmm(start_time)
    slots: List[SlotData] = []
    for slot_number in range(1, total_slots + 1):
        slots.append(SlotData(
            slot_number=slot_number,
            start_time=format_minutes(cursor),
            end_time=format_minutes(cursor + slot_duration),
            duration=slot_duration,
        ))
        cursor += slot_duration

    logger.debug(
        f"Generated {total_slots} slots of {slot_duration} min for {start_time}-{end_time}"
    )
    return slots
