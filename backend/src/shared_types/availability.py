"""
Shared types for slot grids and availability.

SlotData is what the grid generator emits before anything is persisted;
SlotView is a stored slot annotated with its derived, read-time status.
"""

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class SlotData:
    """
    One slot of a freshly generated grid.

    Used by the grid generator and the schedule store so that grid
    validation never depends on persistence.
    """
    slot_number: int
    start_time: str  # Format: "HH:MM"
    end_time: str  # Format: "HH:MM"
    duration: int  # Minutes
    status: str = "available"

    @property
    def time_slot(self) -> str:
        return f"{self.start_time}-{self.end_time}"

    def to_dict(self) -> dict[str, str | int]:
        """Convert to dictionary format."""
        return {
            "slot_number": self.slot_number,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "status": self.status,
        }


@dataclass
class SlotView:
    """
    A persisted slot with its status as offered to patients.

    ``status`` may be 'expired', which is never stored: it is derived for
    today's unbooked slots whose start time has passed.
    """
    id: int
    slot_number: int
    start_time: str
    end_time: str
    duration: int
    status: str
    is_booked: bool
    patient_id: Optional[int] = None
    appointment_id: Optional[int] = None

    @property
    def time_slot(self) -> str:
        return f"{self.start_time}-{self.end_time}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary format, including the "HH:MM-HH:MM" label."""
        return {
            "id": self.id,
            "slot_number": self.slot_number,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "status": self.status,
            "is_booked": self.is_booked,
            "patient_id": self.patient_id,
            "appointment_id": self.appointment_id,
            "time_slot": self.time_slot,
        }
