"""
Business errors raised by the scheduling and booking services.

Every error carries a machine-readable ``kind`` (the client branches on it to
steer the patient to another slot or date) and the HTTP status it maps to.
They subclass ValueError so plain validation helpers can raise them too.
"""

from typing import Optional


class SchedulingError(ValueError):
    """Base class for scheduling/booking business errors."""

    kind = "SchedulingError"
    status_code = 400
    default_message = "Scheduling request rejected"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.message, "type": self.kind}


# ===== Schedule-creation input errors =====

class InvalidTimeFormat(SchedulingError):
    kind = "InvalidTimeFormat"
    default_message = "Invalid time format. Please use HH:MM format"


class InvalidDate(SchedulingError):
    kind = "InvalidDate"
    default_message = "Invalid date format. Expected YYYY-MM-DD"


class InvalidWindow(SchedulingError):
    kind = "InvalidWindow"
    default_message = "End time must be after start time"


class InvalidSlotCount(SchedulingError):
    kind = "InvalidSlotCount"
    default_message = "Total slots must be between 1 and 50"


class SlotTooShort(SchedulingError):
    kind = "SlotTooShort"
    default_message = "Slots must be at least 10 minutes long"

    def __init__(self, message: Optional[str] = None, max_total_slots: Optional[int] = None):
        self.max_total_slots = max_total_slots
        super().__init__(message)


class PastDateError(SchedulingError):
    kind = "PastDateError"
    default_message = "Cannot use a date in the past"


class ScheduleHasBookings(SchedulingError):
    kind = "ScheduleHasBookings"
    status_code = 409
    default_message = "Schedule has booked slots that would be lost"


# ===== Booking preconditions =====

class DoctorNotFound(SchedulingError):
    kind = "DoctorNotFound"
    status_code = 404
    default_message = "Doctor not found"


class NotADoctor(SchedulingError):
    kind = "NotADoctor"
    default_message = "User is not a doctor"


class DoctorOffline(SchedulingError):
    kind = "DoctorOffline"
    default_message = (
        "Doctor is not available for same-day appointments while offline. "
        "Please book for a future date or try again when the doctor is online."
    )


class NoScheduleForDate(SchedulingError):
    kind = "NoScheduleForDate"
    default_message = "Doctor has not set up a schedule for this date yet"


# ===== Slot matching =====

class SlotNotFound(SchedulingError):
    kind = "SlotNotFound"
    default_message = "Requested time slot is not available or does not exist in the schedule"


class SlotAlreadyBooked(SchedulingError):
    kind = "SlotAlreadyBooked"
    default_message = (
        "This time slot has already been booked by another patient. "
        "Please select a different time slot."
    )


class SlotExpired(SchedulingError):
    kind = "SlotExpired"
    default_message = "This time slot has already started. Please select a later time slot."


# ===== Lifecycle transitions =====

class InvalidStatus(SchedulingError):
    kind = "InvalidStatus"
    default_message = "Invalid status"


class NotFound(SchedulingError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class Forbidden(SchedulingError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Not authorized to access this appointment"
