# Package initialization
# Import all models to ensure relationships are properly established
from .user import User
from .doctor_profile import DoctorProfile
from .schedule import Schedule, ScheduleSlot
from .appointment import Appointment, AppointmentReschedule
from .notification import Notification

__all__ = [
    "User",
    "DoctorProfile",
    "Schedule",
    "ScheduleSlot",
    "Appointment",
    "AppointmentReschedule",
    "Notification",
]
