"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints.
"""

from .doctor_service import DoctorService
from .schedule_service import ScheduleService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .appointment_service import AppointmentService
from .notification_service import NotificationService
from .payment_service import PaymentService

__all__ = [
    "DoctorService",
    "ScheduleService",
    "AvailabilityService",
    "BookingService",
    "AppointmentService",
    "NotificationService",
    "PaymentService",
]
