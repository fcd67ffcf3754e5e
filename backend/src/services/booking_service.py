"""
Booking engine.

Turns (doctor, date, requested time) into exactly one appointment holding
exactly one slot. Direct bookings and payment confirmations both come
through BookingService.book, so every slot claim shares one discipline:
validate everything up front, then insert the appointment and claim the
slot with a conditional update inside a single transaction. A lost claim
rolls the whole transaction back, so no orphan appointment survives.
"""

import logging
from datetime import date, datetime
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import (
    DoctorOffline, NoScheduleForDate, NotFound, PastDateError,
    SlotAlreadyBooked, SlotExpired, SlotNotFound
)
from models import Appointment, Schedule, ScheduleSlot, User
from models.appointment import APPOINTMENT_TYPES
from services.availability_service import is_slot_expired
from services.doctor_service import DoctorService
from services.schedule_service import ScheduleService
from utils.datetime_utils import clinic_now, clinic_today, minutes_since_midnight, normalize_hhmm, to_calendar_date

logger = logging.getLogger(__name__)


class BookingService:
    """Service class for slot booking."""

    @staticmethod
    def requested_start(requested_time: str) -> str:
        """
        Slot start a booking request refers to.

        Accepts "HH:MM" or a "HH:MM-HH:MM" range and returns the normalized
        start ("9:00-9:30" -> "09:00").

        Raises:
            InvalidTimeFormat: Not a time or time range
        """
        value = (requested_time or "").strip()
        if "-" in value:
            value = value.split("-", 1)[0].strip()
        return normalize_hhmm(value)

    @staticmethod
    def locate_slot(schedule: Schedule, start_time: str, now_minutes: Optional[int] = None) -> ScheduleSlot:
        """
        Find the bookable slot starting at ``start_time``.

        Args:
            schedule: Schedule whose grid to search
            start_time: Normalized "HH:MM"
            now_minutes: Clinic minutes since midnight when the schedule is
                today's, else None

        Raises:
            SlotNotFound: No slot starts at that time (or it was withdrawn)
            SlotAlreadyBooked: The slot is held by another appointment
            SlotExpired: Today's slot has already started
        """
        slot = next((s for s in schedule.slots if s.start_time == start_time), None)
        if slot is None or slot.status == 'cancelled':
            raise SlotNotFound()
        if slot.status in ('booked', 'completed'):
            raise SlotAlreadyBooked()
        if is_slot_expired(slot, now_minutes):
            raise SlotExpired()
        return slot

    @staticmethod
    def book(
        db: Session,
        doctor_id: int,
        appointment_date: Union[str, date, datetime],
        requested_time: Optional[str],
        patient_id: int,
        reason: str,
        appointment_type: str = 'consultation',
        time_slot: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = 'scheduled',
        payment_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Book one slot for a patient.

        Every precondition is checked before anything is written. The
        appointment insert and the conditional slot claim then run in one
        transaction; if the claim loses a race, or the live-appointment
        unique index rejects the insert, the transaction is rolled back and
        SlotAlreadyBooked is raised.

        Args:
            db: Database session
            doctor_id: Doctor to book with
            appointment_date: Calendar day
            requested_time: Slot start "HH:MM" or range "HH:MM-HH:MM"
            patient_id: Booking patient
            reason: Reason for the visit
            appointment_type: One of APPOINTMENT_TYPES
            time_slot: Range label; used when requested_time is empty
            notes: Free-text notes
            status: Initial status ('scheduled', or 'confirmed' for paid bookings)
            payment_id: Gateway reference for paid bookings
            now: Clock override

        Returns:
            The committed appointment, with patient and doctor loaded

        Raises:
            DoctorNotFound, NotADoctor, InvalidDate, PastDateError,
            DoctorOffline, NoScheduleForDate, InvalidTimeFormat, SlotNotFound,
            SlotAlreadyBooked, SlotExpired, NotFound (patient)
        """
        if not reason or not reason.strip():
            raise ValueError("Reason for the appointment is required")
        if appointment_type not in APPOINTMENT_TYPES:
            raise ValueError(f"Invalid appointment type: {appointment_type}")

        doctor = DoctorService.get_doctor(db, doctor_id, active_only=True)

        calendar_day = to_calendar_date(appointment_date)
        today = clinic_today(now)
        if calendar_day < today:
            raise PastDateError("Cannot book appointments for past dates")
        is_today = calendar_day == today

        if is_today and not DoctorService.is_online(doctor):
            raise DoctorOffline()

        schedule = ScheduleService.get_schedule(db, doctor_id, calendar_day, active_only=True)
        if schedule is None:
            raise NoScheduleForDate()

        start_time = BookingService.requested_start(requested_time or time_slot or "")
        now_minutes = minutes_since_midnight(now) if is_today else None
        slot = BookingService.locate_slot(schedule, start_time, now_minutes)

        patient = db.query(User).filter(User.id == patient_id).first()
        if patient is None:
            raise NotFound("Patient not found")

        appointment = Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            date=calendar_day,
            time=slot.start_time,
            time_slot=slot.time_slot,
            duration=slot.duration,
            reason=reason.strip(),
            type=appointment_type,
            notes=notes,
            status=status,
            schedule_id=schedule.id,
            slot_id=slot.id,
            payment_id=payment_id,
        )

        try:
            db.add(appointment)
            db.flush()
            claimed = ScheduleService.claim_slot(
                db, slot.id, patient_id, appointment.id, booking_time=clinic_now()
            )
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Appointment insert rejected for doctor {doctor_id} at {calendar_day} {start_time}: {e}")
            raise SlotAlreadyBooked() from e

        if not claimed:
            db.rollback()
            raise SlotAlreadyBooked()

        db.commit()
        db.refresh(appointment)
        db.expire(slot)

        logger.info(
            f"Booked appointment {appointment.id}: patient {patient_id} with doctor {doctor_id} "
            f"on {calendar_day} {slot.time_slot} (status={status})"
        )
        return appointment
