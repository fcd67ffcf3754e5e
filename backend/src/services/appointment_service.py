"""
Appointment service for the appointment lifecycle.

Status updates, reschedules and cancellations of existing appointments, plus
the patient/doctor appointment queries. Every transition that changes which
slot an appointment holds (cancel, reschedule, completion) updates the
appointment and the slot in the same transaction, and slot writes are
conditional on the slot still belonging to this appointment.
"""

import logging
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import (
    DoctorOffline, Forbidden, InvalidStatus, InvalidTimeFormat, NoScheduleForDate,
    NotFound, PastDateError, SlotAlreadyBooked
)
from models import Appointment, AppointmentReschedule
from models.appointment import APPOINTMENT_STATUSES
from services.booking_service import BookingService
from services.doctor_service import DoctorService
from services.schedule_service import ScheduleService
from utils.appointment_queries import filter_upcoming_appointments, order_chronologically, with_participants
from utils.datetime_utils import clinic_now, clinic_today, minutes_since_midnight, to_calendar_date

logger = logging.getLogger(__name__)

# Allowed status transitions; statuses missing from the table are terminal
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    'scheduled': frozenset({'confirmed', 'cancelled', 'completed', 'no-show', 'rescheduled'}),
    'confirmed': frozenset({'completed', 'cancelled', 'no-show'}),
    'rescheduled': frozenset({'confirmed', 'cancelled', 'completed', 'no-show', 'rescheduled'}),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


class AppointmentService:
    """
    Service class for appointment operations.

    Actor checks live here: only the appointment's own patient or doctor may
    read or change it.
    """

    @staticmethod
    def check_transition(current: str, new: str) -> None:
        if not can_transition(current, new):
            raise InvalidStatus(f"Cannot change appointment status from '{current}' to '{new}'")

    @staticmethod
    def get_appointment_for_actor(
        db: Session,
        appointment_id: int,
        actor_id: int,
        for_update: bool = False,
    ) -> Appointment:
        """
        Load an appointment the actor participates in.

        Raises:
            NotFound: No such appointment
            Forbidden: Actor is neither its patient nor its doctor
        """
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if for_update:
            query = query.with_for_update()
        appointment = query.first()
        if appointment is None:
            raise NotFound("Appointment not found")
        if actor_id not in (appointment.patient_id, appointment.doctor_id):
            logger.warning(f"User {actor_id} denied access to appointment {appointment_id}")
            raise Forbidden()
        return appointment

    @staticmethod
    def update_status(
        db: Session,
        appointment_id: int,
        new_status: str,
        actor_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move an appointment to a new status.

        'cancelled' is delegated to cancel() so the slot is released;
        'rescheduled' is only reachable through reschedule(). Completing an
        appointment marks its slot completed; a no-show leaves the slot as is.

        Raises:
            InvalidStatus: Unknown status or a transition the lifecycle forbids
            NotFound, Forbidden: See get_appointment_for_actor
        """
        if new_status not in APPOINTMENT_STATUSES:
            raise InvalidStatus(f"Invalid status: {new_status}")

        if new_status == 'cancelled':
            return AppointmentService.cancel(db, appointment_id, actor_id, reason=reason, now=now)
        if new_status == 'rescheduled':
            raise InvalidStatus("Use the reschedule operation to move an appointment to a new time")

        appointment = AppointmentService.get_appointment_for_actor(db, appointment_id, actor_id, for_update=True)
        old_status = appointment.status
        AppointmentService.check_transition(old_status, new_status)

        if new_status == 'completed':
            ScheduleService.complete_slot(db, appointment.slot_id, appointment.id)

        appointment.status = new_status
        db.commit()
        db.refresh(appointment)

        logger.info(f"Appointment {appointment_id} status {old_status} -> {new_status} by user {actor_id}")
        return appointment

    @staticmethod
    def cancel(
        db: Session,
        appointment_id: int,
        actor_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Cancel an appointment and give its slot back.

        The slot is released only if it is still booked by this appointment.
        The record itself is kept; cancellation is a status.

        Raises:
            InvalidStatus: The appointment is already terminal
            NotFound, Forbidden: See get_appointment_for_actor
        """
        appointment = AppointmentService.get_appointment_for_actor(db, appointment_id, actor_id, for_update=True)
        AppointmentService.check_transition(appointment.status, 'cancelled')

        released = ScheduleService.release_slot(db, appointment.slot_id, appointment.id)

        appointment.status = 'cancelled'
        appointment.cancellation_reason = reason.strip() if reason else None
        appointment.cancelled_by = 'patient' if actor_id == appointment.patient_id else 'doctor'
        appointment.cancelled_at = now or clinic_now()
        db.commit()
        db.refresh(appointment)

        logger.info(
            f"Appointment {appointment_id} cancelled by {appointment.cancelled_by} {actor_id}"
            f"{', slot released' if released else ''}"
        )
        return appointment

    @staticmethod
    def reschedule(
        db: Session,
        appointment_id: int,
        new_date: Union[str, date, datetime],
        new_time: Optional[str],
        actor_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move an appointment to another slot.

        The target is validated like a booking. Then, in one transaction, the
        old slot is released (if still ours), a history entry is appended,
        the appointment moves to the new date/time with status 'rescheduled',
        and the target slot is claimed conditionally. Losing the claim rolls
        everything back, so the appointment keeps its original slot.

        Raises:
            InvalidTimeFormat: new_time missing or malformed
            InvalidStatus: The appointment cannot be rescheduled from its status
            PastDateError, DoctorOffline, NoScheduleForDate, SlotNotFound,
            SlotAlreadyBooked, SlotExpired: Target slot not bookable
            NotFound, Forbidden: See get_appointment_for_actor
        """
        if not new_time or not new_time.strip():
            raise InvalidTimeFormat("New time is required to reschedule an appointment")

        appointment = AppointmentService.get_appointment_for_actor(db, appointment_id, actor_id, for_update=True)
        AppointmentService.check_transition(appointment.status, 'rescheduled')

        calendar_day = to_calendar_date(new_date)
        today = clinic_today(now)
        if calendar_day < today:
            raise PastDateError("Cannot reschedule to a past date")
        is_today = calendar_day == today

        doctor = DoctorService.get_doctor(db, appointment.doctor_id)
        if is_today and not DoctorService.is_online(doctor):
            raise DoctorOffline()

        schedule = ScheduleService.get_schedule(db, appointment.doctor_id, calendar_day, active_only=True)
        if schedule is None:
            raise NoScheduleForDate()

        start_time = BookingService.requested_start(new_time)
        if calendar_day == appointment.date and start_time == appointment.time:
            raise ValueError("The appointment is already booked for this date and time")

        now_minutes = minutes_since_midnight(now) if is_today else None
        target = BookingService.locate_slot(schedule, start_time, now_minutes)

        old_date = appointment.date
        old_time = appointment.time_slot or appointment.time
        changed_at = now or clinic_now()

        try:
            ScheduleService.release_slot(db, appointment.slot_id, appointment.id)

            db.add(AppointmentReschedule(
                appointment_id=appointment.id,
                old_date=old_date,
                old_time=old_time,
                new_date=calendar_day,
                new_time=target.time_slot,
                reason=reason.strip() if reason else None,
                rescheduled_by=actor_id,
                rescheduled_at=changed_at,
            ))

            appointment.date = calendar_day
            appointment.time = target.start_time
            appointment.time_slot = target.time_slot
            appointment.duration = target.duration
            appointment.schedule_id = schedule.id
            appointment.slot_id = target.id
            appointment.status = 'rescheduled'
            db.flush()

            claimed = ScheduleService.claim_slot(
                db, target.id, appointment.patient_id, appointment.id, booking_time=changed_at
            )
        except IntegrityError as e:
            logger.warning(f"Reschedule of appointment {appointment_id} hit a live booking: {e}")
            db.rollback()
            raise SlotAlreadyBooked() from e

        if not claimed:
            db.rollback()
            raise SlotAlreadyBooked()

        db.commit()
        db.refresh(appointment)
        db.expire(target)

        logger.info(
            f"Appointment {appointment_id} rescheduled by user {actor_id}: "
            f"{old_date} {old_time} -> {calendar_day} {appointment.time_slot}"
        )
        return appointment

    # ===== Queries =====

    @staticmethod
    def list_for_patient(
        db: Session,
        patient_id: int,
        status: Optional[str] = None,
        upcoming: bool = False,
        now: Optional[datetime] = None,
    ) -> List[Appointment]:
        """A patient's own appointments, optionally by status and/or from today on."""
        query = with_participants(db.query(Appointment)).filter(Appointment.patient_id == patient_id)
        if status:
            if status not in APPOINTMENT_STATUSES:
                raise InvalidStatus(f"Invalid status: {status}")
            query = query.filter(Appointment.status == status)
        if upcoming:
            query = filter_upcoming_appointments(query, now)
        return order_chronologically(query).all()

    @staticmethod
    def list_for_doctor(
        db: Session,
        doctor_id: int,
        on_date: Optional[Union[str, date, datetime]] = None,
        status: Optional[str] = None,
    ) -> List[Appointment]:
        """A doctor's appointments, optionally for one day and/or one status."""
        query = with_participants(db.query(Appointment)).filter(Appointment.doctor_id == doctor_id)
        if on_date is not None:
            query = query.filter(Appointment.date == to_calendar_date(on_date))
        if status:
            if status not in APPOINTMENT_STATUSES:
                raise InvalidStatus(f"Invalid status: {status}")
            query = query.filter(Appointment.status == status)
        return order_chronologically(query).all()
