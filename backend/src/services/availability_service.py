"""
Availability service.

Decides what is actually offerable to a patient: which doctors can be
booked today or on a future day, and the read-time status of every slot in
their grid. Today's answers depend on the clinic wall clock (schedule
window, break window, slot expiry) and the doctor's online toggle; future
days depend only on schedule existence and booked/unbooked slots.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session, selectinload

from core.errors import NoScheduleForDate, PastDateError
from models import Schedule, ScheduleSlot, User
from services.doctor_service import DoctorService
from services.schedule_service import ScheduleService
from shared_types import SlotView
from utils.datetime_utils import (
    clinic_today, minutes_since_midnight, parse_hhmm, schedule_day_range, to_calendar_date
)

logger = logging.getLogger(__name__)


def in_half_open_window(now_minutes: int, start_time: str, end_time: str) -> bool:
    """True if ``start <= now < end``, all in minutes since midnight."""
    return parse_hhmm(start_time) <= now_minutes < parse_hhmm(end_time)


def is_slot_expired(slot: ScheduleSlot, now_minutes: Optional[int]) -> bool:
    """
    An unbooked slot of today's grid whose start time has been reached.

    ``now_minutes`` is None for any day other than today, where nothing expires.
    """
    if now_minutes is None or slot.status != 'available':
        return False
    return parse_hhmm(slot.start_time) <= now_minutes


def slot_view(slot: ScheduleSlot, now_minutes: Optional[int] = None) -> SlotView:
    """Annotate a stored slot with its read-time status."""
    status = 'expired' if is_slot_expired(slot, now_minutes) else slot.status
    return SlotView(
        id=slot.id,
        slot_number=slot.slot_number,
        start_time=slot.start_time,
        end_time=slot.end_time,
        duration=slot.duration,
        status=status,
        is_booked=slot.is_booked,
        patient_id=slot.patient_id,
        appointment_id=slot.appointment_id,
    )


class AvailabilityService:
    """
    Service class for availability operations.

    All methods take an optional ``now`` so callers and tests can pin the
    clinic clock.
    """

    @staticmethod
    def annotate_schedule(
        schedule: Schedule,
        now: Optional[datetime] = None,
        include_patients: bool = True,
    ) -> Dict[str, Any]:
        """
        Build the read model of a schedule: slots with derived status plus counts.

        ``schedule_status`` rolls the grid up: 'available' while anything can
        still be booked; on today's grid 'ended' once the window is over or
        every unbooked slot has expired; otherwise 'no_slots'.

        Args:
            schedule: Schedule with its slots
            now: Clock override
            include_patients: False hides patient/appointment ids (public views)
        """
        is_today = schedule.calendar_date == clinic_today(now)
        now_minutes = minutes_since_midnight(now) if is_today else None

        views = [slot_view(slot, now_minutes) for slot in schedule.slots]
        if not include_patients:
            for view in views:
                view.patient_id = None
                view.appointment_id = None

        available = sum(1 for view in views if view.status == 'available')
        booked = sum(1 for view in views if view.status == 'booked')
        expired = sum(1 for view in views if view.status == 'expired')

        if available > 0:
            schedule_status = 'available'
        elif now_minutes is not None and (
            now_minutes >= parse_hhmm(schedule.end_time) or expired > 0
        ):
            schedule_status = 'ended'
        else:
            schedule_status = 'no_slots'

        return {
            "id": schedule.id,
            "doctor_id": schedule.doctor_id,
            "date": schedule.calendar_date.isoformat(),
            "start_time": schedule.start_time,
            "end_time": schedule.end_time,
            "total_slots": schedule.total_slots,
            "slot_duration": schedule.slot_duration,
            "is_active": schedule.is_active,
            "is_today": is_today,
            "slots": [view.to_dict() for view in views],
            "available_time_slots": [view.time_slot for view in views if view.status == 'available'],
            "available_slots_count": available,
            "booked_slots_count": booked,
            "expired_slots_count": expired,
            "schedule_status": schedule_status,
        }

    @staticmethod
    def is_offerable_now(doctor: User, schedule: Schedule, now: Optional[datetime] = None) -> bool:
        """
        Whether a doctor can be offered for same-day booking right now.

        Requires an active schedule, the doctor online, the clock inside
        [start, end) of the schedule and outside the break [start, end).
        """
        if not schedule.is_active or not DoctorService.is_online(doctor):
            return False

        now_minutes = minutes_since_midnight(now)
        if not in_half_open_window(now_minutes, schedule.start_time, schedule.end_time):
            return False

        profile = doctor.doctor_profile
        if profile is not None and profile.break_enabled and profile.break_start and profile.break_end:
            if in_half_open_window(now_minutes, profile.break_start, profile.break_end):
                return False
        return True

    @staticmethod
    def list_available_doctors(
        db: Session,
        for_date: Optional[Union[str, date, datetime]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        List doctors offerable on a day (default: today).

        Today: only doctors that are online, inside their working window and
        not on break. Future days: every active doctor with an active
        schedule, regardless of presence.

        Returns:
            Dict with date, is_today and doctors (each a doctor summary plus
            its annotated schedule)

        Raises:
            InvalidDate: Unparseable date
            PastDateError: The day is before today
        """
        today = clinic_today(now)
        target_day = to_calendar_date(for_date) if for_date is not None else today
        if target_day < today:
            raise PastDateError("Cannot list availability for past dates")
        is_today = target_day == today

        day_start, day_end = schedule_day_range(target_day)
        schedules = db.query(Schedule).join(User, Schedule.doctor_id == User.id).filter(
            Schedule.date >= day_start,
            Schedule.date <= day_end,
            Schedule.is_active == True,  # noqa: E712
            User.role == 'doctor',
            User.is_active == True,  # noqa: E712
        ).options(
            selectinload(Schedule.slots),
            selectinload(Schedule.doctor).selectinload(User.doctor_profile),
        ).order_by(Schedule.doctor_id, Schedule.date.desc()).all()

        doctors: List[Dict[str, Any]] = []
        seen_doctor_ids = set()
        for schedule in schedules:
            # Legacy midnight rows can coexist with a canonical row; keep the canonical one
            if schedule.doctor_id in seen_doctor_ids:
                continue
            seen_doctor_ids.add(schedule.doctor_id)

            doctor = schedule.doctor
            if is_today and not AvailabilityService.is_offerable_now(doctor, schedule, now):
                continue

            entry = DoctorService.summarize(doctor)
            entry["schedule"] = AvailabilityService.annotate_schedule(schedule, now, include_patients=False)
            doctors.append(entry)

        logger.info(
            f"{len(doctors)} doctor(s) offerable on {target_day} "
            f"({'today' if is_today else 'future'}, {len(seen_doctor_ids)} with schedules)"
        )
        return {
            "date": target_day.isoformat(),
            "is_today": is_today,
            "doctors": doctors,
        }

    @staticmethod
    def get_doctor_schedule_view(
        db: Session,
        doctor_id: int,
        for_date: Optional[Union[str, date, datetime]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        One doctor's grid for a day, as shown to a patient picking a slot.

        Raises:
            DoctorNotFound, NotADoctor: Unknown doctor id
            NoScheduleForDate: No active schedule that day
        """
        doctor = DoctorService.get_doctor(db, doctor_id)
        target_day = to_calendar_date(for_date) if for_date is not None else clinic_today(now)

        schedule = ScheduleService.get_schedule(db, doctor_id, target_day, active_only=True)
        if schedule is None:
            raise NoScheduleForDate()

        annotated = AvailabilityService.annotate_schedule(schedule, now, include_patients=False)
        result = DoctorService.summarize(doctor)
        result["schedule"] = annotated
        result["offerable_now"] = (
            AvailabilityService.is_offerable_now(doctor, schedule, now) if annotated["is_today"] else None
        )
        return result
