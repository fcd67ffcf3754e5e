"""
Schedule store.

Owns the per-doctor, per-day Schedule aggregate and every write to its slot
grid: the atomic create-or-replace used by schedule saves, plus the
conditional claim/release primitives that the booking engine and the
appointment lifecycle funnel through.
"""

import logging
import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.errors import NotFound, PastDateError, ScheduleHasBookings, SchedulingError
from models import Schedule, ScheduleSlot
from services.slot_grid import generate_slot_grid, resolve_total_slots, window_minutes
from shared_types import SlotData
from utils.datetime_utils import (
    clinic_now, clinic_today, normalize_hhmm, normalize_schedule_date,
    schedule_day_range, to_calendar_date
)

logger = logging.getLogger(__name__)

DateLike = Union[str, date, datetime]


class ScheduleService:
    """Service class for schedule persistence and slot state changes."""

    # ===== Lookups =====

    @staticmethod
    def find_schedule(
        db: Session,
        doctor_id: int,
        day: DateLike,
        active_only: bool = False,
        for_update: bool = False,
    ) -> Optional[Schedule]:
        """
        Find a doctor's schedule for a calendar day.

        Matches the whole day range, so legacy rows stored at midnight UTC are
        found as well as canonical ones. If both exist the later (canonical)
        instant wins.
        """
        day_start, day_end = schedule_day_range(day)
        query = db.query(Schedule).filter(
            Schedule.doctor_id == doctor_id,
            Schedule.date >= day_start,
            Schedule.date <= day_end,
        )
        if active_only:
            query = query.filter(Schedule.is_active == True)  # noqa: E712
        query = query.order_by(Schedule.date.desc())
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_schedule(
        db: Session,
        doctor_id: int,
        day: DateLike,
        active_only: bool = True,
    ) -> Optional[Schedule]:
        """Get the schedule for (doctor, day), or None."""
        return ScheduleService.find_schedule(db, doctor_id, day, active_only=active_only)

    @staticmethod
    def list_upcoming(
        db: Session,
        doctor_id: int,
        from_date: Optional[DateLike] = None,
        now: Optional[datetime] = None,
    ) -> List[Schedule]:
        """
        List a doctor's schedules from ``from_date`` (default: today) onwards, oldest first.

        Each calendar day appears once; when a legacy midnight row and a
        canonical row share a day, the canonical one is returned.
        """
        start_day = to_calendar_date(from_date) if from_date is not None else clinic_today(now)
        range_start, _ = schedule_day_range(start_day)
        schedules = db.query(Schedule).filter(
            Schedule.doctor_id == doctor_id,
            Schedule.date >= range_start,
        ).order_by(Schedule.date.asc()).all()

        by_day: Dict[date, Schedule] = {}
        for schedule in schedules:
            # Canonical noon rows sort after midnight rows of the same day
            by_day[schedule.calendar_date] = schedule
        return list(by_day.values())

    @staticmethod
    def list_history(
        db: Session,
        doctor_id: int,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[Schedule], Dict[str, Any]]:
        """
        Page through all of a doctor's schedules, newest first.

        Returns:
            Tuple of (schedules, pagination) where pagination has
            current, pages, total, has_next and has_prev
        """
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = db.query(Schedule).filter(Schedule.doctor_id == doctor_id)
        total = query.count()
        schedules = query.order_by(Schedule.date.desc()).offset((page - 1) * limit).limit(limit).all()

        pages = math.ceil(total / limit) if total else 0
        pagination = {
            "current": page,
            "pages": pages,
            "total": total,
            "has_next": page < pages,
            "has_prev": page > 1,
        }
        return schedules, pagination

    @staticmethod
    def check_exists(db: Session, doctor_id: int, dates: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        """
        Report which of the given days already have a schedule.

        Unparseable dates are skipped.

        Returns:
            Mapping of "YYYY-MM-DD" to {id, start_time, end_time, is_active}
        """
        existing: Dict[str, Dict[str, Any]] = {}
        for raw in dates:
            if not raw or not str(raw).strip():
                continue
            try:
                calendar_day = to_calendar_date(str(raw).strip())
            except SchedulingError:
                logger.debug(f"Skipping unparseable date in existence check: {raw!r}")
                continue
            schedule = ScheduleService.find_schedule(db, doctor_id, calendar_day)
            if schedule is not None:
                existing[calendar_day.isoformat()] = {
                    "id": schedule.id,
                    "start_time": schedule.start_time,
                    "end_time": schedule.end_time,
                    "is_active": schedule.is_active,
                }
        return existing

    # ===== Writes =====

    @staticmethod
    def upsert_schedule(
        db: Session,
        doctor_id: int,
        day: DateLike,
        start_time: str,
        end_time: str,
        total_slots: Optional[int] = None,
        slot_duration: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Schedule:
        """
        Create or replace a doctor's schedule for one day.

        The day is normalized to its canonical instant. An existing schedule
        for the day (found by day range, row-locked) gets the new window and
        grid and is reactivated. If a concurrent save inserts the day first,
        the unique constraint rejects our insert and the save is retried as a
        replace of the winner's row, so a day never ends up with two schedules.

        Args:
            db: Database session
            doctor_id: Owning doctor
            day: Calendar day ("YYYY-MM-DD", date or datetime)
            start_time: Window start "HH:MM"
            end_time: Window end "HH:MM"
            total_slots: Requested slot count
            slot_duration: Requested minutes per slot, used when total_slots is omitted
            now: Clock override for tests

        Returns:
            The persisted schedule

        Raises:
            InvalidDate, PastDateError, InvalidTimeFormat, InvalidWindow,
            InvalidSlotCount, SlotTooShort: Invalid request, nothing written
            ScheduleHasBookings: Replacing the grid would drop a live booking
        """
        calendar_day = to_calendar_date(day)
        if calendar_day < clinic_today(now):
            raise PastDateError("Cannot create schedule for past dates")

        start_time = normalize_hhmm(start_time)
        end_time = normalize_hhmm(end_time)
        window_minutes(start_time, end_time)
        count = resolve_total_slots(start_time, end_time, total_slots, slot_duration)
        grid = generate_slot_grid(start_time, end_time, count)

        schedule = ScheduleService.find_schedule(db, doctor_id, calendar_day, for_update=True)
        if schedule is None:
            schedule = Schedule(
                doctor_id=doctor_id,
                date=normalize_schedule_date(calendar_day),
                start_time=start_time,
                end_time=end_time,
                total_slots=len(grid),
                slot_duration=grid[0].duration,
                is_active=True,
            )
            schedule.slots = [ScheduleService._new_slot(data) for data in grid]
            db.add(schedule)
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    f"Concurrent schedule save for doctor {doctor_id} on {calendar_day}, "
                    f"replacing the existing schedule instead"
                )
                schedule = ScheduleService.find_schedule(db, doctor_id, calendar_day, for_update=True)
                if schedule is None:
                    raise
                ScheduleService._replace_grid(db, schedule, calendar_day, start_time, end_time, grid)
        else:
            ScheduleService._replace_grid(db, schedule, calendar_day, start_time, end_time, grid)

        db.commit()
        db.refresh(schedule)
        logger.info(
            f"Saved schedule {schedule.id} for doctor {doctor_id} on {calendar_day}: "
            f"{start_time}-{end_time}, {schedule.total_slots} x {schedule.slot_duration} min"
        )
        return schedule

    @staticmethod
    def save_upcoming_bulk(
        db: Session,
        doctor_id: int,
        entries: Sequence[Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Save several days at once, reporting failures per entry.

        Each entry is saved in its own transaction; one bad entry never
        prevents the others from being saved.

        Args:
            entries: Mappings with date, start_time, end_time and optional
                total_slots / slot_duration

        Returns:
            Dict with saved_schedules, errors ({index, date, error, type}),
            success_count and error_count
        """
        saved: List[Schedule] = []
        errors: List[Dict[str, Any]] = []

        for index, entry in enumerate(entries):
            entry_date = entry.get("date")
            start_time = entry.get("start_time")
            end_time = entry.get("end_time")

            if not entry_date or not start_time or not end_time:
                errors.append({
                    "index": index,
                    "date": entry_date,
                    "error": "Date, start time, and end time are required",
                    "type": "ValidationError",
                })
                continue

            try:
                schedule = ScheduleService.upsert_schedule(
                    db,
                    doctor_id,
                    entry_date,
                    start_time,
                    end_time,
                    total_slots=entry.get("total_slots"),
                    slot_duration=entry.get("slot_duration"),
                    now=now,
                )
                saved.append(schedule)
            except SchedulingError as e:
                db.rollback()
                errors.append({"index": index, "date": entry_date, "error": e.message, "type": e.kind})

        if errors:
            logger.warning(f"Bulk schedule save for doctor {doctor_id}: {len(errors)} of {len(entries)} entries rejected")

        return {
            "saved_schedules": saved,
            "errors": errors,
            "success_count": len(saved),
            "error_count": len(errors),
        }

    @staticmethod
    def delete_schedule(db: Session, doctor_id: int, day: DateLike) -> Schedule:
        """
        Delete a doctor's schedule for a day.

        Raises:
            NotFound: No schedule for that day
            ScheduleHasBookings: The schedule still holds live bookings
        """
        schedule = ScheduleService.find_schedule(db, doctor_id, day, for_update=True)
        if schedule is None:
            raise NotFound("No schedule found for this date")
        return ScheduleService._delete(db, schedule)

    @staticmethod
    def delete_schedule_by_id(db: Session, doctor_id: int, schedule_id: int) -> Schedule:
        """Delete one of the doctor's schedules by id (same rules as delete_schedule)."""
        schedule = db.query(Schedule).filter(
            Schedule.id == schedule_id,
            Schedule.doctor_id == doctor_id,
        ).with_for_update().first()
        if schedule is None:
            raise NotFound("Schedule not found or you do not have permission to delete it")
        return ScheduleService._delete(db, schedule)

    # ===== Slot state primitives =====

    @staticmethod
    def claim_slot(
        db: Session,
        slot_id: int,
        patient_id: int,
        appointment_id: int,
        booking_time: Optional[datetime] = None,
    ) -> bool:
        """
        Claim a slot for an appointment if, and only if, it is still available.

        A single conditional UPDATE: of two concurrent claimers exactly one
        sees rowcount 1. Does not commit.

        Returns:
            True if this call claimed the slot
        """
        booking_time = booking_time or clinic_now()
        result = db.execute(
            update(ScheduleSlot)
            .where(ScheduleSlot.id == slot_id, ScheduleSlot.status == 'available')
            .values(
                status='booked',
                is_booked=True,
                patient_id=patient_id,
                appointment_id=appointment_id,
                booking_time=booking_time,
                updated_at=booking_time,
            )
            .execution_options(synchronize_session=False)
        )
        ScheduleService._expire_cached_slot(db, slot_id)
        claimed = result.rowcount == 1
        if not claimed:
            logger.warning(f"Slot {slot_id} claim lost for appointment {appointment_id}")
        return claimed

    @staticmethod
    def release_slot(db: Session, slot_id: Optional[int], appointment_id: int) -> bool:
        """
        Return a slot to 'available' if it is still booked by this appointment.

        A slot that has since been reassigned is left alone. Does not commit.
        """
        if slot_id is None:
            return False
        result = db.execute(
            update(ScheduleSlot)
            .where(
                ScheduleSlot.id == slot_id,
                ScheduleSlot.appointment_id == appointment_id,
                ScheduleSlot.status == 'booked',
            )
            .values(
                status='available',
                is_booked=False,
                patient_id=None,
                appointment_id=None,
                booking_time=None,
                updated_at=clinic_now(),
            )
            .execution_options(synchronize_session=False)
        )
        ScheduleService._expire_cached_slot(db, slot_id)
        released = result.rowcount == 1
        if not released:
            logger.info(f"Slot {slot_id} no longer held by appointment {appointment_id}, nothing to release")
        return released

    @staticmethod
    def complete_slot(db: Session, slot_id: Optional[int], appointment_id: int) -> bool:
        """Mark a slot booked by this appointment as 'completed'. Does not commit."""
        if slot_id is None:
            return False
        result = db.execute(
            update(ScheduleSlot)
            .where(
                ScheduleSlot.id == slot_id,
                ScheduleSlot.appointment_id == appointment_id,
                ScheduleSlot.status == 'booked',
            )
            .values(status='completed', is_booked=False, updated_at=clinic_now())
            .execution_options(synchronize_session=False)
        )
        ScheduleService._expire_cached_slot(db, slot_id)
        return result.rowcount == 1

    # ===== Internals =====

    @staticmethod
    def _expire_cached_slot(db: Session, slot_id: int) -> None:
        # Conditional updates bypass the identity map; drop any loaded copy
        cached = db.identity_map.get(Session.identity_key(ScheduleSlot, slot_id))
        if cached is not None:
            db.expire(cached)

    @staticmethod
    def _new_slot(data: SlotData) -> ScheduleSlot:
        return ScheduleSlot(
            slot_number=data.slot_number,
            start_time=data.start_time,
            end_time=data.end_time,
            duration=data.duration,
            status=data.status,
            is_booked=False,
        )

    @staticmethod
    def _replace_grid(
        db: Session,
        schedule: Schedule,
        calendar_day: date,
        start_time: str,
        end_time: str,
        grid: List[SlotData],
    ) -> None:
        """
        Swap a schedule's grid for a new one in place.

        Booked and completed slots whose exact time range is also in the new
        grid keep their row (and so their booking); everything else is
        replaced. A booked slot with no counterpart aborts the replace.
        """
        new_keys = {(data.start_time, data.end_time) for data in grid}
        existing = list(schedule.slots)

        stranded = [
            slot for slot in existing
            if slot.status == 'booked' and (slot.start_time, slot.end_time) not in new_keys
        ]
        if stranded:
            labels = ", ".join(slot.time_slot for slot in stranded)
            raise ScheduleHasBookings(
                f"Cannot change the schedule: booked slots {labels} are not in the new schedule. "
                f"Cancel or reschedule those appointments first"
            )

        kept: Dict[Tuple[str, str], ScheduleSlot] = {
            (slot.start_time, slot.end_time): slot
            for slot in existing
            if slot.status != 'available' and (slot.start_time, slot.end_time) in new_keys
        }
        kept_ids = {id(slot) for slot in kept.values()}

        for slot in existing:
            if id(slot) not in kept_ids:
                schedule.slots.remove(slot)

        # Park kept slots on numbers the new grid cannot use, so renumbering
        # never collides with (schedule_id, slot_number) uniqueness.
        for offset, slot in enumerate(kept.values(), start=1):
            slot.slot_number = -offset
        db.flush()

        for data in grid:
            slot = kept.get((data.start_time, data.end_time))
            if slot is not None:
                slot.slot_number = data.slot_number
                slot.duration = data.duration
            else:
                schedule.slots.append(ScheduleService._new_slot(data))
        schedule.slots.sort(key=lambda slot: slot.slot_number)

        schedule.date = normalize_schedule_date(calendar_day)
        schedule.start_time = start_time
        schedule.end_time = end_time
        schedule.total_slots = len(grid)
        schedule.slot_duration = grid[0].duration
        schedule.is_active = True
        db.flush()

        if kept:
            logger.info(f"Schedule {schedule.id}: carried {len(kept)} booked slot(s) over to the new grid")

    @staticmethod
    def _delete(db: Session, schedule: Schedule) -> Schedule:
        if schedule.booked_slots:
            labels = ", ".join(slot.time_slot for slot in schedule.booked_slots)
            raise ScheduleHasBookings(
                f"Cannot delete a schedule with booked slots ({labels}). "
                f"Cancel or reschedule those appointments first"
            )
        db.delete(schedule)
        db.commit()
        logger.info(f"Deleted schedule {schedule.id} for doctor {schedule.doctor_id} on {schedule.calendar_date}")
        return schedule
