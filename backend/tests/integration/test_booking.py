"""
Integration tests for the booking engine.

Covers every precondition failure and the races between two sessions
competing for one slot: whichever way the race is lost, exactly one
appointment holds the slot and no orphan appointment is left behind.
"""

from datetime import datetime

import pytest
from sqlalchemy import update

from core.errors import (
    DoctorNotFound, DoctorOffline, InvalidTimeFormat, NoScheduleForDate, NotADoctor,
    PastDateError, SlotAlreadyBooked, SlotExpired, SlotNotFound
)
from models import Appointment, ScheduleSlot
from services.booking_service import BookingService
from services.schedule_service import ScheduleService
from tests.factories import (
    NOW, TODAY, TOMORROW, YESTERDAY, create_doctor, create_patient, slot_at
)


@pytest.fixture
def doctor(db_session):
    return create_doctor(db_session, is_online=False)


@pytest.fixture
def patient(db_session):
    return create_patient(db_session)


@pytest.fixture
def tomorrow_schedule(db_session, doctor):
    return ScheduleService.upsert_schedule(db_session, doctor.id, TOMORROW, "09:00", "12:00", now=NOW)


def book(db, doctor, patient, start_time, day=TOMORROW, now=NOW, **kwargs):
    return BookingService.book(db, doctor.id, day, start_time, patient.id, reason="Persistent headache", now=now, **kwargs)


class TestBookingHappyPath:

    def test_future_booking_ignores_presence(self, db_session, doctor, patient, tomorrow_schedule):
        appointment = book(db_session, doctor, patient, "10:30")

        assert appointment.status == "scheduled"
        assert appointment.date == TOMORROW
        assert appointment.time == "10:30"
        assert appointment.time_slot == "10:30-11:00"
        assert appointment.duration == 30
        assert appointment.schedule_id == tomorrow_schedule.id

        slot = slot_at(tomorrow_schedule, "10:30")
        assert appointment.slot_id == slot.id
        assert slot.status == "booked"
        assert slot.is_booked is True
        assert slot.patient_id == patient.id
        assert slot.appointment_id == appointment.id

    def test_range_and_time_slot_inputs(self, db_session, doctor, patient, tomorrow_schedule):
        other = create_patient(db_session, email="second@example.com", full_name="Ravi Iyer")

        by_range = book(db_session, doctor, patient, "9:00-9:30")
        by_label = BookingService.book(
            db_session, doctor.id, TOMORROW.isoformat(), None, other.id,
            reason="Checkup", appointment_type="checkup", time_slot="11:00-11:30", now=NOW,
        )

        assert by_range.time == "09:00"
        assert by_label.time == "11:00"
        assert by_label.type == "checkup"

    def test_same_day_booking_when_online(self, db_session, patient):
        online = create_doctor(db_session, email="online@example.com", is_online=True)
        ScheduleService.upsert_schedule(db_session, online.id, TODAY, "09:00", "12:00", now=NOW)

        appointment = book(db_session, online, patient, "11:00", day=TODAY)

        assert appointment.date == TODAY


class TestBookingPreconditions:

    def test_unknown_doctor(self, db_session, patient):
        with pytest.raises(DoctorNotFound):
            BookingService.book(db_session, 987654, TOMORROW, "09:00", patient.id, reason="x", now=NOW)

    def test_not_a_doctor(self, db_session, patient):
        with pytest.raises(NotADoctor):
            BookingService.book(db_session, patient.id, TOMORROW, "09:00", patient.id, reason="x", now=NOW)

    def test_deactivated_doctor(self, db_session, doctor, patient, tomorrow_schedule):
        doctor.is_active = False
        db_session.commit()

        with pytest.raises(DoctorNotFound):
            book(db_session, doctor, patient, "09:00")
        assert db_session.query(Appointment).count() == 0

    def test_past_date(self, db_session, doctor, patient):
        with pytest.raises(PastDateError) as exc_info:
            book(db_session, doctor, patient, "09:00", day=YESTERDAY)
        assert exc_info.value.message == "Cannot book appointments for past dates"

    def test_same_day_offline(self, db_session, doctor, patient):
        ScheduleService.upsert_schedule(db_session, doctor.id, TODAY, "09:00", "12:00", now=NOW)

        with pytest.raises(DoctorOffline):
            book(db_session, doctor, patient, "11:00", day=TODAY)

    def test_no_schedule(self, db_session, doctor, patient):
        with pytest.raises(NoScheduleForDate):
            book(db_session, doctor, patient, "09:00")

    def test_inactive_schedule(self, db_session, doctor, patient, tomorrow_schedule):
        tomorrow_schedule.is_active = False
        db_session.commit()

        with pytest.raises(NoScheduleForDate):
            book(db_session, doctor, patient, "09:00")

    def test_time_not_on_grid(self, db_session, doctor, patient, tomorrow_schedule):
        with pytest.raises(SlotNotFound):
            book(db_session, doctor, patient, "09:15")

    def test_withdrawn_slot(self, db_session, doctor, patient, tomorrow_schedule):
        slot_at(tomorrow_schedule, "09:00").status = "cancelled"
        db_session.commit()

        with pytest.raises(SlotNotFound):
            book(db_session, doctor, patient, "09:00")

    def test_malformed_time(self, db_session, doctor, patient, tomorrow_schedule):
        with pytest.raises(InvalidTimeFormat):
            book(db_session, doctor, patient, "half past nine")

    def test_already_booked(self, db_session, doctor, patient, tomorrow_schedule):
        other = create_patient(db_session, email="second@example.com", full_name="Ravi Iyer")
        book(db_session, doctor, patient, "09:30")

        with pytest.raises(SlotAlreadyBooked):
            book(db_session, doctor, other, "09:30")

        assert db_session.query(Appointment).count() == 1

    def test_expired_slot_today(self, db_session, patient):
        online = create_doctor(db_session, email="online@example.com", is_online=True)
        ScheduleService.upsert_schedule(db_session, online.id, TODAY, "09:00", "12:00", now=NOW)

        with pytest.raises(SlotExpired):
            book(db_session, online, patient, "09:30", day=TODAY)
        # Starting exactly now counts as started
        with pytest.raises(SlotExpired):
            book(db_session, online, patient, "10:00", day=TODAY)

    def test_missing_reason_and_bad_type(self, db_session, doctor, patient, tomorrow_schedule):
        with pytest.raises(ValueError):
            BookingService.book(db_session, doctor.id, TOMORROW, "09:00", patient.id, reason="  ", now=NOW)
        with pytest.raises(ValueError):
            book(db_session, doctor, patient, "09:00", appointment_type="surgery")

        assert db_session.query(Appointment).count() == 0


class TestBookingRaces:
    """Two sessions competing for the same slot."""

    def test_stale_reader_hits_live_appointment_index(self, db_session, session_factory, doctor, patient, tomorrow_schedule):
        rival_patient = create_patient(db_session, email="rival@example.com", full_name="Meera Das")
        slot_id = slot_at(tomorrow_schedule, "10:00").id

        # Session A has already read the grid while the slot was free
        stale = session_factory()
        stale_schedule = ScheduleService.get_schedule(stale, doctor.id, TOMORROW)
        assert slot_at(stale_schedule, "10:00").status == "available"

        # Session B books the slot and commits first
        winner = book(db_session, doctor, rival_patient, "10:00")

        try:
            with pytest.raises(SlotAlreadyBooked):
                book(stale, doctor, patient, "10:00")
        finally:
            stale.close()

        checker = session_factory()
        try:
            appointments = checker.query(Appointment).all()
            slot = checker.get(ScheduleSlot, slot_id)
            assert [a.id for a in appointments] == [winner.id]
            assert slot.appointment_id == winner.id
            assert slot.patient_id == rival_patient.id
        finally:
            checker.close()

    def test_lost_claim_leaves_no_orphan(self, db_session, session_factory, doctor, patient, tomorrow_schedule):
        slot_id = slot_at(tomorrow_schedule, "11:00").id

        stale = session_factory()
        stale_schedule = ScheduleService.get_schedule(stale, doctor.id, TOMORROW)
        assert slot_at(stale_schedule, "11:00").status == "available"

        # The slot is taken behind the stale session's back without any live appointment row
        db_session.execute(
            update(ScheduleSlot)
            .where(ScheduleSlot.id == slot_id)
            .values(status="booked", is_booked=True, patient_id=patient.id, appointment_id=424242)
        )
        db_session.commit()

        try:
            with pytest.raises(SlotAlreadyBooked):
                book(stale, doctor, patient, "11:00")
        finally:
            stale.close()

        checker = session_factory()
        try:
            assert checker.query(Appointment).count() == 0
            assert checker.get(ScheduleSlot, slot_id).appointment_id == 424242
        finally:
            checker.close()

    def test_cancelled_appointment_frees_the_record_guard(self, db_session, doctor, patient, tomorrow_schedule):
        from services.appointment_service import AppointmentService

        first = book(db_session, doctor, patient, "09:00")
        AppointmentService.cancel(db_session, first.id, patient.id, now=NOW)

        again = book(db_session, doctor, patient, "09:00")

        assert again.id != first.id
        assert db_session.query(Appointment).filter(Appointment.time == "09:00").count() == 2


def test_booking_time_is_recorded(db_session, doctor, patient, tomorrow_schedule):
    book(db_session, doctor, patient, "09:00")

    slot = db_session.get(ScheduleSlot, slot_at(tomorrow_schedule, "09:00").id, populate_existing=True)
    assert slot.booking_time is not None
    assert slot.booking_time.date() >= datetime(2020, 1, 1).date()
