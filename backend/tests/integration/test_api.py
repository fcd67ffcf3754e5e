"""
HTTP-level tests for the clinic booking API.

Routes read the real clinic clock, so every date here is a few days ahead
of today and nothing depends on the time of day the suite runs.
"""

from datetime import timedelta

import pytest

from models import Appointment
from tests.factories import auth_headers, create_doctor, create_patient
from utils.datetime_utils import clinic_today


@pytest.fixture
def day():
    return clinic_today() + timedelta(days=3)


@pytest.fixture
def doctor(db_session):
    return create_doctor(db_session)


@pytest.fixture
def patient(db_session):
    return create_patient(db_session)


@pytest.fixture
def doctor_headers(doctor):
    return auth_headers(doctor)


@pytest.fixture
def patient_headers(patient):
    return auth_headers(patient)


@pytest.fixture
def published(client, doctor_headers, day):
    response = client.put(
        f"/api/schedules/{day.isoformat()}",
        json={"start_time": "09:00", "end_time": "12:00", "total_slots": 6},
        headers=doctor_headers,
    )
    assert response.status_code == 200
    return response.json()


def book(client, headers, doctor_id, day, time, reason="Back pain"):
    return client.post(
        "/api/appointments",
        json={"doctor_id": doctor_id, "date": day.isoformat(), "time": time, "reason": reason},
        headers=headers,
    )


class TestBasics:

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/").json()["status"] == "running"

    def test_requires_token(self, client):
        response = client.get("/api/schedules/upcoming")
        assert response.status_code == 401

    def test_role_checks(self, client, doctor_headers, patient_headers):
        assert client.get("/api/schedules/upcoming", headers=patient_headers).status_code == 403
        response = client.post(
            "/api/appointments",
            json={"doctor_id": 1, "date": "2099-01-01", "time": "09:00", "reason": "x"},
            headers=doctor_headers,
        )
        assert response.status_code == 403


class TestScheduleEndpoints:

    def test_publish_and_read(self, client, doctor_headers, published, day):
        assert published["date"] == day.isoformat()
        assert published["total_slots"] == 6
        assert published["slot_duration"] == 30
        assert published["slots"][0]["time_slot"] == "09:00-09:30"
        assert published["schedule_status"] == "available"

        fetched = client.get(f"/api/schedules/{day.isoformat()}", headers=doctor_headers)
        assert fetched.status_code == 200
        assert fetched.json()["id"] == published["id"]

        upcoming = client.get("/api/schedules/upcoming", headers=doctor_headers).json()
        assert upcoming["count"] == 1

    def test_republish_replaces(self, client, doctor_headers, published, day):
        response = client.put(
            f"/api/schedules/{day.isoformat()}",
            json={"start_time": "14:00", "end_time": "16:00", "slot_duration": 20},
            headers=doctor_headers,
        )

        body = response.json()
        assert body["id"] == published["id"]
        assert body["total_slots"] == 6
        assert body["slots"][-1]["end_time"] == "16:00"

    def test_exists(self, client, doctor_headers, published, day):
        other = day + timedelta(days=1)
        response = client.get(
            f"/api/schedules/exists?dates={day.isoformat()},{other.isoformat()},garbage",
            headers=doctor_headers,
        )

        existing = response.json()["schedule_exists"]
        assert list(existing) == [day.isoformat()]
        assert existing[day.isoformat()]["start_time"] == "09:00"

    def test_bulk_save(self, client, doctor_headers, day):
        response = client.post(
            "/api/schedules/upcoming",
            json={"schedules": [
                {"date": day.isoformat(), "start_time": "09:00", "end_time": "11:00", "total_slots": 4},
                {"date": (day + timedelta(days=1)).isoformat(), "start_time": "11:00", "end_time": "10:00"},
                {"date": (day + timedelta(days=2)).isoformat(), "start_time": "09:00"},
            ]},
            headers=doctor_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success_count"] == 1
        assert [error["type"] for error in body["errors"]] == ["InvalidWindow", "ValidationError"]

    def test_bulk_save_empty(self, client, doctor_headers):
        response = client.post("/api/schedules/upcoming", json={"schedules": []}, headers=doctor_headers)
        assert response.status_code == 422

    def test_history(self, client, doctor_headers, published):
        body = client.get("/api/schedules/history?page=1&limit=5", headers=doctor_headers).json()
        assert body["pagination"]["total"] == 1
        assert body["schedules"][0]["id"] == published["id"]

    def test_invalid_window(self, client, doctor_headers, day):
        response = client.put(
            f"/api/schedules/{day.isoformat()}",
            json={"start_time": "12:00", "end_time": "09:00"},
            headers=doctor_headers,
        )
        assert response.status_code == 400
        assert response.json()["type"] == "InvalidWindow"

    def test_past_date(self, client, doctor_headers):
        past = clinic_today() - timedelta(days=2)
        response = client.put(
            f"/api/schedules/{past.isoformat()}",
            json={"start_time": "09:00", "end_time": "12:00"},
            headers=doctor_headers,
        )
        assert response.status_code == 400
        assert response.json()["type"] == "PastDateError"

    def test_missing_schedule(self, client, doctor_headers, day):
        response = client.get(f"/api/schedules/{day.isoformat()}", headers=doctor_headers)
        assert response.status_code == 404
        assert response.json()["type"] == "NotFound"

    def test_delete(self, client, doctor_headers, published, day):
        response = client.delete(f"/api/schedules/{day.isoformat()}", headers=doctor_headers)
        assert response.status_code == 200
        assert response.json()["schedule_id"] == published["id"]
        assert client.get(f"/api/schedules/{day.isoformat()}", headers=doctor_headers).status_code == 404

    def test_delete_with_booking(self, client, doctor, doctor_headers, patient_headers, published, day):
        assert book(client, patient_headers, doctor.id, day, "10:00").status_code == 201

        response = client.delete(f"/api/schedules/{day.isoformat()}", headers=doctor_headers)

        assert response.status_code == 409
        assert response.json()["type"] == "ScheduleHasBookings"


class TestDoctorEndpoints:

    def test_available_on_future_day(self, client, doctor, patient_headers, published, day):
        response = client.get(f"/api/doctors/available?date={day.isoformat()}", headers=patient_headers)

        body = response.json()
        assert body["is_today"] is False
        assert body["results"] == 1
        assert body["doctors"][0]["id"] == doctor.id
        assert body["doctors"][0]["schedule"]["available_slots_count"] == 6

    def test_doctor_schedule(self, client, doctor, patient_headers, published, day):
        response = client.get(f"/api/doctors/{doctor.id}/schedule?date={day.isoformat()}", headers=patient_headers)

        body = response.json()
        assert body["specialization"] == "General Medicine"
        assert body["offerable_now"] is None
        assert len(body["schedule"]["slots"]) == 6

    def test_doctor_schedule_missing(self, client, doctor, patient_headers, day):
        response = client.get(f"/api/doctors/{doctor.id}/schedule?date={day.isoformat()}", headers=patient_headers)
        assert response.status_code == 400
        assert response.json()["type"] == "NoScheduleForDate"

    def test_status_toggle(self, client, doctor, doctor_headers):
        response = client.patch("/api/doctors/me/status", json={"is_online": False}, headers=doctor_headers)
        assert response.json() == {"doctor_id": doctor.id, "is_online": False}

    def test_break_time(self, client, doctor_headers):
        response = client.put(
            "/api/doctors/me/break-time",
            json={"enabled": True, "start_time": "13:30", "end_time": "14:15"},
            headers=doctor_headers,
        )
        assert response.json()["start_time"] == "13:30"
        assert response.json()["end_time"] == "14:15"

        invalid = client.put(
            "/api/doctors/me/break-time",
            json={"start_time": "15:00", "end_time": "14:00"},
            headers=doctor_headers,
        )
        assert invalid.status_code == 400
        assert invalid.json()["type"] == "InvalidWindow"

    def test_consultation_fee(self, client, doctor):
        response = client.get(f"/api/doctors/{doctor.id}/consultation-fee")
        assert response.json() == {"doctor_id": doctor.id, "consultation_fee": 500.0}

    def test_unknown_doctor_fee(self, client):
        response = client.get("/api/doctors/987654/consultation-fee")
        assert response.status_code == 404
        assert response.json()["type"] == "DoctorNotFound"


class TestAppointmentEndpoints:

    def test_book_then_conflict(self, client, db_session, doctor, patient_headers, published, day):
        first = book(client, patient_headers, doctor.id, day, "10:00")
        assert first.status_code == 201
        body = first.json()
        assert body["status"] == "scheduled"
        assert body["time_slot"] == "10:00-10:30"
        assert body["doctor_name"] == "Dr. Kiran Mehta"

        rival = create_patient(db_session, email="rival@example.com", full_name="Meera Das")
        second = book(client, auth_headers(rival), doctor.id, day, "10:00")
        assert second.status_code == 400
        assert second.json()["type"] == "SlotAlreadyBooked"

        assert db_session.query(Appointment).count() == 1

    def test_request_validation(self, client, doctor, patient_headers, published, day):
        payload = {"doctor_id": doctor.id, "date": day.isoformat(), "time": "10:00", "reason": "x"}

        bad_type = client.post("/api/appointments", json={**payload, "type": "surgery"}, headers=patient_headers)
        blank_reason = client.post("/api/appointments", json={**payload, "reason": "   "}, headers=patient_headers)

        assert bad_type.status_code == 422
        assert blank_reason.status_code == 422

    def test_listing(self, client, doctor, doctor_headers, patient_headers, published, day):
        book(client, patient_headers, doctor.id, day, "09:30")

        mine = client.get("/api/appointments/mine?upcoming=true", headers=patient_headers).json()
        assert mine["count"] == 1

        for_doctor = client.get(f"/api/appointments/doctor?date={day.isoformat()}", headers=doctor_headers).json()
        assert [a["time"] for a in for_doctor["appointments"]] == ["09:30"]

        none_cancelled = client.get("/api/appointments/mine?status=cancelled", headers=patient_headers).json()
        assert none_cancelled["count"] == 0

    def test_reschedule_and_cancel(self, client, doctor, doctor_headers, patient_headers, published, day):
        appointment_id = book(client, patient_headers, doctor.id, day, "09:00").json()["id"]

        moved = client.patch(
            f"/api/appointments/{appointment_id}/reschedule",
            json={"new_date": day.isoformat(), "new_time": "11:30", "reason": "Meeting"},
            headers=patient_headers,
        )
        assert moved.status_code == 200
        assert moved.json()["status"] == "rescheduled"
        assert moved.json()["reschedule_history"][0]["old_time"] == "09:00-09:30"

        cancelled = client.patch(
            f"/api/appointments/{appointment_id}/cancel",
            json={"reason": "Travelling"},
            headers=doctor_headers,
        )
        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["cancelled_by"] == "doctor"

        grid = client.get(f"/api/schedules/{day.isoformat()}", headers=doctor_headers).json()
        assert grid["booked_slots_count"] == 0

    def test_status_update(self, client, doctor, doctor_headers, patient_headers, published, day):
        appointment_id = book(client, patient_headers, doctor.id, day, "09:00").json()["id"]

        confirmed = client.patch(
            f"/api/appointments/{appointment_id}/status", json={"status": "confirmed"}, headers=doctor_headers
        )
        assert confirmed.json()["status"] == "confirmed"

        backwards = client.patch(
            f"/api/appointments/{appointment_id}/status", json={"status": "scheduled"}, headers=doctor_headers
        )
        assert backwards.status_code == 400
        assert backwards.json()["type"] == "InvalidStatus"

    def test_legacy_delete_cancels(self, client, doctor, patient_headers, published, day):
        appointment_id = book(client, patient_headers, doctor.id, day, "09:00").json()["id"]

        response = client.delete(f"/api/appointments/{appointment_id}", headers=patient_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert client.get(f"/api/appointments/{appointment_id}", headers=patient_headers).status_code == 200

    def test_other_patient_forbidden(self, client, db_session, doctor, patient_headers, published, day):
        appointment_id = book(client, patient_headers, doctor.id, day, "09:00").json()["id"]
        stranger = create_patient(db_session, email="stranger@example.com", full_name="Sam Paul")

        response = client.get(f"/api/appointments/{appointment_id}", headers=auth_headers(stranger))

        assert response.status_code == 403
        assert response.json()["type"] == "Forbidden"


class TestPaymentAndNotificationEndpoints:

    def test_payment_confirm_replay(self, client, doctor, patient_headers, published, day):
        payload = {
            "payment_id": "pay_abc",
            "doctor_id": doctor.id,
            "date": day.isoformat(),
            "time": "10:30",
            "reason": "Follow-up on tests",
            "type": "follow-up",
        }

        first = client.post("/api/payments/confirm", json=payload, headers=patient_headers)
        replay = client.post("/api/payments/confirm", json=payload, headers=patient_headers)

        assert first.status_code == 200
        assert first.json()["created"] is True
        assert first.json()["appointment"]["status"] == "confirmed"
        assert replay.json()["created"] is False
        assert replay.json()["appointment"]["id"] == first.json()["appointment"]["id"]

        inbox = client.get("/api/notifications", headers=patient_headers).json()
        assert [n["type"] for n in inbox["notifications"]] == ["appointment-confirmed"]

    def test_video_call_flow(self, client, doctor, doctor_headers, patient_headers, published, day):
        appointment_id = book(client, patient_headers, doctor.id, day, "11:00").json()["id"]

        sent = client.post(
            "/api/notifications/video-call-ready", json={"appointment_id": appointment_id}, headers=doctor_headers
        )
        assert sent.status_code == 201
        assert sent.json()["payload"]["room_id"] == f"appointment-{appointment_id}"

        inbox = client.get("/api/notifications", headers=patient_headers).json()
        assert inbox["unread_count"] == 1

        notification_id = inbox["notifications"][0]["id"]
        read = client.patch(f"/api/notifications/{notification_id}/read", headers=patient_headers)
        assert read.json()["is_read"] is True
        assert client.get("/api/notifications", headers=patient_headers).json()["unread_count"] == 0

    def test_video_call_by_patient_rejected(self, client, patient_headers):
        response = client.post(
            "/api/notifications/video-call-ready", json={"appointment_id": 1}, headers=patient_headers
        )
        assert response.status_code == 403
