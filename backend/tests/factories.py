"""
Test data helpers for the clinic booking tests.

Service tests pin the clinic clock to NOW so "today", slot expiry and the
break window are deterministic.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from models import DoctorProfile, Schedule, ScheduleSlot, User
from services.jwt_service import TokenPayload, jwt_service
from services.slot_grid import generate_slot_grid
from utils.datetime_utils import CLINIC_TZ

# A Tuesday, mid-morning on the clinic clock
NOW = datetime(2030, 1, 15, 10, 0, tzinfo=CLINIC_TZ)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)
YESTERDAY = TODAY - timedelta(days=1)


def create_user(
    db: Session,
    role: str,
    email: str,
    full_name: str,
    phone: Optional[str] = None,
    is_active: bool = True,
) -> User:
    user = User(email=email, full_name=full_name, phone=phone, role=role, is_active=is_active)
    db.add(user)
    db.commit()
    return user


def create_patient(db: Session, email: str = "patient@example.com", full_name: str = "Asha Rao") -> User:
    return create_user(db, "patient", email, full_name, phone="+919800000001")


def create_doctor(
    db: Session,
    email: str = "dr.mehta@example.com",
    full_name: str = "Dr. Kiran Mehta",
    is_online: bool = True,
    break_enabled: bool = True,
    break_start: str = "12:00",
    break_end: str = "13:00",
    consultation_fee: Decimal = Decimal("500.00"),
    is_active: bool = True,
) -> User:
    """Create a doctor together with the profile availability depends on."""
    doctor = create_user(db, "doctor", email, full_name, phone="+919800000099", is_active=is_active)
    doctor.doctor_profile = DoctorProfile(
        specialization="General Medicine",
        experience_years=12,
        consultation_fee=consultation_fee,
        is_online=is_online,
        break_enabled=break_enabled,
        break_start=break_start,
        break_end=break_end,
    )
    db.commit()
    return doctor


def insert_raw_schedule(
    db: Session,
    doctor: User,
    stored_date: datetime,
    start_time: str = "09:00",
    end_time: str = "12:00",
    total_slots: int = 6,
    is_active: bool = True,
) -> Schedule:
    """
    Insert a schedule exactly as given, bypassing date normalization.

    Used to reproduce rows written by older releases (midnight UTC) and
    schedules for past days.
    """
    grid = generate_slot_grid(start_time, end_time, total_slots)
    schedule = Schedule(
        doctor_id=doctor.id,
        date=stored_date,
        start_time=start_time,
        end_time=end_time,
        total_slots=total_slots,
        slot_duration=grid[0].duration,
        is_active=is_active,
    )
    schedule.slots = [
        ScheduleSlot(
            slot_number=data.slot_number,
            start_time=data.start_time,
            end_time=data.end_time,
            duration=data.duration,
            status='available',
            is_booked=False,
        )
        for data in grid
    ]
    db.add(schedule)
    db.commit()
    return schedule


def slot_at(schedule: Schedule, start_time: str) -> ScheduleSlot:
    return next(slot for slot in schedule.slots if slot.start_time == start_time)


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header carrying a token for the given user."""
    token = jwt_service.create_access_token(TokenPayload(
        sub=str(user.id),
        email=user.email,
        role=user.role,
        name=user.full_name,
    ))
    return {"Authorization": f"Bearer {token}"}
