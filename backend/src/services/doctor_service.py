"""
Doctor service for doctor lookups and doctor-managed settings.

Covers the doctor-side toggles that availability depends on (online
presence and the daily break window) and the read-only profile data shown
to patients next to offerable slots.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.errors import DoctorNotFound, InvalidWindow, NotADoctor
from models import DoctorProfile, User
from utils.datetime_utils import normalize_hhmm, parse_hhmm

logger = logging.getLogger(__name__)


class DoctorService:
    """Service class for doctor operations."""

    @staticmethod
    def get_doctor(db: Session, doctor_id: int, active_only: bool = False) -> User:
        """
        Resolve a doctor account.

        Args:
            db: Database session
            doctor_id: User id of the doctor
            active_only: Treat deactivated accounts as missing

        Raises:
            DoctorNotFound: No user with this id (or deactivated, with active_only)
            NotADoctor: The user exists but is not a doctor
        """
        user = db.query(User).filter(User.id == doctor_id).first()
        if user is None or (active_only and not user.is_active):
            raise DoctorNotFound()
        if not user.is_doctor:
            raise NotADoctor()
        return user

    @staticmethod
    def get_or_create_profile(db: Session, doctor: User) -> DoctorProfile:
        """Return the doctor's profile, creating one with defaults if missing."""
        if doctor.doctor_profile is None:
            doctor.doctor_profile = DoctorProfile(user_id=doctor.id)
            db.flush()
            logger.info(f"Created default profile for doctor {doctor.id}")
        return doctor.doctor_profile

    @staticmethod
    def is_online(doctor: User) -> bool:
        profile = doctor.doctor_profile
        return bool(profile and profile.is_online)

    @staticmethod
    def set_online(db: Session, doctor_id: int, is_online: bool) -> DoctorProfile:
        """Toggle a doctor's live presence."""
        doctor = DoctorService.get_doctor(db, doctor_id)
        profile = DoctorService.get_or_create_profile(db, doctor)
        profile.is_online = is_online
        db.commit()
        db.refresh(profile)
        logger.info(f"Doctor {doctor_id} is now {'online' if is_online else 'offline'}")
        return profile

    @staticmethod
    def update_break_time(
        db: Session,
        doctor_id: int,
        enabled: bool,
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
    ) -> DoctorProfile:
        """
        Change a doctor's daily break window.

        Omitted bounds keep their current value.

        Raises:
            InvalidTimeFormat: A bound is not HH:MM
            InvalidWindow: The break ends before it starts
        """
        doctor = DoctorService.get_doctor(db, doctor_id)
        profile = DoctorService.get_or_create_profile(db, doctor)

        new_start = normalize_hhmm(start_time) if start_time else profile.break_start
        new_end = normalize_hhmm(end_time) if end_time else profile.break_end
        if parse_hhmm(new_end) <= parse_hhmm(new_start):
            raise InvalidWindow("Break end time must be after break start time")

        profile.break_enabled = enabled
        profile.break_start = new_start
        profile.break_end = new_end
        db.commit()
        db.refresh(profile)
        logger.info(f"Doctor {doctor_id} break updated: enabled={enabled} {new_start}-{new_end}")
        return profile

    @staticmethod
    def get_consultation_fee(db: Session, doctor_id: int) -> float:
        doctor = DoctorService.get_doctor(db, doctor_id)
        profile = doctor.doctor_profile
        return float(profile.consultation_fee) if profile else 0.0

    @staticmethod
    def summarize(doctor: User) -> Dict[str, Any]:
        """Public doctor fields attached to availability and appointment responses."""
        profile = doctor.doctor_profile
        return {
            "id": doctor.id,
            "full_name": doctor.full_name,
            "email": doctor.email,
            "phone": doctor.phone,
            "specialization": profile.specialization if profile else None,
            "experience_years": profile.experience_years if profile else None,
            "consultation_fee": float(profile.consultation_fee) if profile else 0.0,
            "is_online": bool(profile and profile.is_online),
        }
