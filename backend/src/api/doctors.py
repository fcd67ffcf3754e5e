# pyright: reportMissingTypeStubs=false
"""
Doctor availability API endpoints.

Patient-facing availability queries plus the doctor's own presence and
break-time settings.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user, require_doctor
from core.database import get_db
from services.availability_service import AvailabilityService
from services.doctor_service import DoctorService
from api.responses import (
    AvailableDoctorsResponse, BreakTimeResponse, ConsultationFeeResponse,
    DoctorAvailabilityResponse, DoctorStatusResponse
)

logger = logging.getLogger(__name__)

router = APIRouter()


class DoctorStatusRequest(BaseModel):
    is_online: bool


class BreakTimeRequest(BaseModel):
    enabled: bool = True
    start_time: Optional[str] = None  # Format: "HH:MM"
    end_time: Optional[str] = None  # Format: "HH:MM"


@router.get("/available", summary="List doctors offerable on a date", response_model=AvailableDoctorsResponse)
async def list_available_doctors(
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AvailableDoctorsResponse:
    """
    List doctors a patient can book.

    Without a date this answers "who can I see today right now": online
    doctors inside their working window and not on break. With a future date
    every doctor with an active schedule that day is listed.
    """
    result = AvailabilityService.list_available_doctors(db, for_date=date)
    return AvailableDoctorsResponse(
        date=result["date"],
        is_today=result["is_today"],
        results=len(result["doctors"]),
        doctors=result["doctors"],
    )


@router.get("/{doctor_id}/schedule", summary="Get a doctor's slots for a date", response_model=DoctorAvailabilityResponse)
async def get_doctor_schedule(
    doctor_id: int,
    date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> DoctorAvailabilityResponse:
    result = AvailabilityService.get_doctor_schedule_view(db, doctor_id, for_date=date)
    return DoctorAvailabilityResponse(**result)


@router.get("/{doctor_id}/consultation-fee", summary="Get a doctor's consultation fee", response_model=ConsultationFeeResponse)
async def get_consultation_fee(
    doctor_id: int,
    db: Session = Depends(get_db)
) -> ConsultationFeeResponse:
    return ConsultationFeeResponse(
        doctor_id=doctor_id,
        consultation_fee=DoctorService.get_consultation_fee(db, doctor_id),
    )


@router.patch("/me/status", summary="Go online or offline", response_model=DoctorStatusResponse)
async def update_my_status(
    request: DoctorStatusRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> DoctorStatusResponse:
    profile = DoctorService.set_online(db, current_user.user_id, request.is_online)
    return DoctorStatusResponse(doctor_id=current_user.user_id, is_online=profile.is_online)


@router.put("/me/break-time", summary="Update the daily break window", response_model=BreakTimeResponse)
async def update_my_break_time(
    request: BreakTimeRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> BreakTimeResponse:
    profile = DoctorService.update_break_time(
        db,
        current_user.user_id,
        enabled=request.enabled,
        start_time=request.start_time,
        end_time=request.end_time,
    )
    return BreakTimeResponse(
        doctor_id=current_user.user_id,
        enabled=profile.break_enabled,
        start_time=profile.break_start,
        end_time=profile.break_end,
    )
