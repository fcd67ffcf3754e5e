# pyright: reportMissingTypeStubs=false
"""
Appointment API endpoints.

Booking, the patient's and doctor's appointment lists, and lifecycle
changes (status, reschedule, cancel).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, get_current_user, require_doctor, require_patient
from core.constants import MAX_REASON_LENGTH
from core.database import get_db
from models.appointment import APPOINTMENT_TYPES
from services.appointment_service import AppointmentService
from services.booking_service import BookingService
from api.responses import AppointmentListResponse, AppointmentResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ===== Request Models =====

class BookAppointmentRequest(BaseModel):
    """Request model for booking a slot."""
    doctor_id: int
    date: str  # Format: "YYYY-MM-DD"
    time: Optional[str] = None  # "HH:MM" or "HH:MM-HH:MM"
    time_slot: Optional[str] = None  # "HH:MM-HH:MM", used when time is omitted
    reason: str
    type: str = 'consultation'
    notes: Optional[str] = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Reason for the appointment is required')
        if len(v) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason cannot exceed {MAX_REASON_LENGTH} characters')
        return v

    @field_validator('type')
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in APPOINTMENT_TYPES:
            raise ValueError(f"Type must be one of: {', '.join(APPOINTMENT_TYPES)}")
        return v


class StatusUpdateRequest(BaseModel):
    status: str
    reason: Optional[str] = None  # Used when the new status is 'cancelled'


class RescheduleRequest(BaseModel):
    new_date: str  # Format: "YYYY-MM-DD"
    new_time: str  # "HH:MM" or "HH:MM-HH:MM"
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


# ===== Booking =====

@router.post("", summary="Book an appointment", response_model=AppointmentResponse,
             status_code=status.HTTP_201_CREATED)
async def book_appointment(
    request: BookAppointmentRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_patient)
) -> AppointmentResponse:
    """
    Book one slot in a doctor's schedule.

    Business failures come back as 4xx with a ``type`` naming the exact
    blocker (DoctorOffline, NoScheduleForDate, SlotAlreadyBooked, ...), so
    the client can steer the patient to another slot or date.
    """
    try:
        appointment = BookingService.book(
            db,
            doctor_id=request.doctor_id,
            appointment_date=request.date,
            requested_time=request.time,
            patient_id=current_user.user_id,
            reason=request.reason,
            appointment_type=request.type,
            time_slot=request.time_slot,
            notes=request.notes,
        )
        return AppointmentResponse.from_model(appointment)
    except (HTTPException, ValueError):
        raise
    except Exception as e:
        logger.exception(f"Failed to book appointment for patient {current_user.user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to book appointment"
        )


# ===== Queries =====

@router.get("/mine", summary="List my appointments", response_model=AppointmentListResponse)
async def list_my_appointments(
    status_filter: Optional[str] = Query(None, alias="status"),
    upcoming: bool = Query(False, description="Only today and later"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_patient)
) -> AppointmentListResponse:
    appointments = AppointmentService.list_for_patient(
        db, current_user.user_id, status=status_filter, upcoming=upcoming
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_model(appointment) for appointment in appointments],
        count=len(appointments),
    )


@router.get("/doctor", summary="List the doctor's appointments", response_model=AppointmentListResponse)
async def list_doctor_appointments(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_doctor)
) -> AppointmentListResponse:
    appointments = AppointmentService.list_for_doctor(
        db, current_user.user_id, on_date=date, status=status_filter
    )
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_model(appointment) for appointment in appointments],
        count=len(appointments),
    )


@router.get("/{appointment_id}", summary="Get appointment details", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AppointmentResponse:
    appointment = AppointmentService.get_appointment_for_actor(db, appointment_id, current_user.user_id)
    return AppointmentResponse.from_model(appointment)


# ===== Lifecycle =====

@router.patch("/{appointment_id}/status", summary="Update appointment status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AppointmentResponse:
    appointment = AppointmentService.update_status(
        db, appointment_id, request.status, current_user.user_id, reason=request.reason
    )
    return AppointmentResponse.from_model(appointment)


@router.patch("/{appointment_id}/reschedule", summary="Move an appointment to another slot",
              response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    request: RescheduleRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AppointmentResponse:
    appointment = AppointmentService.reschedule(
        db,
        appointment_id,
        new_date=request.new_date,
        new_time=request.new_time,
        actor_id=current_user.user_id,
        reason=request.reason,
    )
    return AppointmentResponse.from_model(appointment)


@router.patch("/{appointment_id}/cancel", summary="Cancel an appointment", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    request: CancelRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AppointmentResponse:
    appointment = AppointmentService.cancel(db, appointment_id, current_user.user_id, reason=request.reason)
    return AppointmentResponse.from_model(appointment)


@router.delete("/{appointment_id}", summary="Cancel an appointment (legacy)", response_model=AppointmentResponse)
async def cancel_appointment_legacy(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(get_current_user)
) -> AppointmentResponse:
    """Older clients cancel with DELETE; the appointment is kept with status 'cancelled'."""
    appointment = AppointmentService.cancel(db, appointment_id, current_user.user_id)
    return AppointmentResponse.from_model(appointment)
