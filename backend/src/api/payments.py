# pyright: reportMissingTypeStubs=false
"""
Payment confirmation endpoint.

The client calls this after the payment gateway reports success; the paid
slot is then booked through the regular booking engine.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from auth.dependencies import UserContext, require_patient
from core.database import get_db
from services.payment_service import PaymentService
from api.responses import AppointmentResponse, PaymentBookingResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class PaymentConfirmRequest(BaseModel):
    """Confirmed payment together with the slot it paid for."""
    payment_id: str
    doctor_id: int
    date: str  # Format: "YYYY-MM-DD"
    time: Optional[str] = None  # "HH:MM" or "HH:MM-HH:MM"
    time_slot: Optional[str] = None
    reason: str
    type: str = 'consultation'

    @field_validator('payment_id', 'reason')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Field cannot be empty')
        return v


@router.post("/confirm", summary="Book the slot of a confirmed payment", response_model=PaymentBookingResponse)
async def confirm_payment(
    request: PaymentConfirmRequest,
    db: Session = Depends(get_db),
    current_user: UserContext = Depends(require_patient)
) -> PaymentBookingResponse:
    """
    Turn a confirmed payment into a confirmed appointment.

    Repeating the call with the same payment_id returns the appointment that
    payment already produced (``created`` is false).
    """
    try:
        appointment, created = PaymentService.confirm_and_book(
            db,
            patient_id=current_user.user_id,
            payment_id=request.payment_id,
            doctor_id=request.doctor_id,
            appointment_date=request.date,
            time=request.time,
            reason=request.reason,
            appointment_type=request.type,
            time_slot=request.time_slot,
        )
        return PaymentBookingResponse(
            appointment=AppointmentResponse.from_model(appointment),
            payment_id=request.payment_id,
            created=created,
        )
    except (HTTPException, ValueError):
        raise
    except Exception as e:
        logger.exception(f"Failed to book paid appointment for payment {request.payment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to book appointment"
        )
