"""
Payment confirmation handling.

Order creation and signature verification happen at the payment gateway
integration; by the time a confirmation reaches this service the payment is
known to be good. The booking itself goes through the same engine as a
direct booking, so a payment callback and a direct booking racing for one
slot are settled by the same conditional claim.
"""

import logging
from datetime import date, datetime
from typing import Optional, Tuple, Union

from sqlalchemy.orm import Session

from core.errors import SlotAlreadyBooked
from models import Appointment
from services.booking_service import BookingService
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class PaymentService:
    """Service class for paid bookings."""

    @staticmethod
    def find_by_payment(db: Session, patient_id: int, payment_id: str) -> Optional[Appointment]:
        """Appointment a payment already produced for this patient, if any."""
        return db.query(Appointment).filter(
            Appointment.payment_id == payment_id,
            Appointment.patient_id == patient_id,
        ).first()

    @staticmethod
    def confirm_and_book(
        db: Session,
        patient_id: int,
        payment_id: str,
        doctor_id: int,
        appointment_date: Union[str, date, datetime],
        time: Optional[str],
        reason: str,
        appointment_type: str = 'consultation',
        time_slot: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[Appointment, bool]:
        """
        Book the slot a confirmed payment paid for.

        Replays of the same payment return the appointment it already
        produced instead of booking again. Two confirmations of one payment
        arriving together are settled by the unique payment_id index: the
        loser's booking fails and it returns the winner's appointment.

        Returns:
            Tuple of (appointment, created) where created is False for a replay

        Raises:
            Any booking error from BookingService.book; the payment then
            needs a refund outside this service
        """
        existing = PaymentService.find_by_payment(db, patient_id, payment_id)
        if existing is not None:
            logger.info(f"Payment {payment_id} already produced appointment {existing.id}")
            return existing, False

        try:
            appointment = BookingService.book(
                db,
                doctor_id=doctor_id,
                appointment_date=appointment_date,
                requested_time=time,
                patient_id=patient_id,
                reason=reason,
                appointment_type=appointment_type,
                time_slot=time_slot,
                status='confirmed',
                payment_id=payment_id,
                now=now,
            )
        except SlotAlreadyBooked:
            existing = PaymentService.find_by_payment(db, patient_id, payment_id)
            if existing is not None:
                logger.info(f"Payment {payment_id} was booked concurrently as appointment {existing.id}")
                return existing, False
            logger.warning(f"Payment {payment_id} confirmed but its slot is already booked")
            raise
        except ValueError as e:
            logger.warning(f"Payment {payment_id} confirmed but booking failed: {e}")
            raise

        NotificationService.create_booking_confirmation(db, appointment, now=now)
        logger.info(f"Payment {payment_id} booked appointment {appointment.id}")
        return appointment, True
