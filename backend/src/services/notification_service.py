"""
Notification service.

Notifications are rows keyed by recipient with an explicit expiry. Expiry
is evaluated in SQL at read time, so pending notifications survive restarts
and every instance sees the same set; a periodic job only reclaims space.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import delete, or_
from sqlalchemy.orm import Session

from core.config import BOOKING_NOTIFICATION_TTL_HOURS, VIDEO_CALL_NOTIFICATION_TTL_MINUTES
from core.errors import Forbidden, InvalidStatus, NotFound
from models import Appointment, Notification, User
from utils.datetime_utils import clinic_now, ensure_clinic_tz

logger = logging.getLogger(__name__)

VIDEO_CALL_READY = 'video-call-ready'
APPOINTMENT_CONFIRMED = 'appointment-confirmed'


def _now(now: Optional[datetime]) -> datetime:
    current = ensure_clinic_tz(now) if now is not None else clinic_now()
    assert current is not None
    return current


class NotificationService:
    """Service for creating and reading per-recipient notifications."""

    @staticmethod
    def send_video_call_ready(
        db: Session,
        doctor_id: int,
        appointment_id: int,
        room_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Notification:
        """
        Tell a patient their doctor has opened the consultation room.

        Args:
            db: Database session
            doctor_id: Sending doctor; must be the appointment's doctor
            appointment_id: Appointment being started
            room_id: Call room identifier (defaults to one derived from the appointment)
            now: Clock override

        Raises:
            NotFound: No such appointment
            Forbidden: The doctor does not own the appointment
            InvalidStatus: The appointment no longer holds a slot
        """
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if appointment is None:
            raise NotFound("Appointment not found")
        if appointment.doctor_id != doctor_id:
            raise Forbidden("Only the appointment's doctor can start its video call")
        if not appointment.holds_slot:
            raise InvalidStatus(f"Cannot start a call for a {appointment.status} appointment")

        current = _now(now)
        doctor = db.query(User).filter(User.id == doctor_id).one()
        room = room_id or f"appointment-{appointment.id}"

        notification = Notification(
            recipient_id=appointment.patient_id,
            type=VIDEO_CALL_READY,
            title="Doctor is Ready for Video Consultation",
            message=f"{doctor.full_name} is ready for your video consultation. Click to join the call.",
            appointment_id=appointment.id,
            payload={
                "room_id": room,
                "doctor_name": doctor.full_name,
                "action_url": f"/join-call/{room}",
            },
            action_required=True,
            expires_at=current + timedelta(minutes=VIDEO_CALL_NOTIFICATION_TTL_MINUTES),
            created_at=current,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)

        logger.info(
            f"Video call notification {notification.id} sent to patient {appointment.patient_id} "
            f"for appointment {appointment.id}"
        )
        return notification

    @staticmethod
    def create_booking_confirmation(
        db: Session,
        appointment: Appointment,
        now: Optional[datetime] = None,
    ) -> Notification:
        """Record an 'appointment confirmed' notification for the appointment's patient."""
        current = _now(now)
        doctor_name = appointment.doctor.full_name if appointment.doctor else "your doctor"

        notification = Notification(
            recipient_id=appointment.patient_id,
            type=APPOINTMENT_CONFIRMED,
            title="Appointment Confirmed",
            message=(
                f"Your appointment with {doctor_name} on {appointment.date.isoformat()} "
                f"at {appointment.time} has been confirmed. Payment successful."
            ),
            appointment_id=appointment.id,
            payload={
                "doctor_name": doctor_name,
                "date": appointment.date.isoformat(),
                "time": appointment.time,
                "time_slot": appointment.time_slot,
                "reason": appointment.reason,
                "payment_status": "paid",
            },
            action_required=False,
            expires_at=current + timedelta(hours=BOOKING_NOTIFICATION_TTL_HOURS),
            created_at=current,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        logger.info(f"Booking confirmation notification {notification.id} for appointment {appointment.id}")
        return notification

    @staticmethod
    def list_for_recipient(
        db: Session,
        recipient_id: int,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Notification], int]:
        """
        Unexpired notifications for a user, newest first.

        Returns:
            Tuple of (notifications, unread_count)
        """
        current = _now(now)
        notifications = db.query(Notification).filter(
            Notification.recipient_id == recipient_id,
            or_(Notification.expires_at.is_(None), Notification.expires_at > current),
        ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()

        unread = sum(1 for notification in notifications if not notification.is_read)
        return notifications, unread

    @staticmethod
    def mark_read(
        db: Session,
        recipient_id: int,
        notification_id: int,
        now: Optional[datetime] = None,
    ) -> Notification:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotFound: No such notification for this user, or it has expired
        """
        current = _now(now)
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.recipient_id == recipient_id,
            or_(Notification.expires_at.is_(None), Notification.expires_at > current),
        ).first()
        if notification is None:
            raise NotFound("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = current
            db.commit()
            db.refresh(notification)
        return notification

    @staticmethod
    def purge_expired(db: Session, now: Optional[datetime] = None) -> int:
        """
        Delete notifications whose expiry has passed.

        Returns:
            Number of rows deleted
        """
        current = _now(now)
        result = db.execute(
            delete(Notification)
            .where(Notification.expires_at.is_not(None), Notification.expires_at <= current)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Purged {deleted} expired notification(s)")
        return deleted
