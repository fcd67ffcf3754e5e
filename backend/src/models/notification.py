"""
Notification model.

Durable per-recipient notifications (video call ready, booking confirmed).
Expiry is an explicit timestamp checked at read time, so pending
notifications survive restarts and are visible from every instance.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, TIMESTAMP, ForeignKey, Boolean, Index, JSON
from sqlalchemy.orm import Mapped, mapped_column

from core.database import Base


class Notification(Base):
    """A message waiting for one recipient."""

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)

    recipient_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    """User who should see this notification."""

    type: Mapped[str] = mapped_column(String(50))
    """'video-call-ready' or 'appointment-confirmed'."""

    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(String(1000))

    appointment_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"), nullable=True
    )

    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    """Type-specific data, e.g. {"room_id": ..., "action_url": ...}."""

    action_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """NULL means the notification never expires."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_notifications_recipient_expires', 'recipient_id', 'expires_at'),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, recipient_id={self.recipient_id}, type='{self.type}')>"
