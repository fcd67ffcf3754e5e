"""
Doctor profile model.

Holds the doctor-facing settings that availability depends on: the live
online/offline toggle, the daily break window, and the public metadata
(specialization, fee) shown next to offerable slots.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import String, TIMESTAMP, ForeignKey, Boolean, Numeric, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import DEFAULT_BREAK_START, DEFAULT_BREAK_END
from core.database import Base

if TYPE_CHECKING:
    from models.user import User


class DoctorProfile(Base):
    """Per-doctor scheduling settings and public profile."""

    __tablename__ = "doctor_profiles"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    """The doctor this profile belongs to (one-to-one with users)."""

    specialization: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    experience_years: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    consultation_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)

    is_online: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """
    Live presence toggle. Same-day bookings and today's availability listing
    require the doctor to be online; future days ignore it.
    """

    break_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    break_start: Mapped[str] = mapped_column(String(5), default=DEFAULT_BREAK_START, nullable=False)
    """Break window start, "HH:MM" (inclusive)."""
    break_end: Mapped[str] = mapped_column(String(5), default=DEFAULT_BREAK_END, nullable=False)
    """Break window end, "HH:MM" (exclusive)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    user: Mapped["User"] = relationship(back_populates="doctor_profile")

    def __repr__(self) -> str:
        return f"<DoctorProfile(user_id={self.user_id}, online={self.is_online})>"
