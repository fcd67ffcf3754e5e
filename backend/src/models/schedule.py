"""
Schedule and slot models.

A Schedule is one doctor's working window for one calendar day, expanded
into a fixed grid of ScheduleSlot rows. Slots are owned exclusively by
their schedule; appointments only hold a weak reference to them.
"""

from datetime import datetime, date as date_type
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import (
    String, TIMESTAMP, DateTime, ForeignKey, Integer, Boolean,
    Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base

if TYPE_CHECKING:
    from models.user import User

SLOT_STATUSES = ('available', 'booked', 'cancelled', 'completed')


class Schedule(Base):
    """
    A doctor's bookable working window for a single calendar day.

    The ``date`` column always holds the canonical instant for the day
    (see utils.datetime_utils.normalize_schedule_date), which makes the
    (doctor_id, date) unique constraint the one-schedule-per-day guarantee.
    """

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    doctor_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    """Owning doctor."""

    date: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    """Calendar day, stored as naive UTC at the canonical hour."""

    start_time: Mapped[str] = mapped_column(String(5))
    """Window start, "HH:MM" 24-hour."""

    end_time: Mapped[str] = mapped_column(String(5))
    """Window end, "HH:MM" 24-hour."""

    total_slots: Mapped[int] = mapped_column(Integer)
    slot_duration: Mapped[int] = mapped_column(Integer)
    """Minutes per slot, floor(window / total_slots)."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive schedules are invisible to booking and availability."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    doctor: Mapped["User"] = relationship()
    slots: Mapped[List["ScheduleSlot"]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="ScheduleSlot.slot_number",
    )

    __table_args__ = (
        UniqueConstraint('doctor_id', 'date', name='uq_schedules_doctor_date'),
        CheckConstraint('total_slots >= 1 AND total_slots <= 50', name='check_schedule_total_slots'),
        Index('idx_schedules_date_active', 'date', 'is_active'),
    )

    @property
    def calendar_date(self) -> date_type:
        """Calendar day this schedule covers."""
        return self.date.date()

    @property
    def booked_slots(self) -> List["ScheduleSlot"]:
        return [slot for slot in self.slots if slot.status == 'booked']

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, doctor_id={self.doctor_id}, date={self.calendar_date}, {self.start_time}-{self.end_time})>"


class ScheduleSlot(Base):
    """
    One fixed-duration, individually bookable subdivision of a schedule.

    ``is_booked`` duplicates ``status == 'booked'`` for older clients; a
    check constraint keeps the two in step. patient_id, appointment_id and
    booking_time are written together by the slot claim and cleared together
    on release.
    """

    __tablename__ = "schedule_slots"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id", ondelete="CASCADE"))

    slot_number: Mapped[int] = mapped_column(Integer)
    """1-based position within the schedule."""

    start_time: Mapped[str] = mapped_column(String(5))
    end_time: Mapped[str] = mapped_column(String(5))
    duration: Mapped[int] = mapped_column(Integer)

    status: Mapped[str] = mapped_column(String(20), default='available', nullable=False)
    is_booked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    patient_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)
    appointment_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Weak reference to the appointment holding this slot (no FK)."""
    booking_time: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    schedule: Mapped["Schedule"] = relationship(back_populates="slots")

    __table_args__ = (
        UniqueConstraint('schedule_id', 'slot_number', name='uq_schedule_slots_number'),
        CheckConstraint(
            "status IN ('available', 'booked', 'cancelled', 'completed')",
            name='check_valid_slot_status'
        ),
        CheckConstraint("is_booked = (status = 'booked')", name='check_slot_booked_flag'),
        Index('idx_schedule_slots_schedule_start', 'schedule_id', 'start_time'),
    )

    @property
    def time_slot(self) -> str:
        """Full "HH:MM-HH:MM" label."""
        return f"{self.start_time}-{self.end_time}"

    def __repr__(self) -> str:
        return f"<ScheduleSlot(id={self.id}, #{self.slot_number}, {self.time_slot}, status={self.status})>"
