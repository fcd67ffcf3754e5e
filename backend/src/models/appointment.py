"""
Appointment model representing booked consultations between patients and doctors.

Appointments are independent aggregates: they are created by the booking
engine, moved through their lifecycle by status/reschedule/cancel calls, and
never physically deleted. They keep a weak back-reference to the schedule
slot that produced them so the slot can be released again.
"""

from datetime import date as date_type, datetime
from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import String, ForeignKey, Index, TIMESTAMP, Date, Integer, CheckConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_REASON_LENGTH
from core.database import Base

if TYPE_CHECKING:
    from models.user import User

APPOINTMENT_STATUSES = ('scheduled', 'confirmed', 'completed', 'cancelled', 'no-show', 'rescheduled')
APPOINTMENT_TYPES = ('consultation', 'follow-up', 'checkup', 'emergency')

# Statuses in which an appointment still holds its slot
SLOT_HOLDING_STATUSES = ('scheduled', 'confirmed', 'rescheduled')

_SLOT_HOLDING_SQL = "status IN ('scheduled', 'confirmed', 'rescheduled')"


class Appointment(Base):
    """
    A patient's booking of one slot in a doctor's schedule.

    ``time`` is the slot start ("HH:MM") and ``time_slot`` the full
    "HH:MM-HH:MM" label. The partial unique index over (doctor_id, date, time)
    makes a second live appointment for the same slot impossible at the
    record level, independently of the slot claim.
    """

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    patient_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    doctor_id: Mapped[int] = mapped_column(ForeignKey("users.id"))

    date: Mapped[date_type] = mapped_column(Date)
    time: Mapped[str] = mapped_column(String(5))
    time_slot: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=30)
    """Minutes."""

    reason: Mapped[str] = mapped_column(String(MAX_REASON_LENGTH))
    type: Mapped[str] = mapped_column(String(20), default='consultation')
    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default='scheduled')
    """One of APPOINTMENT_STATUSES."""

    schedule_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("schedules.id", ondelete="SET NULL"), nullable=True
    )
    slot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="SET NULL"), nullable=True
    )

    payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Gateway payment reference when the booking came from a payment confirmation."""

    # Cancellation details
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(MAX_REASON_LENGTH), nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """'patient', 'doctor' or 'admin'."""
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    patient: Mapped["User"] = relationship(foreign_keys=[patient_id])
    doctor: Mapped["User"] = relationship(foreign_keys=[doctor_id])
    reschedule_history: Mapped[List["AppointmentReschedule"]] = relationship(
        back_populates="appointment",
        order_by="AppointmentReschedule.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'completed', 'cancelled', 'no-show', 'rescheduled')",
            name='check_valid_appointment_status'
        ),
        CheckConstraint(
            "type IN ('consultation', 'follow-up', 'checkup', 'emergency')",
            name='check_valid_appointment_type'
        ),
        Index(
            'uq_appointments_live_slot', 'doctor_id', 'date', 'time',
            unique=True,
            postgresql_where=text(_SLOT_HOLDING_SQL),
            sqlite_where=text(_SLOT_HOLDING_SQL),
        ),
        Index(
            'uq_appointments_payment_id', 'payment_id',
            unique=True,
            postgresql_where=text('payment_id IS NOT NULL'),
            sqlite_where=text('payment_id IS NOT NULL'),
        ),
        Index('idx_appointments_patient_date', 'patient_id', 'date'),
        Index('idx_appointments_doctor_date', 'doctor_id', 'date'),
        Index('idx_appointments_date_time', 'date', 'time'),
    )

    @property
    def holds_slot(self) -> bool:
        return self.status in SLOT_HOLDING_STATUSES

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, {self.date} {self.time}, status={self.status})>"


class AppointmentReschedule(Base):
    """
    Append-only reschedule log entry.

    Rows are inserted once and never updated.
    """

    __tablename__ = "appointment_reschedules"

    id: Mapped[int] = mapped_column(primary_key=True)
    appointment_id: Mapped[int] = mapped_column(ForeignKey("appointments.id", ondelete="CASCADE"))

    old_date: Mapped[date_type] = mapped_column(Date)
    old_time: Mapped[str] = mapped_column(String(11))
    new_date: Mapped[date_type] = mapped_column(Date)
    new_time: Mapped[str] = mapped_column(String(11))
    reason: Mapped[Optional[str]] = mapped_column(String(MAX_REASON_LENGTH), nullable=True)
    rescheduled_by: Mapped[int] = mapped_column(ForeignKey("users.id"))
    rescheduled_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    appointment: Mapped["Appointment"] = relationship(back_populates="reschedule_history")
