"""
User model for patients, doctors and administrators.

Accounts are owned by the external account service (sign-up, password
reset, approval). This table mirrors the fields scheduling needs to read:
identity, display name and role.
"""

from typing import Optional, TYPE_CHECKING
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base

if TYPE_CHECKING:
    from models.doctor_profile import DoctorProfile


class User(Base):
    """Account record for any platform user (patient, doctor, admin)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True)
    full_name: Mapped[str] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    role: Mapped[str] = mapped_column(String(20))
    """One of 'patient', 'doctor', 'admin'."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Account enabled flag (managed by the account service)."""

    # Metadata
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    doctor_profile: Mapped[Optional["DoctorProfile"]] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("role IN ('patient', 'doctor', 'admin')", name='check_valid_user_role'),
    )

    @property
    def is_doctor(self) -> bool:
        return self.role == 'doctor'

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
