"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import datetime, date as date_type
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from models import Appointment, Notification


class ErrorResponse(BaseModel):
    """Body of every business error response."""
    detail: str
    type: str  # Machine-readable error kind, e.g. "SlotAlreadyBooked"


class SlotResponse(BaseModel):
    """One slot of a schedule with its read-time status."""
    id: int
    slot_number: int
    start_time: str  # Format: "HH:MM"
    end_time: str  # Format: "HH:MM"
    time_slot: str  # Format: "HH:MM-HH:MM"
    duration: int
    status: str  # available, booked, cancelled, completed or expired
    is_booked: bool
    patient_id: Optional[int] = None  # Only shown to the owning doctor
    appointment_id: Optional[int] = None  # Only shown to the owning doctor


class ScheduleResponse(BaseModel):
    """A schedule with its annotated slot grid and counts."""
    id: int
    doctor_id: int
    date: str  # Format: "YYYY-MM-DD"
    start_time: str
    end_time: str
    total_slots: int
    slot_duration: int
    is_active: bool
    is_today: bool
    slots: List[SlotResponse]
    available_time_slots: List[str]
    available_slots_count: int
    booked_slots_count: int
    expired_slots_count: int
    schedule_status: str  # available, ended or no_slots


class ScheduleListResponse(BaseModel):
    schedules: List[ScheduleResponse]
    count: int


class PaginationInfo(BaseModel):
    current: int
    pages: int
    total: int
    has_next: bool
    has_prev: bool


class ScheduleHistoryResponse(BaseModel):
    schedules: List[ScheduleResponse]
    pagination: PaginationInfo


class BulkScheduleError(BaseModel):
    index: int
    date: Optional[str] = None
    error: str
    type: str


class BulkScheduleResponse(BaseModel):
    """Per-entry outcome of a bulk schedule save."""
    saved_schedules: List[ScheduleResponse]
    errors: List[BulkScheduleError]
    success_count: int
    error_count: int


class ScheduleExistence(BaseModel):
    id: int
    start_time: str
    end_time: str
    is_active: bool


class ScheduleExistsResponse(BaseModel):
    schedule_exists: Dict[str, ScheduleExistence]  # Keyed by "YYYY-MM-DD"


class DoctorSummaryResponse(BaseModel):
    """Public doctor information."""
    id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    specialization: Optional[str] = None
    experience_years: Optional[int] = None
    consultation_fee: float
    is_online: bool


class DoctorAvailabilityResponse(DoctorSummaryResponse):
    """A doctor together with their grid for the requested day."""
    schedule: ScheduleResponse
    offerable_now: Optional[bool] = None  # Today only: online, in window and not on break


class AvailableDoctorsResponse(BaseModel):
    date: str
    is_today: bool
    results: int
    doctors: List[DoctorAvailabilityResponse]


class DoctorStatusResponse(BaseModel):
    doctor_id: int
    is_online: bool


class BreakTimeResponse(BaseModel):
    doctor_id: int
    enabled: bool
    start_time: str
    end_time: str


class ConsultationFeeResponse(BaseModel):
    doctor_id: int
    consultation_fee: float


class RescheduleEntryResponse(BaseModel):
    old_date: date_type
    old_time: str
    new_date: date_type
    new_time: str
    reason: Optional[str] = None
    rescheduled_by: int
    rescheduled_at: datetime


class AppointmentResponse(BaseModel):
    """Response model for appointment information."""
    id: int
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    doctor_specialization: Optional[str] = None
    date: date_type  # Serialized to YYYY-MM-DD in JSON
    time: str
    time_slot: Optional[str] = None
    duration: int
    reason: str
    type: str
    notes: Optional[str] = None
    status: str
    schedule_id: Optional[int] = None
    slot_id: Optional[int] = None
    payment_id: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    reschedule_history: List[RescheduleEntryResponse] = []
    created_at: datetime

    @classmethod
    def from_model(cls, appointment: Appointment) -> "AppointmentResponse":
        doctor = appointment.doctor
        patient = appointment.patient
        profile = doctor.doctor_profile if doctor else None
        return cls(
            id=appointment.id,
            patient_id=appointment.patient_id,
            patient_name=patient.full_name if patient else None,
            doctor_id=appointment.doctor_id,
            doctor_name=doctor.full_name if doctor else None,
            doctor_specialization=profile.specialization if profile else None,
            date=appointment.date,
            time=appointment.time,
            time_slot=appointment.time_slot,
            duration=appointment.duration,
            reason=appointment.reason,
            type=appointment.type,
            notes=appointment.notes,
            status=appointment.status,
            schedule_id=appointment.schedule_id,
            slot_id=appointment.slot_id,
            payment_id=appointment.payment_id,
            cancellation_reason=appointment.cancellation_reason,
            cancelled_by=appointment.cancelled_by,
            cancelled_at=appointment.cancelled_at,
            reschedule_history=[
                RescheduleEntryResponse(
                    old_date=entry.old_date,
                    old_time=entry.old_time,
                    new_date=entry.new_date,
                    new_time=entry.new_time,
                    reason=entry.reason,
                    rescheduled_by=entry.rescheduled_by,
                    rescheduled_at=entry.rescheduled_at,
                )
                for entry in appointment.reschedule_history
            ],
            created_at=appointment.created_at,
        )


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    count: int


class PaymentBookingResponse(BaseModel):
    """Result of booking a confirmed payment."""
    appointment: AppointmentResponse
    payment_id: str
    payment_status: str = "paid"
    created: bool  # False when the payment had already been booked


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    appointment_id: Optional[int] = None
    payload: Dict[str, Any] = {}
    action_required: bool
    is_read: bool
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_model(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            appointment_id=notification.appointment_id,
            payload=notification.payload or {},
            action_required=notification.action_required,
            is_read=notification.is_read,
            read_at=notification.read_at,
            expires_at=notification.expires_at,
            created_at=notification.created_at,
        )


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int
    unread_count: int
