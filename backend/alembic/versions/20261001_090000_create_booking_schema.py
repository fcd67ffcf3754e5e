"""create booking schema

Revision ID: 20261001090000
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261001090000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name='check_valid_user_role'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_users_id', 'users', ['id'])

    op.create_table(
        'doctor_profiles',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('specialization', sa.String(100), nullable=True),
        sa.Column('experience_years', sa.Integer(), nullable=True),
        sa.Column('consultation_fee', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('break_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('break_start', sa.String(5), nullable=False, server_default='12:00'),
        sa.Column('break_end', sa.String(5), nullable=False, server_default='13:00'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.DateTime(timezone=False), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('total_slots', sa.Integer(), nullable=False),
        sa.Column('slot_duration', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('doctor_id', 'date', name='uq_schedules_doctor_date'),
        sa.CheckConstraint('total_slots >= 1 AND total_slots <= 50', name='check_schedule_total_slots'),
    )
    op.create_index('ix_schedules_id', 'schedules', ['id'])
    op.create_index('idx_schedules_date_active', 'schedules', ['date', 'is_active'])

    op.create_table(
        'schedule_slots',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('slot_number', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='available'),
        sa.Column('is_booked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('appointment_id', sa.Integer(), nullable=True),
        sa.Column('booking_time', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('schedule_id', 'slot_number', name='uq_schedule_slots_number'),
        sa.CheckConstraint(
            "status IN ('available', 'booked', 'cancelled', 'completed')",
            name='check_valid_slot_status'
        ),
        sa.CheckConstraint("is_booked = (status = 'booked')", name='check_slot_booked_flag'),
    )
    op.create_index('ix_schedule_slots_id', 'schedule_slots', ['id'])
    op.create_index('idx_schedule_slots_schedule_start', 'schedule_slots', ['schedule_id', 'start_time'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('patient_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('doctor_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(5), nullable=False),
        sa.Column('time_slot', sa.String(11), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('reason', sa.String(500), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='consultation'),
        sa.Column('notes', sa.String(1000), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('schedule_id', sa.Integer(), sa.ForeignKey('schedules.id', ondelete='SET NULL'), nullable=True),
        sa.Column('slot_id', sa.Integer(), sa.ForeignKey('schedule_slots.id', ondelete='SET NULL'), nullable=True),
        sa.Column('payment_id', sa.String(100), nullable=True),
        sa.Column('cancellation_reason', sa.String(500), nullable=True),
        sa.Column('cancelled_by', sa.String(20), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'completed', 'cancelled', 'no-show', 'rescheduled')",
            name='check_valid_appointment_status'
        ),
        sa.CheckConstraint(
            "type IN ('consultation', 'follow-up', 'checkup', 'emergency')",
            name='check_valid_appointment_type'
        ),
    )
    op.create_index('ix_appointments_id', 'appointments', ['id'])
    op.create_index('idx_appointments_patient_date', 'appointments', ['patient_id', 'date'])
    op.create_index('idx_appointments_doctor_date', 'appointments', ['doctor_id', 'date'])
    op.create_index('idx_appointments_date_time', 'appointments', ['date', 'time'])

    # At most one slot-holding appointment per doctor, day and start time
    op.execute("""
        CREATE UNIQUE INDEX uq_appointments_live_slot
        ON appointments (doctor_id, date, time)
        WHERE status IN ('scheduled', 'confirmed', 'rescheduled')
    """)

    # A payment books at most one appointment
    op.execute("""
        CREATE UNIQUE INDEX uq_appointments_payment_id
        ON appointments (payment_id)
        WHERE payment_id IS NOT NULL
    """)

    op.create_table(
        'appointment_reschedules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('appointment_id', sa.Integer(), sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('old_date', sa.Date(), nullable=False),
        sa.Column('old_time', sa.String(11), nullable=False),
        sa.Column('new_date', sa.Date(), nullable=False),
        sa.Column('new_time', sa.String(11), nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('rescheduled_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('rescheduled_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recipient_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.String(1000), nullable=False),
        sa.Column('appointment_id', sa.Integer(), sa.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('action_required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('idx_notifications_recipient_expires', 'notifications', ['recipient_id', 'expires_at'])


def downgrade() -> None:
    op.drop_table('notifications')
    op.drop_table('appointment_reschedules')
    op.execute("DROP INDEX IF EXISTS uq_appointments_payment_id")
    op.execute("DROP INDEX IF EXISTS uq_appointments_live_slot")
    op.drop_table('appointments')
    op.drop_table('schedule_slots')
    op.drop_table('schedules')
    op.drop_table('doctor_profiles')
    op.drop_table('users')
