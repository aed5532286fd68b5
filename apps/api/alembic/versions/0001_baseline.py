"""Baseline migration - users, connections, scheduling and notifications

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Creates every table of the platform. Datetimes are timezone-aware; UUID
primary keys are generated by the application.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('guardian_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('idx_users_guardian', 'users', ['guardian_id'])

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    op.create_index('idx_user_roles_role', 'user_roles', ['role'])

    # ==========================================================================
    # Connections
    # ==========================================================================
    op.create_table(
        'connections',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('client_type', sa.String(20), nullable=False),
        sa.Column('connection_type', sa.String(40), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('assigned_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('terminated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('termination_reason', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_connections_therapist_status', 'connections', ['therapist_id', 'status'])
    op.create_index('idx_connections_client_status', 'connections', ['client_id', 'status'])
    op.create_index('idx_connections_pair', 'connections', ['therapist_id', 'client_id'])
    op.create_index(
        'uq_connections_active_pair',
        'connections',
        ['therapist_id', 'client_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'connection_events',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('connection_id', sa.Uuid(), sa.ForeignKey('connections.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('actor_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_connection_events_connection', 'connection_events', ['connection_id', 'occurred_at'])

    op.create_table(
        'connection_requests',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('requester_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requester_type', sa.String(20), nullable=False),
        sa.Column('target_therapist_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('target_client_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=True),
        sa.Column('request_type', sa.String(40), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('connection_id', sa.Uuid(), sa.ForeignKey('connections.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'idx_connection_requests_therapist_status', 'connection_requests', ['target_therapist_id', 'status']
    )
    op.create_index('idx_connection_requests_requester', 'connection_requests', ['requester_id', 'created_at'])

    # ==========================================================================
    # Scheduling
    # ==========================================================================
    op.create_table(
        'availability_rules',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_valid_day_of_week'),
        sa.CheckConstraint('start_time < end_time', name='ck_rule_window_order'),
    )
    op.create_index('idx_availability_rules_therapist', 'availability_rules', ['therapist_id', 'day_of_week'])

    op.create_table(
        'availability_overrides',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('override_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False, server_default='unavailable'),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('therapist_id', 'override_date', name='uq_availability_override_date'),
    )
    op.create_index('idx_availability_overrides_therapist', 'availability_overrides', ['therapist_id'])

    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('therapist_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('child_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('guardian_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('status', sa.String(20), nullable=False, server_default='requested'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('session_url', sa.String(500), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('duration_minutes > 0', name='ck_appointment_duration_positive'),
        sa.CheckConstraint(
            'child_id IS NOT NULL OR guardian_id IS NOT NULL', name='ck_appointment_has_client'
        ),
    )
    op.create_index('idx_appointments_therapist_time', 'appointments', ['therapist_id', 'scheduled_at'])
    op.create_index('idx_appointments_child', 'appointments', ['child_id', 'scheduled_at'])
    op.create_index('idx_appointments_guardian', 'appointments', ['guardian_id', 'scheduled_at'])

    # ==========================================================================
    # Mood logs and notifications
    # ==========================================================================
    op.create_table(
        'mood_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('mood', sa.String(30), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('mood_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_mood_logs_user_date', 'mood_logs', ['user_id', 'mood_date'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('priority', sa.String(10), nullable=False, server_default='normal'),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('idx_notif_user_unread', 'notifications', ['user_id', 'read_at', 'created_at'])


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        'notifications',
        'mood_logs',
        'appointments',
        'availability_overrides',
        'availability_rules',
        'connection_requests',
        'connection_events',
        'connections',
        'user_roles',
        'users',
    ):
        op.drop_table(table)
