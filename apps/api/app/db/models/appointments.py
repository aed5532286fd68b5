"""SQLAlchemy ORM models for appointments and therapist availability."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime, time, timedelta

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import AppointmentStatus, OverrideKind
from app.db.models.auth import utcnow

if TYPE_CHECKING:
    from app.db.models.auth import User


class AvailabilityRule(Base):
    """
    Weekly availability window (e.g., "Monday 9am-12pm").

    Uses ISO weekday: Monday=0, Sunday=6.
    Multiple rules per therapist (several blocks per day are allowed).
    """

    __tablename__ = "availability_rules"
    __table_args__ = (
        Index("idx_availability_rules_therapist", "therapist_id", "day_of_week"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_valid_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_rule_window_order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    # Day of week (ISO: Monday=0, Sunday=6)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)

    # Time range (in the therapist's timezone)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    timezone: Mapped[str] = mapped_column(String(50), default="UTC", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    therapist: Mapped["User"] = relationship()


class AvailabilityOverride(Base):
    """
    Date-specific override for availability.

    kind=unavailable blocks the date; kind=custom_hours replaces the weekly
    windows for that date with [start_time, end_time).
    """

    __tablename__ = "availability_overrides"
    __table_args__ = (
        UniqueConstraint("therapist_id", "override_date", name="uq_availability_override_date"),
        Index("idx_availability_overrides_therapist", "therapist_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    override_date: Mapped[date] = mapped_column(Date, nullable=False)
    kind: Mapped[str] = mapped_column(
        String(20), default=OverrideKind.UNAVAILABLE.value, nullable=False
    )

    # NULL when unavailable; both set for custom hours
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)

    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    therapist: Mapped["User"] = relationship()

    @property
    def is_unavailable(self) -> bool:
        return self.kind == OverrideKind.UNAVAILABLE.value

    @property
    def is_custom_hours(self) -> bool:
        return self.kind == OverrideKind.CUSTOM_HOURS.value


class Appointment(Base):
    """
    A scheduled session between a therapist and a child and/or guardian.

    Requested and confirmed appointments hold their slot; the scheduler
    guarantees no two of them overlap for the same therapist.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_therapist_time", "therapist_id", "scheduled_at"),
        Index("idx_appointments_child", "child_id", "scheduled_at"),
        Index("idx_appointments_guardian", "guardian_id", "scheduled_at"),
        CheckConstraint("duration_minutes > 0", name="ck_appointment_duration_positive"),
        CheckConstraint(
            "child_id IS NOT NULL OR guardian_id IS NOT NULL",
            name="ck_appointment_has_client",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    child_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )
    guardian_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True
    )

    scheduled_at: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=AppointmentStatus.REQUESTED.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    session_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    therapist: Mapped["User"] = relationship(foreign_keys=[therapist_id])
    child: Mapped["User | None"] = relationship(foreign_keys=[child_id])
    guardian: Mapped["User | None"] = relationship(foreign_keys=[guardian_id])

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    @property
    def client_id(self) -> uuid.UUID | None:
        """Client side of the appointment: the child when present, else the guardian."""
        return self.child_id or self.guardian_id
