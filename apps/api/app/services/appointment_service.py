"""Appointment service - availability, slot calculation and booking lifecycle.

Slots come from weekly availability rules, replaced for a single date by an
override (unavailable blocks the date, custom_hours supplies the only window).
Requested and confirmed appointments hold their slot; intervals are half-open
so back-to-back appointments do not conflict.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.clock import Clock, resolve_clock
from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.core.permissions import Actor
from app.core.structured_logging import build_log_context
from app.db.enums import (
    ACTIVE_APPOINTMENT_STATUSES,
    DEFAULT_APPOINTMENT_STATUS,
    AppointmentStatus,
    Capability,
    OverrideKind,
    Role,
)
from app.db.models import Appointment, AvailabilityOverride, AvailabilityRule
from app.db.types import ensure_utc
from app.services import connection_store, notification_facade, user_service

logger = logging.getLogger(__name__)

_ACTIVE_STATUS_VALUES = [s.value for s in ACTIVE_APPOINTMENT_STATUSES]


# =============================================================================
# Types
# =============================================================================

class TimeSlot(NamedTuple):
    """Available time slot (UTC)."""
    start: datetime
    end: datetime


@dataclass
class BookingParams:
    """Everything needed to book one appointment."""
    therapist_id: UUID
    scheduled_at: datetime
    duration_minutes: int = settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
    child_id: UUID | None = None
    guardian_id: UUID | None = None
    notes: str | None = None
    status: AppointmentStatus = DEFAULT_APPOINTMENT_STATUS

    @property
    def client_id(self) -> UUID | None:
        return self.child_id or self.guardian_id


def _get_timezone(name: str | None) -> ZoneInfo:
    """Get a ZoneInfo timezone with safe fallback."""
    try:
        return ZoneInfo(name or settings.DEFAULT_TIMEZONE)
    except Exception:
        return ZoneInfo("UTC")


def _validate_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0 or duration_minutes > settings.MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f"Duration must be between 1 and {settings.MAX_APPOINTMENT_DURATION_MINUTES} minutes"
        )


# =============================================================================
# Availability Rules
# =============================================================================

def set_availability_rules(
    db: Session,
    therapist_id: UUID,
    rules: list[dict],
    timezone_name: str | None = None,
) -> list[AvailabilityRule]:
    """
    Replace all availability rules for a therapist.

    rules format: [{"day_of_week": 0, "start_time": "09:00", "end_time": "17:00"}, ...]
    """
    user_service.require_user_with_role(db, therapist_id, Role.THERAPIST)
    timezone_name = timezone_name or settings.DEFAULT_TIMEZONE
    _get_timezone(timezone_name)

    parsed = []
    for rule_data in rules:
        day_of_week = int(rule_data["day_of_week"])
        start = rule_data["start_time"]
        end = rule_data["end_time"]
        start = start if isinstance(start, time) else time.fromisoformat(start)
        end = end if isinstance(end, time) else time.fromisoformat(end)
        if not 0 <= day_of_week <= 6:
            raise ValidationError("day_of_week must be between 0 (Monday) and 6 (Sunday)")
        if start >= end:
            raise ValidationError("Availability window must end after it starts")
        parsed.append((day_of_week, start, end))

    db.query(AvailabilityRule).filter(AvailabilityRule.therapist_id == therapist_id).delete()

    new_rules = []
    for day_of_week, start, end in parsed:
        rule = AvailabilityRule(
            therapist_id=therapist_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            timezone=timezone_name,
        )
        db.add(rule)
        new_rules.append(rule)

    db.commit()
    for rule in new_rules:
        db.refresh(rule)
    return new_rules


def get_availability_rules(db: Session, therapist_id: UUID) -> list[AvailabilityRule]:
    """Active weekly rules, ordered by day and start time."""
    return db.query(AvailabilityRule).filter(
        AvailabilityRule.therapist_id == therapist_id,
        AvailabilityRule.is_active.is_(True),
    ).order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time).all()


# =============================================================================
# Availability Overrides
# =============================================================================

def set_availability_override(
    db: Session,
    therapist_id: UUID,
    override_date: date,
    kind: OverrideKind = OverrideKind.UNAVAILABLE,
    start_time: time | None = None,
    end_time: time | None = None,
    reason: str | None = None,
) -> AvailabilityOverride:
    """Create or update the override for a specific date."""
    user_service.require_user_with_role(db, therapist_id, Role.THERAPIST)
    if kind == OverrideKind.CUSTOM_HOURS:
        if not start_time or not end_time:
            raise ValidationError("Custom hours require start_time and end_time")
        if start_time >= end_time:
            raise ValidationError("Custom hours must end after they start")
    else:
        start_time = end_time = None

    existing = db.query(AvailabilityOverride).filter(
        AvailabilityOverride.therapist_id == therapist_id,
        AvailabilityOverride.override_date == override_date,
    ).first()

    if existing:
        existing.kind = kind.value
        existing.start_time = start_time
        existing.end_time = end_time
        existing.reason = reason
        db.commit()
        db.refresh(existing)
        return existing

    override = AvailabilityOverride(
        therapist_id=therapist_id,
        override_date=override_date,
        kind=kind.value,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    db.add(override)
    db.commit()
    db.refresh(override)
    return override


def delete_availability_override(db: Session, therapist_id: UUID, override_date: date) -> bool:
    """Delete the override for a date. Returns False if none existed."""
    deleted = db.query(AvailabilityOverride).filter(
        AvailabilityOverride.therapist_id == therapist_id,
        AvailabilityOverride.override_date == override_date,
    ).delete()
    db.commit()
    return deleted > 0


def get_availability_overrides(
    db: Session,
    therapist_id: UUID,
    date_start: date | None = None,
    date_end: date | None = None,
) -> list[AvailabilityOverride]:
    """Overrides for a therapist, optionally limited to a date range."""
    query = db.query(AvailabilityOverride).filter(AvailabilityOverride.therapist_id == therapist_id)
    if date_start:
        query = query.filter(AvailabilityOverride.override_date >= date_start)
    if date_end:
        query = query.filter(AvailabilityOverride.override_date <= date_end)
    return query.order_by(AvailabilityOverride.override_date).all()


# =============================================================================
# Slot Calculation
# =============================================================================

def _day_windows(db: Session, therapist_id: UUID, day: date) -> list[TimeSlot]:
    """
    Bookable windows for one date, as UTC intervals.

    An override for the date wins over the weekly rules.
    """
    rules = get_availability_rules(db, therapist_id)
    therapist_tz = _get_timezone(rules[0].timezone if rules else None)

    override = db.query(AvailabilityOverride).filter(
        AvailabilityOverride.therapist_id == therapist_id,
        AvailabilityOverride.override_date == day,
    ).first()

    if override:
        if override.is_unavailable or not override.start_time or not override.end_time:
            return []
        spans = [(override.start_time, override.end_time)]
    else:
        spans = [(r.start_time, r.end_time) for r in rules if r.day_of_week == day.weekday()]

    windows = []
    for start, end in spans:
        window_start = datetime.combine(day, start, tzinfo=therapist_tz).astimezone(timezone.utc)
        window_end = datetime.combine(day, end, tzinfo=therapist_tz).astimezone(timezone.utc)
        windows.append(TimeSlot(start=window_start, end=window_end))
    return windows


def _get_conflicting_appointments(
    db: Session,
    therapist_id: UUID,
    range_start: datetime,
    range_end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """Slot-holding appointments that overlap [range_start, range_end)."""
    earliest = range_start - timedelta(minutes=settings.MAX_APPOINTMENT_DURATION_MINUTES)
    query = db.query(Appointment).filter(
        Appointment.therapist_id == therapist_id,
        Appointment.status.in_(_ACTIVE_STATUS_VALUES),
        Appointment.scheduled_at < range_end,
        Appointment.scheduled_at > earliest,
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return [
        appt for appt in query.all()
        if appt.scheduled_at < range_end and appt.ends_at > range_start
    ]


def _overlaps(start: datetime, end: datetime, appointments: list[Appointment]) -> bool:
    return any(start < appt.ends_at and end > appt.scheduled_at for appt in appointments)


def get_available_slots(
    db: Session,
    therapist_id: UUID,
    day: date,
    duration_minutes: int | None = None,
    clock: Clock | None = None,
) -> list[TimeSlot]:
    """
    Calculate open slots for one date.

    Each window is walked in duration-sized steps; a candidate survives only
    if it starts in the future and overlaps no requested/confirmed appointment.
    """
    if duration_minutes is None:
        duration_minutes = settings.DEFAULT_APPOINTMENT_DURATION_MINUTES
    _validate_duration(duration_minutes)
    now = resolve_clock(clock).now()
    step = timedelta(minutes=duration_minutes)

    windows = _day_windows(db, therapist_id, day)
    if not windows:
        return []

    existing = _get_conflicting_appointments(
        db,
        therapist_id,
        min(w.start for w in windows),
        max(w.end for w in windows),
    )

    slots: list[TimeSlot] = []
    for window in windows:
        current = window.start
        while current + step <= window.end:
            slot_end = current + step
            if current > now and not _overlaps(current, slot_end, existing):
                slots.append(TimeSlot(start=current, end=slot_end))
            current = slot_end
    return sorted(set(slots))


def is_slot_available(
    db: Session,
    therapist_id: UUID,
    start: datetime,
    duration_minutes: int,
    exclude_appointment_id: UUID | None = None,
    clock: Clock | None = None,
) -> bool:
    """
    Check a specific start time.

    The slot must start in the future, fit inside one of the date's windows,
    and overlap no other slot-holding appointment.
    """
    start = ensure_utc(start)
    end = start + timedelta(minutes=duration_minutes)
    if start <= resolve_clock(clock).now():
        return False

    rules = get_availability_rules(db, therapist_id)
    therapist_tz = _get_timezone(rules[0].timezone if rules else None)
    local_day = start.astimezone(therapist_tz).date()
    windows = _day_windows(db, therapist_id, local_day)
    if not any(w.start <= start and end <= w.end for w in windows):
        return False

    conflicts = _get_conflicting_appointments(
        db, therapist_id, start, end, exclude_appointment_id=exclude_appointment_id
    )
    return not conflicts


def _require_active_connection(db: Session, actor: Actor, therapist_id: UUID, client_id: UUID) -> None:
    """Non-admins may only schedule within an active connection."""
    if actor.can(Capability.BOOK_WITHOUT_CONNECTION):
        return
    if not connection_store.has_active_connection(db, therapist_id, client_id):
        raise ValidationError(
            "No active therapeutic relationship exists between the therapist and client"
        )


# =============================================================================
# Booking
# =============================================================================

def _can_book_for(db: Session, actor: Actor, params: BookingParams) -> bool:
    if actor.can(Capability.BOOK_WITHOUT_CONNECTION):
        return True
    if actor.user_id in (params.therapist_id, params.child_id, params.guardian_id):
        return True
    if params.child_id:
        child = user_service.get_user(db, params.child_id)
        return bool(child and child.guardian_id == actor.user_id)
    return False


def book_appointment(
    db: Session,
    params: BookingParams,
    actor: Actor,
    clock: Clock | None = None,
) -> Appointment:
    """
    Book an appointment.

    Non-admins need an active connection between the therapist and the client
    (the child when present, otherwise the guardian). The slot check and the
    insert run in one transaction under the therapist's schedule lock.

    Raises:
        AuthorizationError: Actor is not a participant or admin
        ValidationError: Bad input, no active connection, or slot unavailable
    """
    clock = resolve_clock(clock)
    _validate_duration(params.duration_minutes)
    if params.status not in ACTIVE_APPOINTMENT_STATUSES:
        raise ValidationError("New appointments must be requested or confirmed")
    if not params.client_id:
        raise ValidationError("Appointment requires a child or guardian")

    user_service.require_user_with_role(db, params.therapist_id, Role.THERAPIST)
    if params.child_id:
        child = user_service.require_user_with_role(db, params.child_id, Role.CHILD)
        if params.guardian_id and child.guardian_id != params.guardian_id:
            raise ValidationError("Child does not belong to the given guardian")
    if params.guardian_id:
        user_service.require_user_with_role(db, params.guardian_id, Role.GUARDIAN)

    if not _can_book_for(db, actor, params):
        raise AuthorizationError("Not permitted to book appointments for this client")

    scheduled_at = ensure_utc(params.scheduled_at)
    try:
        user_service.lock_therapist(db, params.therapist_id)
        _require_active_connection(db, actor, params.therapist_id, params.client_id)
        if not is_slot_available(db, params.therapist_id, scheduled_at, params.duration_minutes, clock=clock):
            raise ValidationError("Selected time slot is not available")

        appointment = Appointment(
            therapist_id=params.therapist_id,
            child_id=params.child_id,
            guardian_id=params.guardian_id,
            scheduled_at=scheduled_at,
            duration_minutes=params.duration_minutes,
            status=params.status.value,
            notes=params.notes,
        )
        if params.status == AppointmentStatus.CONFIRMED:
            appointment.confirmed_at = clock.now()
        db.add(appointment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)

    logger.info(
        "Appointment booked",
        extra=build_log_context(
            actor_id=actor.user_id,
            appointment_id=appointment.id,
            therapist_id=appointment.therapist_id,
            client_id=appointment.client_id,
        ),
    )

    from app.services import appointment_integrations

    appointment_integrations.provision_session_link(db, appointment)
    if appointment.status == AppointmentStatus.CONFIRMED.value:
        notification_facade.dispatch(db, notification_facade.appointment_confirmed(appointment))
    else:
        notification_facade.dispatch(db, notification_facade.appointment_requested(appointment))
    return appointment


def reschedule_appointment(
    db: Session,
    appointment: Appointment,
    new_start: datetime,
    actor: Actor,
    clock: Clock | None = None,
) -> Appointment:
    """
    Move an appointment to a new start time.

    Like booking, non-admins need the connection to still be active.

    Raises:
        StateConflictError: Appointment is cancelled or completed
        ValidationError: No active connection, or new slot unavailable
    """
    if AppointmentStatus(appointment.status) not in ACTIVE_APPOINTMENT_STATUSES:
        raise StateConflictError(f"Cannot reschedule appointment with status {appointment.status}")

    new_start = ensure_utc(new_start)
    try:
        user_service.lock_therapist(db, appointment.therapist_id)
        _require_active_connection(db, actor, appointment.therapist_id, appointment.client_id)
        if not is_slot_available(
            db,
            appointment.therapist_id,
            new_start,
            appointment.duration_minutes,
            exclude_appointment_id=appointment.id,
            clock=clock,
        ):
            raise ValidationError("Selected time slot is not available")
        appointment.scheduled_at = new_start
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(appointment)

    notification_facade.dispatch(db, notification_facade.appointment_rescheduled(appointment))
    return appointment


def cancel_appointment(
    db: Session,
    appointment: Appointment,
    reason: str | None = None,
    cancelled_by: UUID | None = None,
    clock: Clock | None = None,
    commit: bool = True,
) -> Appointment:
    """
    Cancel a requested or confirmed appointment.

    With commit=False the change joins the caller's transaction and no
    notification is sent; the caller owns both.

    Raises:
        StateConflictError: Appointment is already cancelled or completed
    """
    if AppointmentStatus(appointment.status) not in ACTIVE_APPOINTMENT_STATUSES:
        raise StateConflictError(f"Cannot cancel appointment with status {appointment.status}")

    appointment.status = AppointmentStatus.CANCELLED.value
    appointment.cancelled_at = resolve_clock(clock).now()
    appointment.cancelled_by = cancelled_by
    appointment.cancellation_reason = reason

    if not commit:
        db.flush()
        return appointment

    db.commit()
    db.refresh(appointment)
    notification_facade.dispatch(db, notification_facade.appointment_cancelled(appointment))
    return appointment


def confirm_appointment(
    db: Session,
    appointment: Appointment,
    clock: Clock | None = None,
) -> Appointment:
    """
    Confirm a requested appointment.

    Raises:
        StateConflictError: Appointment is not requested
    """
    if appointment.status != AppointmentStatus.REQUESTED.value:
        raise StateConflictError(f"Cannot confirm appointment with status {appointment.status}")

    appointment.status = AppointmentStatus.CONFIRMED.value
    appointment.confirmed_at = resolve_clock(clock).now()
    db.commit()
    db.refresh(appointment)

    notification_facade.dispatch(db, notification_facade.appointment_confirmed(appointment))
    return appointment


def complete_appointment(
    db: Session,
    appointment: Appointment,
    clock: Clock | None = None,
) -> Appointment:
    """Mark a confirmed appointment as completed."""
    if appointment.status != AppointmentStatus.CONFIRMED.value:
        raise StateConflictError(f"Cannot complete appointment with status {appointment.status}")

    appointment.status = AppointmentStatus.COMPLETED.value
    appointment.completed_at = resolve_clock(clock).now()
    db.commit()
    db.refresh(appointment)
    return appointment


# =============================================================================
# Queries
# =============================================================================

def get_appointment(db: Session, appointment_id: UUID) -> Appointment | None:
    """Get appointment by ID."""
    return db.query(Appointment).filter(Appointment.id == appointment_id).first()


def require_appointment(db: Session, appointment_id: UUID) -> Appointment:
    """Get appointment by ID or raise NotFoundError."""
    appointment = get_appointment(db, appointment_id)
    if not appointment:
        raise NotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def list_future_appointments_for_pair(
    db: Session,
    therapist_id: UUID,
    client_id: UUID,
    clock: Clock | None = None,
) -> list[Appointment]:
    """
    Slot-holding appointments of exactly this pair that start after now.

    The client side matches the child when present, otherwise the guardian.
    """
    now = resolve_clock(clock).now()
    return db.query(Appointment).filter(
        Appointment.therapist_id == therapist_id,
        func.coalesce(Appointment.child_id, Appointment.guardian_id) == client_id,
        Appointment.status.in_(_ACTIVE_STATUS_VALUES),
        Appointment.scheduled_at > now,
    ).order_by(Appointment.scheduled_at).all()


def list_appointments_for_user(db: Session, user_id: UUID) -> list[Appointment]:
    """Every appointment the user takes part in, in any role."""
    return db.query(Appointment).filter(
        or_(
            Appointment.therapist_id == user_id,
            Appointment.child_id == user_id,
            Appointment.guardian_id == user_id,
        )
    ).order_by(Appointment.scheduled_at).all()


def get_therapist_schedule(
    db: Session,
    therapist_id: UUID,
    start_date: date,
    end_date: date,
    include_cancelled: bool = False,
) -> list[Appointment]:
    """Therapist's appointments between two dates (inclusive, UTC days)."""
    if end_date < start_date:
        raise ValidationError("end_date must not be before start_date")
    range_start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    range_end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)

    query = db.query(Appointment).filter(
        Appointment.therapist_id == therapist_id,
        Appointment.scheduled_at >= range_start,
        Appointment.scheduled_at < range_end,
    )
    if not include_cancelled:
        query = query.filter(Appointment.status != AppointmentStatus.CANCELLED.value)
    return query.order_by(Appointment.scheduled_at).all()


def is_participant(db: Session, actor: Actor, appointment: Appointment) -> bool:
    """Admin, a party to the appointment, or the guardian of its child."""
    if actor.can(Capability.BOOK_WITHOUT_CONNECTION):
        return True
    if actor.user_id in (appointment.therapist_id, appointment.child_id, appointment.guardian_id):
        return True
    if appointment.child_id:
        child = user_service.get_user(db, appointment.child_id)
        return bool(child and child.guardian_id == actor.user_id)
    return False
