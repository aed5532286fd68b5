"""Permission propagation - what a connection's status means for everything else.

Status changes flow through here so the dependent records follow:
- terminated: future appointments of the pair are cancelled, terminated_at is
  stamped, history stays readable
- inactive: future appointments are cancelled, nothing is stamped
- active: no destructive action

Feature gates answer "may A use feature F with B" from the same data.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.clock import Clock, resolve_clock
from app.core.permissions import Actor
from app.core.structured_logging import build_log_context
from app.db.enums import (
    CONNECTION_SUSPENDED_REASON,
    CONNECTION_TERMINATED_REASON,
    FAMILY_FEATURES,
    HISTORICAL_FEATURES,
    Capability,
    ConnectionStatus,
    Feature,
    NotificationPriority,
    Role,
)
from app.db.models import Appointment, Connection, MoodLog
from app.services import (
    appointment_service,
    connection_store,
    notification_facade,
    user_service,
)
from app.services.notification_facade import PendingNotification

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    """Outcome of a status change, dispatched by the caller after commit."""
    connection: Connection
    old_status: str
    new_status: str
    cancelled_appointments: list[Appointment] = field(default_factory=list)
    notifications: list[PendingNotification] = field(default_factory=list)


_CASCADE_REASONS = {
    ConnectionStatus.TERMINATED: CONNECTION_TERMINATED_REASON,
    ConnectionStatus.INACTIVE: CONNECTION_SUSPENDED_REASON,
}


def _cascade_recipients(db: Session, connection: Connection) -> list[UUID]:
    """Therapist, client and, for child clients, the child's guardian."""
    recipients = [connection.therapist_id, connection.client_id]
    if connection.is_child_connection:
        child = user_service.get_user(db, connection.client_id)
        if child and child.guardian_id:
            recipients.append(child.guardian_id)
    return recipients


# =============================================================================
# Status change cascade
# =============================================================================


def on_status_change(
    db: Session,
    connection: Connection,
    old_status: str,
    new_status: ConnectionStatus,
    actor_id: UUID | None = None,
    clock: Clock | None = None,
    reason: str | None = None,
) -> CascadeResult:
    """
    Apply the side effects of a status change inside the caller's transaction.

    Appointments are cancelled through the scheduler without committing;
    notifications are only collected.
    """
    clock = resolve_clock(clock)
    result = CascadeResult(
        connection=connection,
        old_status=old_status,
        new_status=new_status.value,
    )

    if new_status in _CASCADE_REASONS:
        for appointment in appointment_service.list_future_appointments_for_pair(
            db, connection.therapist_id, connection.client_id, clock=clock
        ):
            appointment_service.cancel_appointment(
                db,
                appointment,
                reason=_CASCADE_REASONS[new_status],
                cancelled_by=actor_id,
                clock=clock,
                commit=False,
            )
            result.cancelled_appointments.append(appointment)

    if new_status == ConnectionStatus.TERMINATED:
        connection.terminated_at = clock.now()
    db.flush()

    recipients = _cascade_recipients(db, connection)
    result.notifications.extend(
        notification_facade.connection_status_changed(connection, new_status, recipients, reason)
    )
    for appointment in result.cancelled_appointments:
        result.notifications.extend(
            notification_facade.appointment_cancelled(
                appointment,
                connection_id=connection.id,
                priority=NotificationPriority.HIGH,
                include_actor=True,
            )
        )
    return result


def apply_status_change(
    db: Session,
    connection: Connection,
    new_status: ConnectionStatus,
    actor: Actor,
    reason: str | None = None,
    clock: Clock | None = None,
) -> CascadeResult:
    """
    Status write, event log append and cascade in one transaction.

    Notifications go out after commit and cannot undo the change. The
    therapist lock is taken first and the connection re-read under it, so a
    concurrent booking either lands before the cascade or sees the new status.
    """
    clock = resolve_clock(clock)
    try:
        user_service.lock_therapist(db, connection.therapist_id)
        db.refresh(connection)
        old_status = connection_store.record_status_change(
            db, connection, new_status, actor.user_id, reason=reason, clock=clock
        )
        result = on_status_change(
            db, connection, old_status, new_status,
            actor_id=actor.user_id, clock=clock, reason=reason,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(connection)

    logger.info(
        "Connection %s -> %s, %d appointments cancelled",
        old_status,
        new_status.value,
        len(result.cancelled_appointments),
        extra=build_log_context(actor_id=actor.user_id, connection_id=connection.id),
    )
    notification_facade.dispatch(db, result.notifications)
    return result


# =============================================================================
# Feature gates
# =============================================================================


def can_access_feature(db: Session, actor: Actor, other_user_id: UUID, feature: Feature) -> bool:
    """
    May the actor use a feature with another user.

    Order: admin, active connection, family pair (guardian and own child),
    terminated connection (historical features only).
    """
    if actor.can(Capability.BYPASS_FEATURE_GATES):
        return True
    if actor.user_id == other_user_id:
        return True

    if connection_store.has_active_connection(db, actor.user_id, other_user_id):
        return True

    user = user_service.get_user(db, actor.user_id)
    other = user_service.get_user(db, other_user_id)
    if user and other and user_service.is_family_pair(user, other):
        return feature in FAMILY_FEATURES

    if connection_store.find_terminated_connection(db, actor.user_id, other_user_id):
        return feature in HISTORICAL_FEATURES

    return False


def can_message(db: Session, actor: Actor, other_user_id: UUID) -> bool:
    return can_access_feature(db, actor, other_user_id, Feature.MESSAGING)


def can_schedule_appointment(db: Session, actor: Actor, other_user_id: UUID) -> bool:
    return can_access_feature(db, actor, other_user_id, Feature.APPOINTMENT_SCHEDULING)


def can_view_mood_data(db: Session, actor: Actor, other_user_id: UUID) -> bool:
    return can_access_feature(db, actor, other_user_id, Feature.MOOD_DATA_VIEW)


def get_accessible_mood_data(
    db: Session,
    viewer: Actor,
    child_id: UUID,
    start: date | None = None,
    end: date | None = None,
) -> list[MoodLog]:
    """
    Mood entries the viewer may read for a child.

    Live access returns the requested range. A terminated connection still
    admits historical reads, capped at the termination date whatever range
    was asked for. No access returns an empty list.
    """
    cutoff: date | None = None
    if not can_view_mood_data(db, viewer, child_id):
        if not can_access_feature(db, viewer, child_id, Feature.MOOD_DATA_HISTORY):
            return []
        terminated = connection_store.find_terminated_connection(db, viewer.user_id, child_id)
        if not terminated or not terminated.terminated_at:
            return []
        cutoff = terminated.terminated_at.date()

    query = db.query(MoodLog).filter(MoodLog.user_id == child_id)
    if start:
        query = query.filter(MoodLog.mood_date >= start)
    if end:
        query = query.filter(MoodLog.mood_date <= end)
    if cutoff:
        query = query.filter(MoodLog.mood_date <= cutoff)
    return query.order_by(MoodLog.mood_date.desc()).all()


def get_accessible_appointments(
    db: Session,
    viewer: Actor,
    other_user_id: UUID | None = None,
    clock: Clock | None = None,
) -> list[Appointment]:
    """
    Appointments the viewer may see.

    Therapists see all past appointments and future ones only where the
    connection with that client is still active. Guardians and children see
    their own.
    """
    now = resolve_clock(clock).now()
    appointments = appointment_service.list_appointments_for_user(db, viewer.user_id)
    if other_user_id:
        appointments = [
            a for a in appointments
            if other_user_id in (a.therapist_id, a.child_id, a.guardian_id)
        ]

    if not viewer.has_role(Role.THERAPIST) or viewer.is_admin:
        return appointments

    active_cache: dict[UUID, bool] = {}
    visible = []
    for appointment in appointments:
        if appointment.therapist_id != viewer.user_id or appointment.scheduled_at <= now:
            visible.append(appointment)
            continue
        client_id = appointment.client_id
        if client_id not in active_cache:
            active_cache[client_id] = connection_store.has_active_connection(
                db, viewer.user_id, client_id
            )
        if active_cache[client_id]:
            visible.append(appointment)
    return visible
