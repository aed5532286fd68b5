"""Connection store - persistence and invariants for therapeutic connections.

Owns the Connection row and its append-only ConnectionEvent log:
- Bidirectional lookups (therapist/client ids may be given in either order)
- At most one active connection per unordered pair
- Terminated connections are immutable

Nothing here commits; callers own the transaction boundary.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, resolve_clock
from app.core.exceptions import NotFoundError, StateConflictError, ValidationError
from app.db.enums import ClientType, ConnectionStatus, ConnectionType
from app.db.models import Connection, ConnectionEvent
from app.services import user_service


def _pair_filter(user_a: UUID, user_b: UUID):
    """Match a connection between two users regardless of which side is the therapist."""
    return or_(
        and_(Connection.therapist_id == user_a, Connection.client_id == user_b),
        and_(Connection.therapist_id == user_b, Connection.client_id == user_a),
    )


# =============================================================================
# Lookups
# =============================================================================

def get_connection(db: Session, connection_id: UUID) -> Connection | None:
    """Get connection by ID."""
    return db.query(Connection).filter(Connection.id == connection_id).first()


def require_connection(db: Session, connection_id: UUID) -> Connection:
    """Get connection by ID or raise NotFoundError."""
    connection = get_connection(db, connection_id)
    if not connection:
        raise NotFoundError(f"Connection {connection_id} not found")
    return connection


def find_active_connection(db: Session, user_a: UUID, user_b: UUID) -> Connection | None:
    """Active connection between two users, checked in both role orderings."""
    return db.query(Connection).filter(
        _pair_filter(user_a, user_b),
        Connection.status == ConnectionStatus.ACTIVE.value,
    ).first()


def has_active_connection(db: Session, user_a: UUID, user_b: UUID) -> bool:
    """Bidirectional existence check for an active connection."""
    return find_active_connection(db, user_a, user_b) is not None


def find_terminated_connection(db: Session, user_a: UUID, user_b: UUID) -> Connection | None:
    """Most recently terminated connection between two users."""
    return db.query(Connection).filter(
        _pair_filter(user_a, user_b),
        Connection.status == ConnectionStatus.TERMINATED.value,
    ).order_by(Connection.terminated_at.desc()).first()


def list_connection_events(db: Session, connection_id: UUID) -> list[ConnectionEvent]:
    """Full transition history of a connection, oldest first."""
    return db.query(ConnectionEvent).filter(
        ConnectionEvent.connection_id == connection_id,
    ).order_by(ConnectionEvent.occurred_at, ConnectionEvent.id).all()


# =============================================================================
# Writes
# =============================================================================

def _append_event(
    db: Session,
    connection: Connection,
    from_status: str | None,
    to_status: str,
    actor_id: UUID | None,
    reason: str | None,
    occurred_at: datetime,
) -> ConnectionEvent:
    event = ConnectionEvent(
        connection_id=connection.id,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor_id,
        reason=reason,
        occurred_at=occurred_at,
    )
    db.add(event)
    return event


def create_connection(
    db: Session,
    therapist_id: UUID,
    client_id: UUID,
    client_type: ClientType,
    connection_type: ConnectionType,
    assigned_by: UUID | None,
    clock: Clock | None = None,
) -> Connection:
    """
    Create an active connection.

    The pair check runs under the therapist lock; the partial unique index
    on active pairs rejects anything that still slips through.

    Raises:
        ValidationError: An active connection already exists for the pair
    """
    if therapist_id == client_id:
        raise ValidationError("A user cannot be connected to themselves")
    user_service.lock_therapist(db, therapist_id)
    if has_active_connection(db, therapist_id, client_id):
        raise ValidationError("An active connection already exists between these users")

    now = resolve_clock(clock).now()
    connection = Connection(
        therapist_id=therapist_id,
        client_id=client_id,
        client_type=client_type.value,
        connection_type=connection_type.value,
        status=ConnectionStatus.ACTIVE.value,
        assigned_by=assigned_by,
        assigned_at=now,
    )
    try:
        with db.begin_nested():
            db.add(connection)
    except IntegrityError as e:
        raise ValidationError("An active connection already exists between these users") from e
    _append_event(db, connection, None, ConnectionStatus.ACTIVE.value, assigned_by, None, now)
    db.flush()
    return connection


def record_status_change(
    db: Session,
    connection: Connection,
    new_status: ConnectionStatus,
    actor_id: UUID | None,
    reason: str | None = None,
    clock: Clock | None = None,
) -> str:
    """
    Write a status transition and append it to the event log.

    Returns the previous status.

    Raises:
        StateConflictError: Connection is terminated, or already in new_status
        ValidationError: Re-activating would create a second active connection
    """
    old_status = connection.status
    if old_status == ConnectionStatus.TERMINATED.value:
        raise StateConflictError("Connection is already terminated")
    if old_status == new_status.value:
        raise StateConflictError(f"Connection is already {new_status.value}")
    if new_status == ConnectionStatus.ACTIVE:
        other = find_active_connection(db, connection.therapist_id, connection.client_id)
        if other and other.id != connection.id:
            raise ValidationError("An active connection already exists between these users")

    now = resolve_clock(clock).now()
    connection.status = new_status.value
    if new_status == ConnectionStatus.TERMINATED:
        connection.termination_reason = reason
    _append_event(db, connection, old_status, new_status.value, actor_id, reason, now)
    db.flush()
    return old_status
