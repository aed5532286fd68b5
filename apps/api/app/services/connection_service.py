"""Connection management - admin assignment, listing, termination and suspension."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from app.core.permissions import Actor, ActorKind
from app.core.structured_logging import build_log_context
from app.db.enums import (
    Capability,
    ClientType,
    ConnectionStatus,
    ConnectionType,
    Role,
)
from app.db.models import Connection, ConnectionEvent
from app.services import (
    connection_store,
    notification_facade,
    permission_propagation_service,
    user_service,
)

logger = logging.getLogger(__name__)


def has_active_connection(db: Session, user_a: UUID, user_b: UUID) -> bool:
    """Bidirectional active-connection check."""
    return connection_store.has_active_connection(db, user_a, user_b)


# =============================================================================
# Admin assignment
# =============================================================================


def create_admin_assignment(
    db: Session,
    therapist_id: UUID,
    client_id: UUID,
    admin: Actor,
    clock: Clock | None = None,
) -> Connection:
    """
    Administrator pairs a therapist with a guardian.

    Raises:
        AuthorizationError: Actor is not an administrator
        ValidationError: Wrong roles, child target, or active connection exists
    """
    if not admin.can(Capability.ASSIGN_CONNECTIONS):
        raise AuthorizationError("Only administrators can assign connections")

    user_service.require_user_with_role(db, therapist_id, Role.THERAPIST)
    client = user_service.require_user(db, client_id)
    if client.has_role(Role.CHILD) or not client.has_role(Role.GUARDIAN):
        raise ValidationError(
            "Admins can only create connections with guardians. "
            "Guardians are responsible for assigning their children."
        )
    if connection_store.has_active_connection(db, therapist_id, client_id):
        raise ValidationError("An active connection already exists between this guardian and therapist")

    try:
        connection = connection_store.create_connection(
            db,
            therapist_id=therapist_id,
            client_id=client_id,
            client_type=ClientType.GUARDIAN,
            connection_type=ConnectionType.ADMIN_ASSIGNED,
            assigned_by=admin.user_id,
            clock=clock,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(connection)

    logger.info(
        "Connection assigned by admin",
        extra=build_log_context(
            actor_id=admin.user_id,
            connection_id=connection.id,
            therapist_id=therapist_id,
            client_id=client_id,
        ),
    )
    notification_facade.dispatch(db, notification_facade.connection_assigned(connection))
    return connection


# =============================================================================
# Queries
# =============================================================================


def get_connections_for(
    db: Session,
    actor: Actor,
    client_type: ClientType | None = None,
    status: ConnectionStatus | None = ConnectionStatus.ACTIVE,
) -> list[Connection]:
    """
    Connections visible to an actor.

    Therapists see their clients, clients see their therapists, admins see
    everything. status=None means any status.
    """
    query = db.query(Connection)
    match actor.kind:
        case ActorKind.ADMIN:
            pass
        case ActorKind.THERAPIST:
            query = query.filter(Connection.therapist_id == actor.user_id)
        case ActorKind.CLIENT:
            query = query.filter(Connection.client_id == actor.user_id)
        case ActorKind.NONE:
            return []

    if client_type:
        query = query.filter(Connection.client_type == client_type.value)
    if status:
        query = query.filter(Connection.status == status.value)
    return query.order_by(Connection.assigned_at.desc()).all()


def get_visible_connection(db: Session, connection_id: UUID, actor: Actor) -> Connection:
    """
    Get one connection, checking the actor is a party to it or an admin.

    Raises:
        NotFoundError: Connection missing
        AuthorizationError: Actor may not view it
    """
    connection = connection_store.require_connection(db, connection_id)
    if actor.can(Capability.VIEW_ALL_CONNECTIONS):
        return connection
    if actor.user_id in (connection.therapist_id, connection.client_id):
        return connection
    client = user_service.get_user(db, connection.client_id)
    if client and client.guardian_id == actor.user_id:
        return connection
    raise AuthorizationError("Not permitted to view this connection")


def get_connection_history(db: Session, connection_id: UUID) -> list[ConnectionEvent]:
    """Full event log of a connection."""
    connection_store.require_connection(db, connection_id)
    return connection_store.list_connection_events(db, connection_id)


def get_connection_statistics(db: Session) -> dict[str, int]:
    """Platform-wide connection counts."""
    by_status = dict(
        db.query(Connection.status, func.count(Connection.id)).group_by(Connection.status).all()
    )
    active = db.query(Connection).filter(Connection.status == ConnectionStatus.ACTIVE.value)
    by_client_type = dict(
        active.with_entities(Connection.client_type, func.count(Connection.id))
        .group_by(Connection.client_type)
        .all()
    )
    by_connection_type = dict(
        active.with_entities(Connection.connection_type, func.count(Connection.id))
        .group_by(Connection.connection_type)
        .all()
    )
    return {
        "total_active": by_status.get(ConnectionStatus.ACTIVE.value, 0),
        "total_inactive": by_status.get(ConnectionStatus.INACTIVE.value, 0),
        "total_terminated": by_status.get(ConnectionStatus.TERMINATED.value, 0),
        "guardian_connections": by_client_type.get(ClientType.GUARDIAN.value, 0),
        "child_connections": by_client_type.get(ClientType.CHILD.value, 0),
        "admin_assigned": by_connection_type.get(ConnectionType.ADMIN_ASSIGNED.value, 0),
        "guardian_requested": by_connection_type.get(ConnectionType.GUARDIAN_REQUESTED.value, 0),
    }


# =============================================================================
# Status transitions
# =============================================================================


def _require_manageable(db: Session, connection_id: UUID, actor: Actor) -> Connection:
    connection = connection_store.require_connection(db, connection_id)
    if connection.is_terminated:
        raise StateConflictError("Connection is already terminated")
    if actor.can(Capability.TERMINATE_ANY_CONNECTION):
        return connection
    if actor.can(Capability.TERMINATE_OWN_CONNECTION) and connection.therapist_id == actor.user_id:
        return connection
    raise AuthorizationError("Therapist can only terminate their own connections")


def terminate_connection(
    db: Session,
    connection_id: UUID,
    actor: Actor,
    reason: str | None = None,
    clock: Clock | None = None,
) -> permission_propagation_service.CascadeResult:
    """
    End a connection and cascade to its future appointments.

    Raises:
        NotFoundError: Connection missing
        StateConflictError: Already terminated
        AuthorizationError: Actor is neither admin nor the owning therapist
    """
    connection = _require_manageable(db, connection_id, actor)
    return permission_propagation_service.apply_status_change(
        db, connection, ConnectionStatus.TERMINATED, actor, reason=reason, clock=clock
    )


def suspend_connection(
    db: Session,
    connection_id: UUID,
    actor: Actor,
    reason: str | None = None,
    clock: Clock | None = None,
) -> permission_propagation_service.CascadeResult:
    """
    Pause an active connection (reversible).

    Raises:
        StateConflictError: Terminated or already inactive
    """
    connection = _require_manageable(db, connection_id, actor)
    if not connection.is_active:
        raise StateConflictError("Only active connections can be suspended")
    return permission_propagation_service.apply_status_change(
        db, connection, ConnectionStatus.INACTIVE, actor, reason=reason, clock=clock
    )


def reactivate_connection(
    db: Session,
    connection_id: UUID,
    actor: Actor,
    clock: Clock | None = None,
) -> permission_propagation_service.CascadeResult:
    """
    Resume an inactive connection.

    Raises:
        StateConflictError: Connection is not inactive
        ValidationError: Another active connection exists for the pair
    """
    connection = _require_manageable(db, connection_id, actor)
    if connection.status != ConnectionStatus.INACTIVE.value:
        raise StateConflictError("Only inactive connections can be reactivated")
    return permission_propagation_service.apply_status_change(
        db, connection, ConnectionStatus.ACTIVE, actor, clock=clock
    )
