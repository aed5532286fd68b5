"""Service for guardian-initiated connection requests (therapist approval workflow)."""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import Clock, resolve_clock
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.core.permissions import Actor
from app.core.structured_logging import build_log_context
from app.db.enums import (
    ClientType,
    ConnectionRequestStatus,
    ConnectionRequestType,
    ConnectionType,
    Role,
)
from app.db.models import Connection, ConnectionRequest
from app.services import connection_store, notification_facade, user_service

logger = logging.getLogger(__name__)


# Approval mapping: request type -> (client type, connection type)
APPROVAL_MAPPING: dict[ConnectionRequestType, tuple[ClientType, ConnectionType]] = {
    ConnectionRequestType.GUARDIAN_TO_THERAPIST: (
        ClientType.GUARDIAN,
        ConnectionType.GUARDIAN_REQUESTED,
    ),
    ConnectionRequestType.GUARDIAN_CHILD_ASSIGNMENT: (
        ClientType.CHILD,
        ConnectionType.GUARDIAN_CHILD_ASSIGNMENT,
    ),
}


# =============================================================================
# Queries
# =============================================================================


def get_request(db: Session, request_id: UUID) -> ConnectionRequest | None:
    """Get a connection request by ID."""
    return db.query(ConnectionRequest).filter(ConnectionRequest.id == request_id).first()


def require_request(db: Session, request_id: UUID) -> ConnectionRequest:
    request = get_request(db, request_id)
    if not request:
        raise NotFoundError(f"Connection request {request_id} not found")
    return request


def has_pending_request(
    db: Session,
    requester_id: UUID,
    therapist_id: UUID,
    client_id: UUID | None = None,
) -> bool:
    """Check for a pending request with the same (requester, therapist, client) key."""
    query = db.query(ConnectionRequest).filter(
        ConnectionRequest.requester_id == requester_id,
        ConnectionRequest.target_therapist_id == therapist_id,
        ConnectionRequest.status == ConnectionRequestStatus.PENDING.value,
    )
    if client_id is None:
        query = query.filter(ConnectionRequest.target_client_id.is_(None))
    else:
        query = query.filter(ConnectionRequest.target_client_id == client_id)
    return db.query(query.exists()).scalar()


def list_pending_requests_for_therapist(db: Session, therapist_id: UUID) -> list[ConnectionRequest]:
    """Pending requests addressed to a therapist, oldest first."""
    return db.query(ConnectionRequest).filter(
        ConnectionRequest.target_therapist_id == therapist_id,
        ConnectionRequest.status == ConnectionRequestStatus.PENDING.value,
    ).order_by(ConnectionRequest.created_at).all()


def list_requests_by_requester(db: Session, requester_id: UUID) -> list[ConnectionRequest]:
    """All requests a guardian has made, newest first."""
    return db.query(ConnectionRequest).filter(
        ConnectionRequest.requester_id == requester_id,
    ).order_by(ConnectionRequest.created_at.desc()).all()


def list_all_requests(
    db: Session,
    status: ConnectionRequestStatus | None = None,
) -> list[ConnectionRequest]:
    """Admin view of requests, optionally filtered by status."""
    query = db.query(ConnectionRequest)
    if status:
        query = query.filter(ConnectionRequest.status == status.value)
    return query.order_by(ConnectionRequest.created_at.desc()).all()


def get_request_statistics(db: Session) -> dict[str, int]:
    """Request counts by status and by type."""
    by_status = dict(
        db.query(ConnectionRequest.status, func.count(ConnectionRequest.id))
        .group_by(ConnectionRequest.status)
        .all()
    )
    by_type = dict(
        db.query(ConnectionRequest.request_type, func.count(ConnectionRequest.id))
        .group_by(ConnectionRequest.request_type)
        .all()
    )
    return {
        "total_pending": by_status.get(ConnectionRequestStatus.PENDING.value, 0),
        "total_approved": by_status.get(ConnectionRequestStatus.APPROVED.value, 0),
        "total_declined": by_status.get(ConnectionRequestStatus.DECLINED.value, 0),
        "total_cancelled": by_status.get(ConnectionRequestStatus.CANCELLED.value, 0),
        "guardian_to_therapist": by_type.get(ConnectionRequestType.GUARDIAN_TO_THERAPIST.value, 0),
        "child_assignments": by_type.get(ConnectionRequestType.GUARDIAN_CHILD_ASSIGNMENT.value, 0),
    }


# =============================================================================
# Create
# =============================================================================


def create_guardian_to_therapist_request(
    db: Session,
    guardian_id: UUID,
    therapist_id: UUID,
    message: str | None = None,
) -> ConnectionRequest:
    """
    Guardian asks a therapist for a connection.

    Raises:
        ValidationError: Role mismatch, active connection or pending request exists
    """
    user_service.require_user_with_role(db, guardian_id, Role.GUARDIAN)
    user_service.require_user_with_role(db, therapist_id, Role.THERAPIST)

    if connection_store.has_active_connection(db, guardian_id, therapist_id):
        raise ValidationError("An active connection already exists between this guardian and therapist")
    if has_pending_request(db, guardian_id, therapist_id):
        raise ValidationError("A pending request already exists between this guardian and therapist")

    request = ConnectionRequest(
        requester_id=guardian_id,
        requester_type=Role.GUARDIAN.value,
        target_therapist_id=therapist_id,
        request_type=ConnectionRequestType.GUARDIAN_TO_THERAPIST.value,
        status=ConnectionRequestStatus.PENDING.value,
        message=message,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        "Connection request created",
        extra=build_log_context(actor_id=guardian_id, request_id=request.id, therapist_id=therapist_id),
    )
    notification_facade.dispatch(db, notification_facade.request_received(request))
    return request


def create_child_assignment_request(
    db: Session,
    guardian_id: UUID,
    child_id: UUID,
    therapist_id: UUID,
    message: str | None = None,
) -> ConnectionRequest:
    """
    Guardian asks a therapist it is connected with to take on one of its children.

    Raises:
        ValidationError: Child not the guardian's, no guardian connection,
            or an active connection / pending request for the child exists
    """
    guardian = user_service.require_user_with_role(db, guardian_id, Role.GUARDIAN)
    child = user_service.require_user_with_role(db, child_id, Role.CHILD)
    user_service.require_user_with_role(db, therapist_id, Role.THERAPIST)

    if not user_service.is_guardian_of(guardian, child):
        raise ValidationError("Child does not belong to the requesting guardian")
    if not connection_store.has_active_connection(db, guardian_id, therapist_id):
        raise ValidationError(
            "Guardian must have an active connection with therapist before assigning children"
        )
    if connection_store.has_active_connection(db, child_id, therapist_id):
        raise ValidationError("Child already has an active connection with this therapist")
    if has_pending_request(db, guardian_id, therapist_id, child_id):
        raise ValidationError("A pending child assignment request already exists")

    request = ConnectionRequest(
        requester_id=guardian_id,
        requester_type=Role.GUARDIAN.value,
        target_therapist_id=therapist_id,
        target_client_id=child_id,
        request_type=ConnectionRequestType.GUARDIAN_CHILD_ASSIGNMENT.value,
        status=ConnectionRequestStatus.PENDING.value,
        message=message,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        "Child assignment request created",
        extra=build_log_context(
            actor_id=guardian_id, request_id=request.id, therapist_id=therapist_id, client_id=child_id
        ),
    )
    notification_facade.dispatch(db, notification_facade.request_received(request))
    return request


# =============================================================================
# Review
# =============================================================================


def _require_reviewable(db: Session, request_id: UUID, reviewer: Actor) -> ConnectionRequest:
    request = require_request(db, request_id)
    if reviewer.user_id != request.target_therapist_id:
        raise AuthorizationError("Only the target therapist can process this request")
    if not request.is_pending:
        raise StateConflictError("Request has already been processed")
    return request


def approve_request(
    db: Session,
    request_id: UUID,
    reviewer: Actor,
    clock: Clock | None = None,
) -> tuple[ConnectionRequest, Connection]:
    """
    Approve a pending request and create its connection in one transaction.

    Returns:
        (request, connection)

    Raises:
        NotFoundError: Request missing
        AuthorizationError: Reviewer is not the target therapist
        StateConflictError: Request not pending
        ValidationError: An active connection already exists for the pair
    """
    request = _require_reviewable(db, request_id, reviewer)
    clock = resolve_clock(clock)

    client_type, connection_type = APPROVAL_MAPPING[ConnectionRequestType(request.request_type)]
    try:
        connection = connection_store.create_connection(
            db,
            therapist_id=request.target_therapist_id,
            client_id=request.client_user_id,
            client_type=client_type,
            connection_type=connection_type,
            assigned_by=reviewer.user_id,
            clock=clock,
        )
        request.status = ConnectionRequestStatus.APPROVED.value
        request.reviewed_by = reviewer.user_id
        request.reviewed_at = clock.now()
        request.connection_id = connection.id
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(request)

    logger.info(
        "Connection request approved",
        extra=build_log_context(
            actor_id=reviewer.user_id, request_id=request.id, connection_id=connection.id
        ),
    )
    notification_facade.dispatch(db, notification_facade.request_approved(request, connection))
    return request, connection


def decline_request(
    db: Session,
    request_id: UUID,
    reviewer: Actor,
    clock: Clock | None = None,
) -> ConnectionRequest:
    """
    Decline a pending request.

    Raises:
        NotFoundError: Request missing
        AuthorizationError: Reviewer is not the target therapist
        StateConflictError: Request not pending
    """
    request = _require_reviewable(db, request_id, reviewer)

    request.status = ConnectionRequestStatus.DECLINED.value
    request.reviewed_by = reviewer.user_id
    request.reviewed_at = resolve_clock(clock).now()
    db.commit()
    db.refresh(request)

    logger.info(
        "Connection request declined",
        extra=build_log_context(actor_id=reviewer.user_id, request_id=request.id),
    )
    notification_facade.dispatch(db, notification_facade.request_declined(request))
    return request


def cancel_request(db: Session, request_id: UUID, requester_id: UUID) -> ConnectionRequest:
    """
    Requester withdraws a pending request.

    Raises:
        NotFoundError: Request missing
        AuthorizationError: Caller is not the requester
        StateConflictError: Request not pending
    """
    request = require_request(db, request_id)
    if request.requester_id != requester_id:
        raise AuthorizationError("Only the requester can cancel this request")
    if not request.is_pending:
        raise StateConflictError("Only pending requests can be cancelled")

    request.status = ConnectionRequestStatus.CANCELLED.value
    db.commit()
    db.refresh(request)
    return request
