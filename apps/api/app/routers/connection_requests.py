"""Connection requests router - guardian requests and therapist review."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import settings
from app.core.deps import (
    get_clock,
    get_current_actor,
    get_db,
    require_admin,
    require_csrf_header,
)
from app.core.permissions import Actor
from app.core.rate_limit import limiter
from app.db.enums import Capability, ConnectionRequestStatus
from app.schemas.connection import (
    ChildAssignmentCreate,
    ConnectionRequestRead,
    RequestApprovalRead,
    RequestStats,
    TherapistRequestCreate,
)
from app.services import connection_request_service

router = APIRouter()


def _require_capability(actor: Actor, capability: Capability) -> None:
    if not actor.can(capability):
        raise HTTPException(status_code=403, detail="Permission denied")


# =============================================================================
# Create
# =============================================================================

@router.post(
    "/therapist",
    response_model=ConnectionRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(settings.RATE_LIMIT_CONNECTION_REQUESTS)
def request_therapist(
    request: Request,
    data: TherapistRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Guardian asks a therapist for a connection."""
    _require_capability(actor, Capability.REQUEST_CONNECTIONS)
    return connection_request_service.create_guardian_to_therapist_request(
        db, actor.user_id, data.therapist_id, message=data.message
    )


@router.post(
    "/child-assignment",
    response_model=ConnectionRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(settings.RATE_LIMIT_CONNECTION_REQUESTS)
def request_child_assignment(
    request: Request,
    data: ChildAssignmentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Guardian asks a connected therapist to take on one of its children."""
    _require_capability(actor, Capability.REQUEST_CONNECTIONS)
    return connection_request_service.create_child_assignment_request(
        db, actor.user_id, data.child_id, data.therapist_id, message=data.message
    )


# =============================================================================
# Read
# =============================================================================

@router.get("", response_model=list[ConnectionRequestRead])
def list_all_requests(
    status: ConnectionRequestStatus | None = Query(None),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """All requests (admin only)."""
    return connection_request_service.list_all_requests(db, status=status)


@router.get("/stats", response_model=RequestStats)
def request_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return connection_request_service.get_request_statistics(db)


@router.get("/pending", response_model=list[ConnectionRequestRead])
def list_pending(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Pending requests addressed to the current therapist."""
    _require_capability(actor, Capability.REVIEW_CONNECTION_REQUESTS)
    return connection_request_service.list_pending_requests_for_therapist(db, actor.user_id)


@router.get("/mine", response_model=list[ConnectionRequestRead])
def list_mine(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Requests the current user has made."""
    return connection_request_service.list_requests_by_requester(db, actor.user_id)


@router.get("/{request_id}", response_model=ConnectionRequestRead)
def get_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    connection_request = connection_request_service.require_request(db, request_id)
    if not actor.can(Capability.VIEW_ALL_CONNECTIONS) and actor.user_id not in (
        connection_request.requester_id,
        connection_request.target_therapist_id,
    ):
        raise HTTPException(status_code=403, detail="Permission denied")
    return connection_request


# =============================================================================
# Review
# =============================================================================

@router.post(
    "/{request_id}/approve",
    response_model=RequestApprovalRead,
    dependencies=[Depends(require_csrf_header)],
)
def approve_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Target therapist approves; the connection is created."""
    connection_request, connection = connection_request_service.approve_request(
        db, request_id, actor, clock=clock
    )
    return {"request": connection_request, "connection": connection}


@router.post(
    "/{request_id}/decline",
    response_model=ConnectionRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return connection_request_service.decline_request(db, request_id, actor, clock=clock)


@router.post(
    "/{request_id}/cancel",
    response_model=ConnectionRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_request(
    request_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Requester withdraws a pending request."""
    return connection_request_service.cancel_request(db, request_id, actor.user_id)
