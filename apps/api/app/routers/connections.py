"""Connections router - admin assignment, listing and status transitions."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.deps import (
    get_clock,
    get_current_actor,
    get_db,
    require_admin,
    require_csrf_header,
)
from app.core.permissions import Actor
from app.db.enums import ClientType, ConnectionStatus
from app.schemas.connection import (
    CascadeSummary,
    ConnectionAssign,
    ConnectionEventRead,
    ConnectionRead,
    ConnectionStats,
    ConnectionStatusChange,
)
from app.services import connection_service
from app.services.permission_propagation_service import CascadeResult

router = APIRouter()


def _cascade_to_read(result: CascadeResult) -> CascadeSummary:
    return CascadeSummary(
        connection=ConnectionRead.model_validate(result.connection),
        cancelled_appointment_ids=[a.id for a in result.cancelled_appointments],
    )


@router.get("", response_model=list[ConnectionRead])
def list_connections(
    client_type: ClientType | None = Query(None),
    status: Literal["active", "inactive", "terminated", "any"] = Query("active"),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List connections visible to the current user."""
    return connection_service.get_connections_for(
        db,
        actor,
        client_type=client_type,
        status=None if status == "any" else ConnectionStatus(status),
    )


@router.get("/stats", response_model=ConnectionStats)
def connection_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Platform-wide connection counts (admin only)."""
    return connection_service.get_connection_statistics(db)


@router.post(
    "/assign",
    response_model=ConnectionRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def assign_connection(
    data: ConnectionAssign,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Pair a therapist with a guardian (admin only)."""
    return connection_service.create_admin_assignment(
        db, data.therapist_id, data.client_id, actor, clock=clock
    )


@router.get("/{connection_id}", response_model=ConnectionRead)
def get_connection(
    connection_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return connection_service.get_visible_connection(db, connection_id, actor)


@router.get("/{connection_id}/history", response_model=list[ConnectionEventRead])
def get_connection_history(
    connection_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Lifecycle events of a connection, oldest first."""
    connection_service.get_visible_connection(db, connection_id, actor)
    return connection_service.get_connection_history(db, connection_id)


@router.post(
    "/{connection_id}/terminate",
    response_model=CascadeSummary,
    dependencies=[Depends(require_csrf_header)],
)
def terminate_connection(
    connection_id: UUID,
    data: ConnectionStatusChange | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """End a connection; future appointments of the pair are cancelled."""
    result = connection_service.terminate_connection(
        db, connection_id, actor, reason=data.reason if data else None, clock=clock
    )
    return _cascade_to_read(result)


@router.post(
    "/{connection_id}/suspend",
    response_model=CascadeSummary,
    dependencies=[Depends(require_csrf_header)],
)
def suspend_connection(
    connection_id: UUID,
    data: ConnectionStatusChange | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    result = connection_service.suspend_connection(
        db, connection_id, actor, reason=data.reason if data else None, clock=clock
    )
    return _cascade_to_read(result)


@router.post(
    "/{connection_id}/reactivate",
    response_model=CascadeSummary,
    dependencies=[Depends(require_csrf_header)],
)
def reactivate_connection(
    connection_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    result = connection_service.reactivate_connection(db, connection_id, actor, clock=clock)
    return _cascade_to_read(result)
