"""
Notifications Router - /me/notifications endpoints.

Provides notification listing and read status.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_actor, get_db, require_csrf_header
from app.core.permissions import Actor
from app.schemas.notification import (
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from app.services import notification_service


router = APIRouter()


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """List the current user's notifications, newest first."""
    items = notification_service.list_notifications(
        db, actor.user_id, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationListResponse(
        items=[NotificationRead.model_validate(n) for n in items],
        unread_count=notification_service.get_unread_count(db, actor.user_id),
    )


@router.get("/notifications/count", response_model=UnreadCountResponse)
def get_unread_count(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Unread count only (for polling)."""
    return UnreadCountResponse(count=notification_service.get_unread_count(db, actor.user_id))


@router.patch(
    "/notifications/{notification_id}/read",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_read(
    notification_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return notification_service.mark_read(db, notification_id, actor.user_id)


@router.post(
    "/notifications/read-all",
    dependencies=[Depends(require_csrf_header)],
)
def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Mark every unread notification as read."""
    return {"updated": notification_service.mark_all_read(db, actor.user_id)}
