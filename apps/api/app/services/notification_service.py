"""
Notification Service - in-app notification store.

Default Notification Dispatcher: notify() writes a Notification row and, for
high/urgent priority, queues an email. Callers that must not be affected by
failures go through notification_facade.
"""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.db.enums import EMAIL_PRIORITIES, NotificationPriority, NotificationType
from app.db.models import Notification, User
from app.schemas.notification import NotificationData


# =============================================================================
# Dispatch
# =============================================================================


def notify(
    db: Session,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    data: NotificationData | None = None,
    action_url: str | None = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> Notification | None:
    """
    Create a notification for one user.

    Returns None when notifications are disabled or the user is unknown.
    """
    if not settings.NOTIFICATIONS_ENABLED:
        return None

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None

    notification = Notification(
        user_id=user_id,
        type=type.value,
        title=title,
        message=message,
        data=data.to_json() if data else None,
        action_url=action_url,
        priority=priority.value,
    )
    db.add(notification)
    db.flush()

    if priority in EMAIL_PRIORITIES:
        from app.services import email_service

        email_service.queue_template_email(
            user,
            "notification",
            {"title": title, "message": message, "type": type.value},
        )

    return notification


def notify_batch(
    db: Session,
    user_ids: list[UUID],
    type: NotificationType,
    title: str,
    message: str,
    data: NotificationData | None = None,
    action_url: str | None = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> list[Notification]:
    """Create the same notification for several users (duplicates collapsed)."""
    created = []
    for user_id in dict.fromkeys(user_ids):
        notification = notify(
            db, user_id, type, title, message,
            data=data, action_url=action_url, priority=priority,
        )
        if notification:
            created.append(notification)
    return created


# =============================================================================
# Read side
# =============================================================================


def list_notifications(
    db: Session,
    user_id: UUID,
    unread_only: bool = False,
    limit: int = 50,
    offset: int = 0,
) -> list[Notification]:
    """List notifications for a user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()


def get_unread_count(db: Session, user_id: UUID) -> int:
    """Count unread notifications for a user."""
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read_at.is_(None),
    ).count()


def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    """
    Mark a single notification as read.

    Raises:
        NotFoundError: Notification missing or owned by another user
    """
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found")

    if not notification.read_at:
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read_at.is_(None),
    ).update({Notification.read_at: datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return result
