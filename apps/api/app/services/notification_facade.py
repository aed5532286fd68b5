"""Notification facade for domain services.

Domain services build PendingNotification values while their transaction is
open and hand them to dispatch() after commit. Each notification is written
in its own savepoint; a failure is logged and skipped, so it can never undo
the state change that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from app.db.enums import ConnectionStatus, NotificationPriority, NotificationType
from app.db.models import Appointment, Connection, ConnectionRequest
from app.schemas.notification import NotificationData
from app.services import notification_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    """A notification decided inside a transaction, delivered after it commits."""
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: NotificationData | None = None
    action_url: str | None = None
    priority: NotificationPriority = NotificationPriority.NORMAL


def dispatch(db: Session, notifications: Iterable[PendingNotification]) -> int:
    """
    Deliver pending notifications, isolating each failure.

    Returns the number delivered.
    """
    delivered = 0
    for item in notifications:
        try:
            with db.begin_nested():
                notification_service.notify(
                    db,
                    item.user_id,
                    item.type,
                    item.title,
                    item.message,
                    data=item.data,
                    action_url=item.action_url,
                    priority=item.priority,
                )
            delivered += 1
        except Exception:
            logger.exception(
                "Notification dispatch failed type=%s user_id=%s",
                item.type.value,
                item.user_id,
            )
    try:
        db.commit()
    except Exception:
        logger.exception("Notification commit failed")
        db.rollback()
        return 0
    return delivered


# =============================================================================
# Connection requests
# =============================================================================


def request_received(request: ConnectionRequest) -> list[PendingNotification]:
    return [
        PendingNotification(
            user_id=request.target_therapist_id,
            type=NotificationType.CONNECTION_REQUEST_RECEIVED,
            title="New connection request",
            message="A guardian has asked to connect with you.",
            data=NotificationData(request_id=request.id),
            action_url=f"/connection-requests/{request.id}",
        )
    ]


def request_approved(request: ConnectionRequest, connection: Connection) -> list[PendingNotification]:
    data = NotificationData(request_id=request.id, connection_id=connection.id)
    pending = [
        PendingNotification(
            user_id=request.requester_id,
            type=NotificationType.CONNECTION_REQUEST_APPROVED,
            title="Connection request approved",
            message="Your connection request was approved.",
            data=data,
            action_url=f"/connections/{connection.id}",
        )
    ]
    if connection.is_child_connection:
        pending.append(
            PendingNotification(
                user_id=connection.client_id,
                type=NotificationType.CHILD_ASSIGNED_TO_THERAPIST,
                title="You have a new therapist",
                message="Your guardian connected you with a therapist.",
                data=data,
            )
        )
    return pending


def request_declined(request: ConnectionRequest) -> list[PendingNotification]:
    return [
        PendingNotification(
            user_id=request.requester_id,
            type=NotificationType.CONNECTION_REQUEST_DECLINED,
            title="Connection request declined",
            message="Your connection request was declined.",
            data=NotificationData(request_id=request.id),
        )
    ]


# =============================================================================
# Connections
# =============================================================================


def connection_assigned(connection: Connection) -> list[PendingNotification]:
    data = NotificationData(connection_id=connection.id)
    return [
        PendingNotification(
            user_id=connection.therapist_id,
            type=NotificationType.CONNECTION_ASSIGNED,
            title="New client assigned",
            message="An administrator assigned a new client to you.",
            data=data,
            action_url=f"/connections/{connection.id}",
        ),
        PendingNotification(
            user_id=connection.client_id,
            type=NotificationType.CONNECTION_ASSIGNED,
            title="Therapist assigned",
            message="An administrator connected you with a therapist.",
            data=data,
            action_url=f"/connections/{connection.id}",
        ),
    ]


_STATUS_NOTICES = {
    ConnectionStatus.TERMINATED: (
        NotificationType.CONNECTION_TERMINATED,
        "Connection ended",
        "A therapeutic connection has ended. Past records remain available.",
    ),
    ConnectionStatus.INACTIVE: (
        NotificationType.CONNECTION_SUSPENDED,
        "Connection paused",
        "A therapeutic connection has been paused.",
    ),
    ConnectionStatus.ACTIVE: (
        NotificationType.CONNECTION_REACTIVATED,
        "Connection resumed",
        "A therapeutic connection is active again.",
    ),
}


def connection_status_changed(
    connection: Connection,
    new_status: ConnectionStatus,
    recipients: Iterable[UUID],
    reason: str | None = None,
) -> list[PendingNotification]:
    type_, title, message = _STATUS_NOTICES[new_status]
    priority = (
        NotificationPriority.HIGH
        if new_status == ConnectionStatus.TERMINATED
        else NotificationPriority.NORMAL
    )
    data = NotificationData(connection_id=connection.id, reason=reason)
    return [
        PendingNotification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            data=data,
            priority=priority,
        )
        for user_id in dict.fromkeys(recipients)
    ]


# =============================================================================
# Appointments
# =============================================================================


def appointment_participants(appointment: Appointment) -> list[UUID]:
    """Therapist, child and guardian ids present on the appointment."""
    ids = [appointment.therapist_id, appointment.child_id, appointment.guardian_id]
    return [user_id for user_id in dict.fromkeys(ids) if user_id]


def _appointment_data(appointment: Appointment, **kwargs) -> NotificationData:
    return NotificationData(
        appointment_id=appointment.id,
        scheduled_at=appointment.scheduled_at,
        **kwargs,
    )


def appointment_requested(appointment: Appointment) -> list[PendingNotification]:
    return [
        PendingNotification(
            user_id=appointment.therapist_id,
            type=NotificationType.APPOINTMENT_REQUESTED,
            title="New appointment request",
            message="A new appointment has been requested.",
            data=_appointment_data(appointment),
            action_url=f"/appointments/{appointment.id}",
        )
    ]


def appointment_confirmed(appointment: Appointment) -> list[PendingNotification]:
    return [
        PendingNotification(
            user_id=user_id,
            type=NotificationType.APPOINTMENT_CONFIRMED,
            title="Appointment confirmed",
            message="Your appointment has been confirmed.",
            data=_appointment_data(appointment),
            action_url=f"/appointments/{appointment.id}",
        )
        for user_id in appointment_participants(appointment)
        if user_id != appointment.therapist_id
    ]


def appointment_rescheduled(appointment: Appointment) -> list[PendingNotification]:
    return [
        PendingNotification(
            user_id=user_id,
            type=NotificationType.APPOINTMENT_RESCHEDULED,
            title="Appointment rescheduled",
            message="An appointment has moved to a new time.",
            data=_appointment_data(appointment),
            action_url=f"/appointments/{appointment.id}",
        )
        for user_id in appointment_participants(appointment)
    ]


def appointment_cancelled(
    appointment: Appointment,
    connection_id: UUID | None = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
    include_actor: bool = False,
) -> list[PendingNotification]:
    data = _appointment_data(
        appointment,
        connection_id=connection_id,
        reason=appointment.cancellation_reason,
    )
    return [
        PendingNotification(
            user_id=user_id,
            type=NotificationType.APPOINTMENT_CANCELLED,
            title="Appointment cancelled",
            message="An appointment has been cancelled.",
            data=data,
            priority=priority,
        )
        for user_id in appointment_participants(appointment)
        if include_actor or user_id != appointment.cancelled_by
    ]
