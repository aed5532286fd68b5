"""Notification schemas - payload struct and API models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


NOTIFICATION_DATA_VERSION = 1


class NotificationData(BaseModel):
    """
    Structured payload stored on a notification.

    Versioned so readers can tell older rows apart; unknown keys go in extra.
    """
    version: int = NOTIFICATION_DATA_VERSION
    connection_id: UUID | None = None
    request_id: UUID | None = None
    appointment_id: UUID | None = None
    reason: str | None = None
    scheduled_at: datetime | None = None
    extra: dict[str, str] = Field(default_factory=dict)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class NotificationRead(BaseModel):
    """Notification response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    title: str
    message: str
    data: dict | None
    action_url: str | None
    priority: str
    read_at: datetime | None
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Notification list plus unread count."""
    items: list[NotificationRead]
    unread_count: int


class UnreadCountResponse(BaseModel):
    """Unread count only (for polling)."""
    count: int
