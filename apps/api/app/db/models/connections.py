"""SQLAlchemy ORM models for therapeutic connections and connection requests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.enums import (
    ClientType,
    ConnectionRequestStatus,
    ConnectionStatus,
)
from app.db.models.auth import utcnow

if TYPE_CHECKING:
    from app.db.models.auth import User


class Connection(Base):
    """
    Therapist <-> client trust relationship.

    Rows are never deleted: termination is a status write and the full
    transition history lives in ConnectionEvent. At most one active row may
    exist per pair; the connection store checks both orderings under the
    therapist lock and uq_connections_active_pair backs it in the database.
    """

    __tablename__ = "connections"
    __table_args__ = (
        Index("idx_connections_therapist_status", "therapist_id", "status"),
        Index("idx_connections_client_status", "client_id", "status"),
        Index("idx_connections_pair", "therapist_id", "client_id"),
        Index(
            "uq_connections_active_pair",
            "therapist_id",
            "client_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    client_type: Mapped[str] = mapped_column(String(20), nullable=False)
    connection_type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ConnectionStatus.ACTIVE.value, nullable=False
    )

    assigned_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    terminated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    termination_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    therapist: Mapped["User"] = relationship(foreign_keys=[therapist_id])
    client: Mapped["User"] = relationship(foreign_keys=[client_id])
    events: Mapped[list["ConnectionEvent"]] = relationship(
        back_populates="connection", order_by="ConnectionEvent.occurred_at"
    )

    @property
    def is_active(self) -> bool:
        return self.status == ConnectionStatus.ACTIVE.value

    @property
    def is_terminated(self) -> bool:
        return self.status == ConnectionStatus.TERMINATED.value

    @property
    def is_child_connection(self) -> bool:
        return self.client_type == ClientType.CHILD.value

    def duration_days(self, now: datetime) -> int:
        """Whole days between assignment and termination (or now)."""
        end = self.terminated_at or now
        return max((end - self.assigned_at).days, 0)


class ConnectionEvent(Base):
    """
    Append-only lifecycle log for a connection.

    One row per transition, including creation (from_status is NULL).
    """

    __tablename__ = "connection_events"
    __table_args__ = (Index("idx_connection_events_connection", "connection_id", "occurred_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    connection_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("connections.id", ondelete="RESTRICT"), nullable=False
    )
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    connection: Mapped["Connection"] = relationship(back_populates="events")


class ConnectionRequest(Base):
    """
    Guardian-initiated ask for a connection, reviewed by the target therapist.

    target_client_id is set only for child-assignment requests. At most one
    pending request per (requester_id, target_therapist_id, target_client_id).
    """

    __tablename__ = "connection_requests"
    __table_args__ = (
        Index("idx_connection_requests_therapist_status", "target_therapist_id", "status"),
        Index("idx_connection_requests_requester", "requester_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    requester_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_therapist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    target_client_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    request_type: Mapped[str] = mapped_column(String(40), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=ConnectionRequestStatus.PENDING.value, nullable=False
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    connection_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("connections.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    requester: Mapped["User"] = relationship(foreign_keys=[requester_id])
    target_therapist: Mapped["User"] = relationship(foreign_keys=[target_therapist_id])
    target_client: Mapped["User | None"] = relationship(foreign_keys=[target_client_id])

    @property
    def is_pending(self) -> bool:
        return self.status == ConnectionRequestStatus.PENDING.value

    @property
    def client_user_id(self) -> uuid.UUID:
        """The user who becomes the client if this request is approved."""
        return self.target_client_id or self.requester_id
