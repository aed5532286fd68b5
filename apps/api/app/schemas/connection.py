"""Connection schemas - Pydantic models for connections and connection requests."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Connections
# =============================================================================

class ConnectionAssign(BaseModel):
    """Admin assignment of a therapist to a guardian."""
    therapist_id: UUID
    client_id: UUID


class ConnectionStatusChange(BaseModel):
    """Body for terminate/suspend."""
    reason: str | None = Field(None, max_length=1000)


class ConnectionRead(BaseModel):
    """Schema for reading a connection."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    therapist_id: UUID
    client_id: UUID
    client_type: str
    connection_type: str
    status: str
    assigned_by: UUID | None
    assigned_at: datetime
    terminated_at: datetime | None
    termination_reason: str | None


class ConnectionEventRead(BaseModel):
    """One entry of a connection's history."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    from_status: str | None
    to_status: str
    actor_id: UUID | None
    reason: str | None
    occurred_at: datetime


class ConnectionStats(BaseModel):
    total_active: int
    total_inactive: int
    total_terminated: int
    guardian_connections: int
    child_connections: int
    admin_assigned: int
    guardian_requested: int


class CascadeSummary(BaseModel):
    """What a status change did to dependent records."""
    connection: ConnectionRead
    cancelled_appointment_ids: list[UUID]


# =============================================================================
# Connection Requests
# =============================================================================

class TherapistRequestCreate(BaseModel):
    """Guardian asks a therapist for a connection."""
    therapist_id: UUID
    message: str | None = Field(None, max_length=2000)


class ChildAssignmentCreate(BaseModel):
    """Guardian asks a connected therapist to take on a child."""
    therapist_id: UUID
    child_id: UUID
    message: str | None = Field(None, max_length=2000)


class ConnectionRequestRead(BaseModel):
    """Schema for reading a connection request."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: UUID
    requester_type: str
    target_therapist_id: UUID
    target_client_id: UUID | None
    request_type: str
    status: str
    message: str | None
    reviewed_by: UUID | None
    reviewed_at: datetime | None
    connection_id: UUID | None
    created_at: datetime


class RequestApprovalRead(BaseModel):
    request: ConnectionRequestRead
    connection: ConnectionRead


class RequestStats(BaseModel):
    total_pending: int
    total_approved: int
    total_declined: int
    total_cancelled: int
    guardian_to_therapist: int
    child_assignments: int
