"""Authentication-related Pydantic schemas."""

from uuid import UUID

from pydantic import BaseModel

from app.db.enums import Capability, Role


class TokenPayload(BaseModel):
    """Decoded JWT payload structure."""
    sub: UUID  # user_id
    roles: list[str] = []
    token_version: int


class CapabilityRead(BaseModel):
    key: Capability
    label: str
    description: str


class MeResponse(BaseModel):
    """Response schema for GET /auth/me endpoint."""
    user_id: UUID
    email: str
    display_name: str
    roles: list[Role]
    guardian_id: UUID | None = None
    capabilities: list[CapabilityRead] = []
