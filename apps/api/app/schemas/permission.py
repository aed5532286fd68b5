"""Permission schemas - feature gate checks and mood data reads."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.db.enums import Feature


class FeatureAccessRead(BaseModel):
    """Answer to "may the current user use feature F with user X"."""
    other_user_id: UUID
    feature: Feature
    allowed: bool


class MoodLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    mood: str
    notes: str | None
    mood_date: date
    created_at: datetime
