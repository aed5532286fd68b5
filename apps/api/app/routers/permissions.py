"""Permissions router - relationship feature gates and gated mood data."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_actor, get_db
from app.core.permissions import Actor
from app.db.enums import Feature
from app.schemas.permission import FeatureAccessRead, MoodLogRead
from app.services import permission_propagation_service

router = APIRouter()


@router.get("/features/{feature}", response_model=FeatureAccessRead)
def check_feature(
    feature: Feature,
    other_user_id: UUID = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """May the current user use a feature with another user."""
    allowed = permission_propagation_service.can_access_feature(db, actor, other_user_id, feature)
    return FeatureAccessRead(other_user_id=other_user_id, feature=feature, allowed=allowed)


@router.get("/mood/{child_id}", response_model=list[MoodLogRead])
def get_mood_data(
    child_id: UUID,
    start: date | None = Query(None),
    end: date | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Mood entries for a child, limited to what the relationship allows."""
    return permission_propagation_service.get_accessible_mood_data(
        db, actor, child_id, start=start, end=end
    )
