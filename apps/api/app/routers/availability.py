"""Availability router - therapist weekly rules, date overrides and open slots."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import settings
from app.core.deps import get_clock, get_current_actor, get_db, require_csrf_header
from app.core.permissions import Actor
from app.db.enums import Capability, OverrideKind
from app.schemas.appointment import (
    AvailabilityOverrideCreate,
    AvailabilityOverrideRead,
    AvailabilityRuleRead,
    AvailabilityRulesSet,
    AvailableSlotsResponse,
    TimeSlotRead,
)
from app.services import appointment_service

router = APIRouter()


def _require_own_availability(actor: Actor) -> None:
    if not actor.can(Capability.MANAGE_OWN_AVAILABILITY):
        raise HTTPException(status_code=403, detail="Only therapists manage availability")


# =============================================================================
# Availability Rules
# =============================================================================

@router.put(
    "/rules",
    response_model=list[AvailabilityRuleRead],
    dependencies=[Depends(require_csrf_header)],
)
def set_rules(
    data: AvailabilityRulesSet,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Replace the current therapist's weekly availability."""
    _require_own_availability(actor)
    return appointment_service.set_availability_rules(
        db,
        actor.user_id,
        [rule.model_dump() for rule in data.rules],
        timezone_name=data.timezone,
    )


@router.get("/{therapist_id}/rules", response_model=list[AvailabilityRuleRead])
def get_rules(
    therapist_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return appointment_service.get_availability_rules(db, therapist_id)


# =============================================================================
# Availability Overrides
# =============================================================================

@router.post(
    "/overrides",
    response_model=AvailabilityOverrideRead,
    dependencies=[Depends(require_csrf_header)],
)
def set_override(
    data: AvailabilityOverrideCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Create or replace the override for one date."""
    _require_own_availability(actor)
    return appointment_service.set_availability_override(
        db,
        actor.user_id,
        data.override_date,
        kind=OverrideKind(data.kind),
        start_time=data.start_time,
        end_time=data.end_time,
        reason=data.reason,
    )


@router.delete(
    "/overrides/{override_date}",
    status_code=204,
    dependencies=[Depends(require_csrf_header)],
)
def delete_override(
    override_date: date,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    _require_own_availability(actor)
    if not appointment_service.delete_availability_override(db, actor.user_id, override_date):
        raise HTTPException(status_code=404, detail="Override not found")


@router.get("/{therapist_id}/overrides", response_model=list[AvailabilityOverrideRead])
def get_overrides(
    therapist_id: UUID,
    date_start: date | None = Query(None),
    date_end: date | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return appointment_service.get_availability_overrides(db, therapist_id, date_start, date_end)


# =============================================================================
# Slots
# =============================================================================

@router.get("/{therapist_id}/slots", response_model=AvailableSlotsResponse)
def get_slots(
    therapist_id: UUID,
    day: date = Query(..., alias="date"),
    duration_minutes: int = Query(settings.DEFAULT_APPOINTMENT_DURATION_MINUTES, ge=1),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Open slots for a therapist on one date."""
    slots = appointment_service.get_available_slots(
        db, therapist_id, day, duration_minutes, clock=clock
    )
    return AvailableSlotsResponse(
        therapist_id=therapist_id,
        date=day,
        duration_minutes=duration_minutes,
        slots=[TimeSlotRead(start=slot.start, end=slot.end) for slot in slots],
    )
