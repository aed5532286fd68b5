"""Appointments router - booking and appointment lifecycle.

Schedule changes go through appointment_service; failures surface through
the domain error handlers in main.py.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import settings
from app.core.deps import get_clock, get_current_actor, get_db, require_csrf_header
from app.core.permissions import Actor
from app.db.enums import AppointmentStatus
from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
)
from app.services import appointment_service, permission_propagation_service

router = APIRouter()


def _get_for_participant(db: Session, appointment_id: UUID, actor: Actor):
    appointment = appointment_service.require_appointment(db, appointment_id)
    if not appointment_service.is_participant(db, actor, appointment):
        raise HTTPException(status_code=403, detail="Permission denied")
    return appointment


def _get_for_therapist(db: Session, appointment_id: UUID, actor: Actor):
    appointment = _get_for_participant(db, appointment_id, actor)
    if not actor.is_admin and appointment.therapist_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Only the therapist can do this")
    return appointment


@router.post(
    "",
    response_model=AppointmentRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def book_appointment(
    data: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Book an appointment with a connected therapist."""
    params = appointment_service.BookingParams(
        therapist_id=data.therapist_id,
        scheduled_at=data.scheduled_at,
        duration_minutes=data.duration_minutes or settings.DEFAULT_APPOINTMENT_DURATION_MINUTES,
        child_id=data.child_id,
        guardian_id=data.guardian_id,
        notes=data.notes,
        status=AppointmentStatus(data.status),
    )
    return appointment_service.book_appointment(db, params, actor, clock=clock)


@router.get("", response_model=list[AppointmentRead])
def list_appointments(
    other_user_id: UUID | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Appointments the current user may see, optionally with one other user."""
    return permission_propagation_service.get_accessible_appointments(
        db, actor, other_user_id=other_user_id, clock=clock
    )


@router.get("/schedule", response_model=list[AppointmentRead])
def therapist_schedule(
    start_date: date,
    end_date: date,
    therapist_id: UUID | None = Query(None),
    include_cancelled: bool = Query(False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """A therapist's calendar between two dates (own schedule, or any for admins)."""
    therapist_id = therapist_id or actor.user_id
    if therapist_id != actor.user_id and not actor.is_admin:
        raise HTTPException(status_code=403, detail="Permission denied")
    return appointment_service.get_therapist_schedule(
        db, therapist_id, start_date, end_date, include_cancelled=include_cancelled
    )


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    return _get_for_participant(db, appointment_id, actor)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def confirm_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    appointment = _get_for_therapist(db, appointment_id, actor)
    return appointment_service.confirm_appointment(db, appointment, clock=clock)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def complete_appointment(
    appointment_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    appointment = _get_for_therapist(db, appointment_id, actor)
    return appointment_service.complete_appointment(db, appointment, clock=clock)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    appointment = _get_for_participant(db, appointment_id, actor)
    return appointment_service.reschedule_appointment(
        db, appointment, data.scheduled_at, actor, clock=clock
    )


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel | None = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    appointment = _get_for_participant(db, appointment_id, actor)
    return appointment_service.cancel_appointment(
        db,
        appointment,
        reason=data.reason if data else None,
        cancelled_by=actor.user_id,
        clock=clock,
    )
