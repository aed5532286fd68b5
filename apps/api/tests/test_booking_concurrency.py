"""
Concurrent bookings for the same slot.

Two sessions race for one slot; exactly one booking may win.
"""

import threading
from datetime import datetime, timezone

from app.core.exceptions import ValidationError
from app.core.permissions import Actor
from app.db.enums import Role
from app.db.models import Appointment
from app.services import appointment_service, connection_service
from app.services.appointment_service import BookingParams


def test_only_one_of_two_concurrent_bookings_succeeds(
    db, session_factory, therapist, guardian, admin_actor, weekday_hours, clock
):
    connection_service.create_admin_assignment(db, therapist.id, guardian.id, admin_actor, clock=clock)
    therapist_id, guardian_id = therapist.id, guardian.id
    db.close()

    slot = datetime(2030, 1, 8, 10, 0, tzinfo=timezone.utc)
    barrier = threading.Barrier(2)
    results: list[str] = []
    lock = threading.Lock()

    def attempt():
        session = session_factory()
        try:
            barrier.wait()
            appointment_service.book_appointment(
                session,
                BookingParams(therapist_id=therapist_id, scheduled_at=slot, guardian_id=guardian_id),
                Actor.of(guardian_id, Role.GUARDIAN),
                clock=clock,
            )
            outcome = "ok"
        except ValidationError:
            outcome = "conflict"
        finally:
            session.close()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(results) == ["conflict", "ok"]

    check = session_factory()
    try:
        booked = check.query(Appointment).filter(Appointment.therapist_id == therapist_id).all()
        assert len(booked) == 1
        assert booked[0].scheduled_at == slot
    finally:
        check.close()
