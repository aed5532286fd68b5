"""
Tests for the connection store.

Coverage:
- Bidirectional lookups
- One active connection per pair
- Terminated connections are immutable
- Append-only event log
"""

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import NotFoundError, StateConflictError, ValidationError
from app.db.enums import ClientType, ConnectionStatus, ConnectionType
from app.db.models import Connection
from app.services import connection_store


def _connect(db, therapist, client, clock, client_type=ClientType.GUARDIAN):
    connection = connection_store.create_connection(
        db,
        therapist_id=therapist.id,
        client_id=client.id,
        client_type=client_type,
        connection_type=ConnectionType.ADMIN_ASSIGNED,
        assigned_by=None,
        clock=clock,
    )
    db.commit()
    return connection


class TestLookups:
    """Lookups ignore which side of the pair is passed first."""

    def test_active_connection_found_in_both_orders(self, db, therapist, guardian, clock):
        connection = _connect(db, therapist, guardian, clock)

        assert connection_store.find_active_connection(db, therapist.id, guardian.id).id == connection.id
        assert connection_store.find_active_connection(db, guardian.id, therapist.id).id == connection.id
        assert connection_store.has_active_connection(db, guardian.id, therapist.id)

    def test_no_connection(self, db, therapist, guardian):
        assert not connection_store.has_active_connection(db, therapist.id, guardian.id)
        assert connection_store.find_terminated_connection(db, therapist.id, guardian.id) is None

    def test_require_connection_missing(self, db):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            connection_store.require_connection(db, uuid4())

    def test_terminated_connection_found_next_to_newer_active_one(self, db, therapist, guardian, clock):
        first = _connect(db, therapist, guardian, clock)
        clock.advance(days=1)
        connection_store.record_status_change(
            db, first, ConnectionStatus.TERMINATED, None, clock=clock
        )
        db.commit()
        clock.advance(days=1)
        second = _connect(db, therapist, guardian, clock)

        terminated = connection_store.find_terminated_connection(db, guardian.id, therapist.id)
        assert terminated.id == first.id
        assert connection_store.find_active_connection(db, therapist.id, guardian.id).id == second.id


class TestUniqueness:
    def test_second_active_connection_rejected(self, db, therapist, guardian, clock):
        _connect(db, therapist, guardian, clock)

        with pytest.raises(ValidationError):
            _connect(db, therapist, guardian, clock)

    def test_reversed_pair_also_rejected(self, db, therapist, guardian, clock):
        _connect(db, therapist, guardian, clock)

        with pytest.raises(ValidationError):
            connection_store.create_connection(
                db,
                therapist_id=guardian.id,
                client_id=therapist.id,
                client_type=ClientType.GUARDIAN,
                connection_type=ConnectionType.ADMIN_ASSIGNED,
                assigned_by=None,
                clock=clock,
            )

    def test_new_connection_allowed_after_termination(self, db, therapist, guardian, clock):
        first = _connect(db, therapist, guardian, clock)
        connection_store.record_status_change(db, first, ConnectionStatus.TERMINATED, None, clock=clock)
        db.commit()

        second = _connect(db, therapist, guardian, clock)
        assert second.is_active

    def test_reactivation_blocked_by_other_active_connection(self, db, therapist, guardian, clock):
        first = _connect(db, therapist, guardian, clock)
        connection_store.record_status_change(db, first, ConnectionStatus.INACTIVE, None, clock=clock)
        db.commit()
        _connect(db, therapist, guardian, clock)

        with pytest.raises(ValidationError):
            connection_store.record_status_change(db, first, ConnectionStatus.ACTIVE, None, clock=clock)

    def test_database_rejects_second_active_row(self, db, therapist, guardian, clock):
        """Writes that skip the store still cannot create a duplicate active pair."""
        _connect(db, therapist, guardian, clock)

        db.add(
            Connection(
                therapist_id=therapist.id,
                client_id=guardian.id,
                client_type=ClientType.GUARDIAN.value,
                connection_type=ConnectionType.ADMIN_ASSIGNED.value,
                status=ConnectionStatus.ACTIVE.value,
                assigned_at=clock.now(),
            )
        )
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        assert db.query(Connection).filter(Connection.therapist_id == therapist.id).count() == 1

    def test_inactive_and_terminated_rows_do_not_count_as_active(self, db, therapist, guardian, clock):
        first = _connect(db, therapist, guardian, clock)
        connection_store.record_status_change(db, first, ConnectionStatus.TERMINATED, None, clock=clock)
        db.commit()
        second = _connect(db, therapist, guardian, clock)
        connection_store.record_status_change(db, second, ConnectionStatus.INACTIVE, None, clock=clock)
        db.commit()

        third = _connect(db, therapist, guardian, clock)
        assert third.is_active


class TestStatusChanges:
    def test_terminated_connection_is_immutable(self, db, therapist, guardian, clock):
        connection = _connect(db, therapist, guardian, clock)
        connection_store.record_status_change(
            db, connection, ConnectionStatus.TERMINATED, None, reason="moved away", clock=clock
        )
        db.commit()

        with pytest.raises(StateConflictError):
            connection_store.record_status_change(db, connection, ConnectionStatus.ACTIVE, None, clock=clock)
        with pytest.raises(StateConflictError):
            connection_store.record_status_change(db, connection, ConnectionStatus.TERMINATED, None, clock=clock)
        assert connection.termination_reason == "moved away"

    def test_noop_transition_rejected(self, db, therapist, guardian, clock):
        connection = _connect(db, therapist, guardian, clock)

        with pytest.raises(StateConflictError):
            connection_store.record_status_change(db, connection, ConnectionStatus.ACTIVE, None, clock=clock)

    def test_events_record_every_transition(self, db, therapist, guardian, admin, clock):
        connection = _connect(db, therapist, guardian, clock)
        clock.advance(hours=1)
        connection_store.record_status_change(db, connection, ConnectionStatus.INACTIVE, admin.id, clock=clock)
        clock.advance(hours=1)
        connection_store.record_status_change(
            db, connection, ConnectionStatus.TERMINATED, admin.id, reason="done", clock=clock
        )
        db.commit()

        events = connection_store.list_connection_events(db, connection.id)
        assert [(e.from_status, e.to_status) for e in events] == [
            (None, "active"),
            ("active", "inactive"),
            ("inactive", "terminated"),
        ]
        assert events[-1].actor_id == admin.id
        assert events[-1].reason == "done"

    def test_duration_days(self, db, therapist, guardian, clock):
        connection = _connect(db, therapist, guardian, clock)
        clock.advance(days=10)

        assert connection.duration_days(clock.now()) == 10
