"""
Tests for permission propagation.

Status changes must cascade to the pair's future appointments and notify
everyone involved; feature gates must follow the connection state.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.permissions import Actor
from app.db.enums import (
    AppointmentStatus,
    ConnectionStatus,
    Feature,
    NotificationPriority,
    NotificationType,
)
from app.db.models import Appointment, Connection, MoodLog, Notification
from app.services import (
    connection_request_service,
    connection_service,
    notification_service,
    permission_propagation_service,
)

# Same moment as the clock fixture
NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)


def _appointment(db, therapist, scheduled_at, status=AppointmentStatus.CONFIRMED, guardian=None, child=None):
    appointment = Appointment(
        therapist_id=therapist.id,
        guardian_id=guardian.id if guardian else None,
        child_id=child.id if child else None,
        scheduled_at=scheduled_at,
        duration_minutes=60,
        status=status.value,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def _reload(db, model, obj_id):
    db.expire_all()
    return db.query(model).filter(model.id == obj_id).one()


@pytest.fixture
def guardian_connection(db, therapist, guardian, admin_actor, clock):
    return connection_service.create_admin_assignment(db, therapist.id, guardian.id, admin_actor, clock=clock)


@pytest.fixture
def child_connection(db, therapist, guardian, child, therapist_actor, guardian_connection, clock):
    request = connection_request_service.create_child_assignment_request(
        db, guardian.id, child.id, therapist.id
    )
    _, connection = connection_request_service.approve_request(db, request.id, therapist_actor, clock=clock)
    return connection


class TestCascade:
    def test_termination_cancels_only_future_pair_appointments(
        self, db, therapist, other_therapist, guardian, admin_actor, therapist_actor, guardian_connection, clock
    ):
        connection_service.create_admin_assignment(db, other_therapist.id, guardian.id, admin_actor)
        requested = _appointment(db, therapist, NOW + timedelta(days=1), AppointmentStatus.REQUESTED, guardian=guardian)
        confirmed = _appointment(db, therapist, NOW + timedelta(days=2), guardian=guardian)
        past = _appointment(db, therapist, NOW - timedelta(days=1), guardian=guardian)
        completed = _appointment(db, therapist, NOW + timedelta(hours=3), AppointmentStatus.COMPLETED, guardian=guardian)
        elsewhere = _appointment(db, other_therapist, NOW + timedelta(days=1), guardian=guardian)

        result = connection_service.terminate_connection(
            db, guardian_connection.id, therapist_actor, reason="Family moved", clock=clock
        )

        assert {a.id for a in result.cancelled_appointments} == {requested.id, confirmed.id}
        for appointment_id in (requested.id, confirmed.id):
            cancelled = _reload(db, Appointment, appointment_id)
            assert cancelled.status == AppointmentStatus.CANCELLED.value
            assert cancelled.cancellation_reason == "connection terminated"
            assert cancelled.cancelled_by == therapist.id
            assert cancelled.cancelled_at == clock.now()
        assert _reload(db, Appointment, past.id).status == AppointmentStatus.CONFIRMED.value
        assert _reload(db, Appointment, completed.id).status == AppointmentStatus.COMPLETED.value
        assert _reload(db, Appointment, elsewhere.id).status == AppointmentStatus.CONFIRMED.value

    def test_termination_stamps_terminated_at(self, db, therapist_actor, guardian_connection, clock):
        clock.advance(days=3)
        connection_service.terminate_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        connection = _reload(db, Connection, guardian_connection.id)
        assert connection.status == ConnectionStatus.TERMINATED.value
        assert connection.terminated_at == clock.now()
        assert connection.duration_days(clock.now()) == 3

    def test_suspension_cancels_with_suspended_reason(self, db, therapist, guardian, therapist_actor, guardian_connection, clock):
        upcoming = _appointment(db, therapist, NOW + timedelta(days=1), guardian=guardian)

        result = connection_service.suspend_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        assert [a.id for a in result.cancelled_appointments] == [upcoming.id]
        assert _reload(db, Appointment, upcoming.id).cancellation_reason == "connection suspended"
        assert _reload(db, Connection, guardian_connection.id).terminated_at is None

    def test_reactivation_has_no_destructive_effect(self, db, therapist, guardian, therapist_actor, guardian_connection, clock):
        connection_service.suspend_connection(db, guardian_connection.id, therapist_actor, clock=clock)
        later = _appointment(db, therapist, NOW + timedelta(days=5), guardian=guardian)

        result = connection_service.reactivate_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        assert result.cancelled_appointments == []
        assert _reload(db, Appointment, later.id).status == AppointmentStatus.CONFIRMED.value

    def test_child_cascade_matches_child_not_guardian(
        self, db, therapist, guardian, child, therapist_actor, child_connection, clock
    ):
        child_session = _appointment(db, therapist, NOW + timedelta(days=1), guardian=guardian, child=child)
        guardian_session = _appointment(db, therapist, NOW + timedelta(days=2), guardian=guardian)

        connection_service.terminate_connection(db, child_connection.id, therapist_actor, clock=clock)

        assert _reload(db, Appointment, child_session.id).status == AppointmentStatus.CANCELLED.value
        assert _reload(db, Appointment, guardian_session.id).status == AppointmentStatus.CONFIRMED.value


class TestCascadeNotifications:
    def test_child_termination_notifies_guardian(self, db, therapist, guardian, child, therapist_actor, child_connection, clock):
        connection_service.terminate_connection(db, child_connection.id, therapist_actor, clock=clock)

        notices = db.query(Notification).filter(
            Notification.type == NotificationType.CONNECTION_TERMINATED.value
        ).all()
        assert {n.user_id for n in notices} == {therapist.id, child.id, guardian.id}
        assert all(n.priority == NotificationPriority.HIGH.value for n in notices)
        assert all(n.data["connection_id"] == str(child_connection.id) for n in notices)

    def test_cancelled_appointments_notify_all_participants(
        self, db, therapist, guardian, therapist_actor, guardian_connection, clock
    ):
        appointment = _appointment(db, therapist, NOW + timedelta(days=1), guardian=guardian)

        connection_service.terminate_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        notices = db.query(Notification).filter(
            Notification.type == NotificationType.APPOINTMENT_CANCELLED.value
        ).all()
        assert {n.user_id for n in notices} == {therapist.id, guardian.id}
        assert all(n.data["appointment_id"] == str(appointment.id) for n in notices)
        assert all(n.priority == NotificationPriority.HIGH.value for n in notices)

    def test_suspension_notice_type(self, db, guardian, therapist_actor, guardian_connection, clock):
        connection_service.suspend_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        types = {
            n.type for n in db.query(Notification).filter(Notification.user_id == guardian.id)
        }
        assert NotificationType.CONNECTION_SUSPENDED.value in types

    def test_notification_failure_does_not_roll_back(
        self, db, therapist, guardian, therapist_actor, guardian_connection, clock, monkeypatch, caplog
    ):
        appointment = _appointment(db, therapist, NOW + timedelta(days=1), guardian=guardian)

        def boom(*args, **kwargs):
            raise RuntimeError("notification store unavailable")

        monkeypatch.setattr(notification_service, "notify", boom)

        result = connection_service.terminate_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        assert result.connection.is_terminated
        assert _reload(db, Connection, guardian_connection.id).is_terminated
        assert _reload(db, Appointment, appointment.id).status == AppointmentStatus.CANCELLED.value
        assert "Notification dispatch failed" in caplog.text


class TestFeatureGates:
    def test_admin_bypasses_gates(self, db, admin_actor, guardian):
        for feature in Feature:
            assert permission_propagation_service.can_access_feature(db, admin_actor, guardian.id, feature)

    def test_active_connection_grants_everything(self, db, therapist_actor, guardian, guardian_connection):
        assert permission_propagation_service.can_message(db, therapist_actor, guardian.id)
        assert permission_propagation_service.can_schedule_appointment(db, therapist_actor, guardian.id)
        assert permission_propagation_service.can_access_feature(
            db, therapist_actor, guardian.id, Feature.APPOINTMENT_HISTORY
        )

    def test_gate_is_symmetric(self, db, therapist, guardian_actor, guardian_connection):
        assert permission_propagation_service.can_message(db, guardian_actor, therapist.id)

    def test_family_pair_without_connection(self, db, guardian_actor, child):
        assert permission_propagation_service.can_message(db, guardian_actor, child.id)
        assert permission_propagation_service.can_view_mood_data(db, guardian_actor, child.id)
        assert permission_propagation_service.can_message(db, Actor.from_user(child), guardian_actor.user_id)
        assert not permission_propagation_service.can_access_feature(
            db, guardian_actor, child.id, Feature.MESSAGE_HISTORY
        )

    def test_terminated_connection_keeps_history_only(self, db, therapist_actor, guardian, guardian_connection, clock):
        connection_service.terminate_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        assert not permission_propagation_service.can_message(db, therapist_actor, guardian.id)
        assert not permission_propagation_service.can_schedule_appointment(db, therapist_actor, guardian.id)
        for feature in (Feature.APPOINTMENT_HISTORY, Feature.MOOD_DATA_HISTORY, Feature.MESSAGE_HISTORY):
            assert permission_propagation_service.can_access_feature(db, therapist_actor, guardian.id, feature)

    def test_history_survives_later_suspended_connection(
        self, db, therapist_actor, admin_actor, therapist, guardian, guardian_connection, clock
    ):
        connection_service.terminate_connection(db, guardian_connection.id, therapist_actor, clock=clock)
        clock.advance(days=1)
        second = connection_service.create_admin_assignment(db, therapist.id, guardian.id, admin_actor, clock=clock)
        clock.advance(days=1)
        connection_service.suspend_connection(db, second.id, therapist_actor, clock=clock)

        for feature in (Feature.APPOINTMENT_HISTORY, Feature.MOOD_DATA_HISTORY, Feature.MESSAGE_HISTORY):
            assert permission_propagation_service.can_access_feature(db, therapist_actor, guardian.id, feature)
        assert not permission_propagation_service.can_message(db, therapist_actor, guardian.id)
        assert not permission_propagation_service.can_schedule_appointment(db, therapist_actor, guardian.id)

    def test_suspended_connection_grants_nothing(self, db, therapist_actor, guardian, guardian_connection, clock):
        connection_service.suspend_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        for feature in Feature:
            assert not permission_propagation_service.can_access_feature(db, therapist_actor, guardian.id, feature)

    def test_no_relationship(self, db, other_therapist, guardian, guardian_connection):
        stranger = Actor.from_user(other_therapist)
        for feature in Feature:
            assert not permission_propagation_service.can_access_feature(db, stranger, guardian.id, feature)


class TestAccessibleData:
    @pytest.fixture
    def mood_logs(self, db, child):
        entries = []
        for day in (date(2030, 1, 5), date(2030, 1, 7), date(2030, 1, 10)):
            entry = MoodLog(user_id=child.id, mood="calm", mood_date=day)
            db.add(entry)
            entries.append(entry)
        db.commit()
        return entries

    def test_mood_data_with_active_connection(self, db, therapist_actor, child, child_connection, mood_logs):
        logs = permission_propagation_service.get_accessible_mood_data(db, therapist_actor, child.id)
        assert [m.mood_date for m in logs] == [date(2030, 1, 10), date(2030, 1, 7), date(2030, 1, 5)]

    def test_mood_data_capped_at_termination(self, db, therapist_actor, child, child_connection, mood_logs, clock):
        connection_service.terminate_connection(db, child_connection.id, therapist_actor, clock=clock)

        logs = permission_propagation_service.get_accessible_mood_data(
            db, therapist_actor, child.id, end=date(2030, 12, 31)
        )
        assert [m.mood_date for m in logs] == [date(2030, 1, 7), date(2030, 1, 5)]

    def test_mood_history_after_reassignment_is_suspended(
        self, db, therapist_actor, therapist, guardian, child, child_connection, mood_logs, clock
    ):
        connection_service.terminate_connection(db, child_connection.id, therapist_actor, clock=clock)
        clock.advance(days=1)
        request = connection_request_service.create_child_assignment_request(
            db, guardian.id, child.id, therapist.id
        )
        _, second = connection_request_service.approve_request(db, request.id, therapist_actor, clock=clock)
        connection_service.suspend_connection(db, second.id, therapist_actor, clock=clock)

        logs = permission_propagation_service.get_accessible_mood_data(db, therapist_actor, child.id)
        assert [m.mood_date for m in logs] == [date(2030, 1, 7), date(2030, 1, 5)]

    def test_mood_data_range_and_family(self, db, guardian_actor, child, mood_logs):
        logs = permission_propagation_service.get_accessible_mood_data(
            db, guardian_actor, child.id, start=date(2030, 1, 6)
        )
        assert [m.mood_date for m in logs] == [date(2030, 1, 10), date(2030, 1, 7)]

    def test_mood_data_denied_without_relationship(self, db, other_therapist, child, mood_logs):
        logs = permission_propagation_service.get_accessible_mood_data(
            db, Actor.from_user(other_therapist), child.id
        )
        assert logs == []

    def test_therapist_loses_future_appointments_when_suspended(
        self, db, therapist, guardian, therapist_actor, guardian_actor, guardian_connection, clock
    ):
        past = _appointment(db, therapist, NOW - timedelta(days=2), AppointmentStatus.COMPLETED, guardian=guardian)
        future = _appointment(db, therapist, NOW + timedelta(days=2), guardian=guardian)

        visible = permission_propagation_service.get_accessible_appointments(db, therapist_actor, clock=clock)
        assert [a.id for a in visible] == [past.id, future.id]

        connection_service.suspend_connection(db, guardian_connection.id, therapist_actor, clock=clock)

        visible = permission_propagation_service.get_accessible_appointments(db, therapist_actor, clock=clock)
        assert [a.id for a in visible] == [past.id]
        guardian_view = permission_propagation_service.get_accessible_appointments(
            db, guardian_actor, therapist.id, clock=clock
        )
        assert [a.id for a in guardian_view] == [past.id, future.id]
