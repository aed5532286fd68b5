"""
Tests for the connection request workflow.

Coverage:
- Guardian to therapist requests and duplicate detection
- Child assignment prerequisites
- Approval mapping and reviewer checks
- Decline and cancel rules
- Statistics
"""

import pytest

from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from app.core.permissions import Actor
from app.db.enums import (
    ClientType,
    ConnectionRequestStatus,
    ConnectionType,
    NotificationType,
)
from app.db.models import ConnectionRequest, Notification
from app.services import connection_request_service, connection_service


def _notification_types(db, user):
    return [n.type for n in db.query(Notification).filter(Notification.user_id == user.id).all()]


@pytest.fixture
def guardian_connection(db, therapist, guardian, admin_actor, clock):
    """Active admin-assigned connection between therapist and guardian."""
    return connection_service.create_admin_assignment(
        db, therapist.id, guardian.id, admin_actor, clock=clock
    )


class TestGuardianRequest:
    def test_creates_pending_request_and_notifies_therapist(self, db, guardian, therapist):
        request = connection_request_service.create_guardian_to_therapist_request(
            db, guardian.id, therapist.id, message="Looking for support"
        )

        assert request.status == ConnectionRequestStatus.PENDING.value
        assert request.target_client_id is None
        assert request.message == "Looking for support"
        assert NotificationType.CONNECTION_REQUEST_RECEIVED.value in _notification_types(db, therapist)

    def test_duplicate_pending_request_rejected(self, db, guardian, therapist):
        connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

        with pytest.raises(ValidationError, match="pending request already exists"):
            connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

    def test_rejected_when_active_connection_exists(self, db, guardian, therapist, guardian_connection):
        with pytest.raises(ValidationError, match="active connection already exists"):
            connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

    def test_role_mismatch_rejected(self, db, guardian, therapist, other_therapist):
        with pytest.raises(ValidationError):
            connection_request_service.create_guardian_to_therapist_request(
                db, other_therapist.id, therapist.id
            )
        with pytest.raises(ValidationError):
            connection_request_service.create_guardian_to_therapist_request(db, guardian.id, guardian.id)

    def test_new_request_allowed_after_decline(self, db, guardian, therapist, therapist_actor):
        first = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)
        connection_request_service.decline_request(db, first.id, therapist_actor)

        second = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)
        assert second.id != first.id


class TestChildAssignmentRequest:
    def test_requires_guardian_connection(self, db, guardian, child, therapist):
        with pytest.raises(ValidationError, match="active connection with therapist"):
            connection_request_service.create_child_assignment_request(
                db, guardian.id, child.id, therapist.id
            )

    def test_child_must_belong_to_guardian(self, db, make_user, guardian, therapist, guardian_connection):
        other_guardian = make_user("guardian")
        stranger_child = make_user("child", guardian=other_guardian)

        with pytest.raises(ValidationError, match="does not belong"):
            connection_request_service.create_child_assignment_request(
                db, guardian.id, stranger_child.id, therapist.id
            )

    def test_duplicate_pending_assignment_rejected(self, db, guardian, child, therapist, guardian_connection):
        connection_request_service.create_child_assignment_request(db, guardian.id, child.id, therapist.id)

        with pytest.raises(ValidationError, match="pending child assignment"):
            connection_request_service.create_child_assignment_request(
                db, guardian.id, child.id, therapist.id
            )

    def test_child_and_guardian_requests_are_independent(self, db, guardian, child, therapist, guardian_connection):
        request = connection_request_service.create_child_assignment_request(
            db, guardian.id, child.id, therapist.id
        )

        assert request.target_client_id == child.id
        assert connection_request_service.has_pending_request(db, guardian.id, therapist.id, child.id)
        assert not connection_request_service.has_pending_request(db, guardian.id, therapist.id)


class TestApproval:
    def test_guardian_request_approval_mapping(self, db, guardian, therapist, therapist_actor, clock):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

        approved, connection = connection_request_service.approve_request(
            db, request.id, therapist_actor, clock=clock
        )

        assert approved.status == ConnectionRequestStatus.APPROVED.value
        assert approved.reviewed_by == therapist.id
        assert approved.reviewed_at == clock.now()
        assert approved.connection_id == connection.id
        assert connection.client_id == guardian.id
        assert connection.therapist_id == therapist.id
        assert connection.client_type == ClientType.GUARDIAN.value
        assert connection.connection_type == ConnectionType.GUARDIAN_REQUESTED.value
        assert connection.is_active
        assert NotificationType.CONNECTION_REQUEST_APPROVED.value in _notification_types(db, guardian)

    def test_child_assignment_approval_mapping(self, db, guardian, child, therapist, therapist_actor, guardian_connection, clock):
        request = connection_request_service.create_child_assignment_request(
            db, guardian.id, child.id, therapist.id
        )

        _, connection = connection_request_service.approve_request(db, request.id, therapist_actor, clock=clock)

        assert connection.client_id == child.id
        assert connection.client_type == ClientType.CHILD.value
        assert connection.connection_type == ConnectionType.GUARDIAN_CHILD_ASSIGNMENT.value
        assert NotificationType.CHILD_ASSIGNED_TO_THERAPIST.value in _notification_types(db, child)

    def test_only_target_therapist_can_review(self, db, guardian, therapist, other_therapist, admin_actor):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

        with pytest.raises(AuthorizationError):
            connection_request_service.approve_request(db, request.id, Actor.from_user(other_therapist))
        with pytest.raises(AuthorizationError):
            connection_request_service.decline_request(db, request.id, admin_actor)

    def test_cannot_approve_twice(self, db, guardian, therapist, therapist_actor):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)
        connection_request_service.approve_request(db, request.id, therapist_actor)

        with pytest.raises(StateConflictError):
            connection_request_service.approve_request(db, request.id, therapist_actor)
        with pytest.raises(StateConflictError):
            connection_request_service.decline_request(db, request.id, therapist_actor)

    def test_approval_fails_atomically_if_connection_exists(self, db, guardian, therapist, therapist_actor, admin_actor):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)
        connection_service.create_admin_assignment(db, therapist.id, guardian.id, admin_actor)

        with pytest.raises(ValidationError):
            connection_request_service.approve_request(db, request.id, therapist_actor)

        reloaded = db.query(ConnectionRequest).filter(ConnectionRequest.id == request.id).one()
        assert reloaded.status == ConnectionRequestStatus.PENDING.value
        assert reloaded.connection_id is None

    def test_missing_request(self, db, therapist_actor):
        from uuid import uuid4

        with pytest.raises(NotFoundError):
            connection_request_service.approve_request(db, uuid4(), therapist_actor)


class TestDeclineAndCancel:
    def test_decline(self, db, guardian, therapist, therapist_actor, clock):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

        declined = connection_request_service.decline_request(db, request.id, therapist_actor, clock=clock)

        assert declined.status == ConnectionRequestStatus.DECLINED.value
        assert declined.reviewed_at == clock.now()
        assert declined.connection_id is None
        assert NotificationType.CONNECTION_REQUEST_DECLINED.value in _notification_types(db, guardian)

    def test_only_requester_can_cancel(self, db, guardian, therapist):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)

        with pytest.raises(AuthorizationError):
            connection_request_service.cancel_request(db, request.id, therapist.id)

        cancelled = connection_request_service.cancel_request(db, request.id, guardian.id)
        assert cancelled.status == ConnectionRequestStatus.CANCELLED.value

    def test_cannot_cancel_processed_request(self, db, guardian, therapist, therapist_actor):
        request = connection_request_service.create_guardian_to_therapist_request(db, guardian.id, therapist.id)
        connection_request_service.approve_request(db, request.id, therapist_actor)

        with pytest.raises(StateConflictError):
            connection_request_service.cancel_request(db, request.id, guardian.id)


class TestQueries:
    def test_listing_and_statistics(self, db, make_user, guardian, child, therapist, therapist_actor, guardian_connection):
        second_guardian = make_user("guardian")
        pending = connection_request_service.create_guardian_to_therapist_request(
            db, second_guardian.id, therapist.id
        )
        assignment = connection_request_service.create_child_assignment_request(
            db, guardian.id, child.id, therapist.id
        )
        connection_request_service.approve_request(db, assignment.id, therapist_actor)

        pending_ids = [r.id for r in connection_request_service.list_pending_requests_for_therapist(db, therapist.id)]
        assert pending_ids == [pending.id]
        assert [r.id for r in connection_request_service.list_requests_by_requester(db, guardian.id)] == [assignment.id]
        assert len(connection_request_service.list_all_requests(db)) == 2
        assert len(connection_request_service.list_all_requests(db, ConnectionRequestStatus.APPROVED)) == 1

        stats = connection_request_service.get_request_statistics(db)
        assert stats["total_pending"] == 1
        assert stats["total_approved"] == 1
        assert stats["guardian_to_therapist"] == 1
        assert stats["child_assignments"] == 1
        assert stats["total_cancelled"] == 0
