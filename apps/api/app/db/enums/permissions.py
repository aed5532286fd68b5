"""Role capability sets and feature allow-lists."""

from enum import Enum

from app.db.enums.auth import Role


class Capability(str, Enum):
    """Things an actor may do, independent of any specific record."""

    ASSIGN_CONNECTIONS = "assign_connections"
    TERMINATE_ANY_CONNECTION = "terminate_any_connection"
    TERMINATE_OWN_CONNECTION = "terminate_own_connection"
    REVIEW_CONNECTION_REQUESTS = "review_connection_requests"
    REQUEST_CONNECTIONS = "request_connections"
    BOOK_WITHOUT_CONNECTION = "book_without_connection"
    BYPASS_FEATURE_GATES = "bypass_feature_gates"
    VIEW_ALL_CONNECTIONS = "view_all_connections"
    MANAGE_OWN_AVAILABILITY = "manage_own_availability"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(
        {
            Capability.ASSIGN_CONNECTIONS,
            Capability.TERMINATE_ANY_CONNECTION,
            Capability.BOOK_WITHOUT_CONNECTION,
            Capability.BYPASS_FEATURE_GATES,
            Capability.VIEW_ALL_CONNECTIONS,
        }
    ),
    Role.THERAPIST: frozenset(
        {
            Capability.TERMINATE_OWN_CONNECTION,
            Capability.REVIEW_CONNECTION_REQUESTS,
            Capability.MANAGE_OWN_AVAILABILITY,
        }
    ),
    Role.GUARDIAN: frozenset({Capability.REQUEST_CONNECTIONS}),
    Role.CHILD: frozenset(),
}


class Feature(str, Enum):
    """Features gated by the therapeutic relationship between two users."""

    MESSAGING = "messaging"
    MOOD_DATA_VIEW = "mood_data_view"
    APPOINTMENT_SCHEDULING = "appointment_scheduling"
    APPOINTMENT_HISTORY = "appointment_history"
    MOOD_DATA_HISTORY = "mood_data_history"
    MESSAGE_HISTORY = "message_history"


# Guardian <-> own child, no connection record needed
FAMILY_FEATURES = frozenset(
    {Feature.MESSAGING, Feature.MOOD_DATA_VIEW, Feature.APPOINTMENT_SCHEDULING}
)

# Still readable after a connection is terminated
HISTORICAL_FEATURES = frozenset(
    {Feature.APPOINTMENT_HISTORY, Feature.MOOD_DATA_HISTORY, Feature.MESSAGE_HISTORY}
)
