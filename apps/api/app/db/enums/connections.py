"""Connection and connection request enums."""

from enum import Enum


class ClientType(str, Enum):
    """Which kind of client sits on the client side of a connection."""

    GUARDIAN = "guardian"
    CHILD = "child"


class ConnectionType(str, Enum):
    """How a connection came to exist."""

    ADMIN_ASSIGNED = "admin_assigned"  # Admin paired therapist and guardian
    GUARDIAN_REQUESTED = "guardian_requested"  # Therapist approved a guardian request
    GUARDIAN_CHILD_ASSIGNMENT = "guardian_child_assignment"  # Therapist approved a child assignment


class ConnectionStatus(str, Enum):
    """
    Connection lifecycle status.

    Flow: active ⇄ inactive
             ↘ terminated (terminal, from either)
    """

    ACTIVE = "active"
    INACTIVE = "inactive"  # Suspended, reversible
    TERMINATED = "terminated"  # Immutable; history is kept


class ConnectionRequestType(str, Enum):
    """Kinds of guardian-initiated requests."""

    GUARDIAN_TO_THERAPIST = "guardian_to_therapist"
    GUARDIAN_CHILD_ASSIGNMENT = "guardian_child_assignment"


class ConnectionRequestStatus(str, Enum):
    """
    Connection request status.

    Flow: pending → approved | declined | cancelled (all terminal)
    """

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


TERMINAL_REQUEST_STATUSES = {
    ConnectionRequestStatus.APPROVED,
    ConnectionRequestStatus.DECLINED,
    ConnectionRequestStatus.CANCELLED,
}
