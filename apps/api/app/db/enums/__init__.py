"""Enum definitions for application constants."""

from app.db.enums.appointments import (
    ACTIVE_APPOINTMENT_STATUSES,
    CONNECTION_SUSPENDED_REASON,
    CONNECTION_TERMINATED_REASON,
    DEFAULT_APPOINTMENT_STATUS,
    AppointmentStatus,
    OverrideKind,
)
from app.db.enums.auth import Role
from app.db.enums.connections import (
    TERMINAL_REQUEST_STATUSES,
    ClientType,
    ConnectionRequestStatus,
    ConnectionRequestType,
    ConnectionStatus,
    ConnectionType,
)
from app.db.enums.notifications import (
    EMAIL_PRIORITIES,
    NotificationPriority,
    NotificationType,
)
from app.db.enums.permissions import (
    FAMILY_FEATURES,
    HISTORICAL_FEATURES,
    ROLE_CAPABILITIES,
    Capability,
    Feature,
)

__all__ = [
    "ACTIVE_APPOINTMENT_STATUSES",
    "CONNECTION_SUSPENDED_REASON",
    "CONNECTION_TERMINATED_REASON",
    "DEFAULT_APPOINTMENT_STATUS",
    "EMAIL_PRIORITIES",
    "FAMILY_FEATURES",
    "HISTORICAL_FEATURES",
    "ROLE_CAPABILITIES",
    "TERMINAL_REQUEST_STATUSES",
    "AppointmentStatus",
    "Capability",
    "ClientType",
    "ConnectionRequestStatus",
    "ConnectionRequestType",
    "ConnectionStatus",
    "ConnectionType",
    "Feature",
    "NotificationPriority",
    "NotificationType",
    "OverrideKind",
    "Role",
]
