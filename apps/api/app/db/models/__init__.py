"""SQLAlchemy ORM models."""

from app.db.models.appointments import Appointment, AvailabilityOverride, AvailabilityRule
from app.db.models.auth import User, UserRole
from app.db.models.connections import Connection, ConnectionEvent, ConnectionRequest
from app.db.models.mood import MoodLog
from app.db.models.notifications import Notification

__all__ = [
    "Appointment",
    "AvailabilityOverride",
    "AvailabilityRule",
    "Connection",
    "ConnectionEvent",
    "ConnectionRequest",
    "MoodLog",
    "Notification",
    "User",
    "UserRole",
]
