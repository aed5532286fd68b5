"""Appointment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: requested → confirmed → completed
              ↘ cancelled ↙
    """

    REQUESTED = "requested"  # Awaiting therapist confirmation
    CONFIRMED = "confirmed"  # Approved, scheduled
    CANCELLED = "cancelled"  # Cancelled by a user or by a connection cascade
    COMPLETED = "completed"  # Session took place


class OverrideKind(str, Enum):
    """Date-specific availability override kinds."""

    UNAVAILABLE = "unavailable"  # Blocks the whole date
    CUSTOM_HOURS = "custom_hours"  # Replaces the weekly windows for that date


# Statuses that hold a slot on the therapist's calendar
ACTIVE_APPOINTMENT_STATUSES = {
    AppointmentStatus.REQUESTED,
    AppointmentStatus.CONFIRMED,
}

# Default appointment status
DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.REQUESTED

CONNECTION_TERMINATED_REASON = "connection terminated"
CONNECTION_SUSPENDED_REASON = "connection suspended"
