"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of in-app notifications."""

    # Connection notifications
    CONNECTION_ASSIGNED = "connection_assigned"
    CONNECTION_REQUEST_RECEIVED = "connection_request_received"
    CONNECTION_REQUEST_APPROVED = "connection_request_approved"
    CONNECTION_REQUEST_DECLINED = "connection_request_declined"
    CONNECTION_TERMINATED = "connection_terminated"
    CONNECTION_SUSPENDED = "connection_suspended"
    CONNECTION_REACTIVATED = "connection_reactivated"
    CHILD_ASSIGNED_TO_THERAPIST = "child_assigned_to_therapist"

    # Appointment notifications
    APPOINTMENT_REQUESTED = "appointment_requested"
    APPOINTMENT_CONFIRMED = "appointment_confirmed"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_CANCELLED = "appointment_cancelled"


class NotificationPriority(str, Enum):
    """Delivery priority. High and urgent also queue an email."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


EMAIL_PRIORITIES = {NotificationPriority.HIGH, NotificationPriority.URGENT}
