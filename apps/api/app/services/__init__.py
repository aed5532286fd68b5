"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from app.services import user_service
from app.services import connection_store
from app.services import email_service
from app.services import notification_service
from app.services import notification_facade
from app.services import appointment_integrations
from app.services import appointment_service
from app.services import permission_propagation_service
from app.services import connection_service
from app.services import connection_request_service

__all__ = [
    "user_service",
    "connection_store",
    "email_service",
    "notification_service",
    "notification_facade",
    "appointment_integrations",
    "appointment_service",
    "permission_propagation_service",
    "connection_service",
    "connection_request_service",
]
