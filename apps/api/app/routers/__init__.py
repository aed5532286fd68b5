"""API routers."""

from app.routers.appointments import router as appointments_router
from app.routers.auth import router as auth_router
from app.routers.availability import router as availability_router
from app.routers.connection_requests import router as connection_requests_router
from app.routers.connections import router as connections_router
from app.routers.notifications import router as notifications_router
from app.routers.permissions import router as permissions_router

__all__ = [
    "appointments_router",
    "auth_router",
    "availability_router",
    "connection_requests_router",
    "connections_router",
    "notifications_router",
    "permissions_router",
]
