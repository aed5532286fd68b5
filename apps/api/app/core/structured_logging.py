"""Structured logging helpers (PHI-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    actor_id: UUID | str | None = None,
    connection_id: UUID | str | None = None,
    request_id: UUID | str | None = None,
    appointment_id: UUID | str | None = None,
    therapist_id: UUID | str | None = None,
    client_id: UUID | str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict (ids only, never names or notes)."""
    context: dict[str, Any] = {}
    if actor_id:
        context["actor_id"] = str(actor_id)
    if connection_id:
        context["connection_id"] = str(connection_id)
    if request_id:
        context["request_id"] = str(request_id)
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if therapist_id:
        context["therapist_id"] = str(therapist_id)
    if client_id:
        context["client_id"] = str(client_id)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    import logging

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
