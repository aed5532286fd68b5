"""Appointment integrations (video session links)."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.models import Appointment

logger = logging.getLogger(__name__)


def build_session_url(appointment: Appointment) -> str | None:
    """Session URL for an appointment, or None when no base URL is configured."""
    base_url = settings.SESSION_LINK_BASE_URL.rstrip("/")
    if not base_url:
        return None
    return f"{base_url}/{appointment.id}"


def provision_session_link(db: Session, appointment: Appointment) -> str | None:
    """
    Attach a video session link to an appointment (best-effort).

    Returns the URL on success, None otherwise. Does NOT raise - the booking
    is already committed and a missing link can be provisioned later.
    """
    if appointment.session_url:
        return appointment.session_url

    try:
        url = build_session_url(appointment)
        if not url:
            return None
        appointment.session_url = url
        db.commit()
        return url
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Session link provisioning failed appointment_id=%s: %s",
            appointment.id,
            exc,
        )
        return None
