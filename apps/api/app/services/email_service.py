"""Email service - template email hand-off.

Rendering and delivery live outside this service. queue_template_email
validates the template name and variables and records the hand-off.
"""

import logging

from app.core.exceptions import ValidationError
from app.db.models import User

logger = logging.getLogger(__name__)


TEMPLATE_NAMES = frozenset({
    "notification",
    "connection_assigned",
    "connection_terminated",
    "connection_request_received",
    "appointment_confirmed",
    "appointment_cancelled",
})


def queue_template_email(user: User, template_name: str, variables: dict[str, str]) -> bool:
    """
    Queue a templated email for a user.

    Variables must be a flat mapping of string keys to string values.

    Raises:
        ValidationError: Unknown template or non-string variable
    """
    if template_name not in TEMPLATE_NAMES:
        raise ValidationError(f"Unknown email template: {template_name}")
    for key, value in variables.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValidationError(f"Template variable {key!r} must be a string")

    if not user.email:
        logger.warning("Skipping email template=%s user_id=%s: no address", template_name, user.id)
        return False

    logger.info(
        "Queued email template=%s user_id=%s variables=%s",
        template_name,
        user.id,
        sorted(variables),
    )
    return True
