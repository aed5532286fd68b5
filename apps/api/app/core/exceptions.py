"""Typed failures raised by the domain services.

Services raise these before any persistent mutation. Callers (routers, CLI)
translate them into user-facing responses; the message is the reason string.
"""


class DomainError(Exception):
    """Base exception for domain service errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed input, role mismatch, duplicate, unavailable slot or missing prerequisite."""

    pass


class NotFoundError(DomainError):
    """Referenced connection, request, appointment or user does not exist."""

    pass


class StateConflictError(DomainError):
    """Entity is already in a terminal or incompatible state."""

    pass


class AuthorizationError(DomainError):
    """Actor lacks the right to perform the action."""

    pass
