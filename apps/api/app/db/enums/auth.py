"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Platform roles. A user may hold more than one.

    - ADMIN: Platform administrator (assigns guardians, terminates any connection)
    - THERAPIST: Reviews connection requests, owns its connections and schedule
    - GUARDIAN: Requests therapists, owns child accounts and child assignments
    - CHILD: Client account managed by a guardian
    """

    ADMIN = "admin"
    THERAPIST = "therapist"
    GUARDIAN = "guardian"
    CHILD = "child"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
