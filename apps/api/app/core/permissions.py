"""Actor identity and capability checks.

Every service call that needs authorization takes an ``Actor``: the current
user's id plus the closed set of roles supplied by the identity context.
Capabilities are derived from roles through ``ROLE_CAPABILITIES``; services
ask ``actor.can(...)`` instead of comparing role strings.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.db.enums import ROLE_CAPABILITIES, Capability, Role


@dataclass(frozen=True)
class CapabilityDef:
    """Capability definition with metadata."""
    key: Capability
    label: str
    description: str


class ActorKind(str, Enum):
    """Primary persona of an actor, used for scoping read queries."""
    ADMIN = "admin"
    THERAPIST = "therapist"
    CLIENT = "client"
    NONE = "none"


CAPABILITY_REGISTRY: dict[Capability, CapabilityDef] = {
    Capability.ASSIGN_CONNECTIONS: CapabilityDef(
        Capability.ASSIGN_CONNECTIONS, "Assign Connections",
        "Pair a therapist with a guardian directly",
    ),
    Capability.TERMINATE_ANY_CONNECTION: CapabilityDef(
        Capability.TERMINATE_ANY_CONNECTION, "Terminate Any Connection",
        "End or suspend any therapeutic connection",
    ),
    Capability.TERMINATE_OWN_CONNECTION: CapabilityDef(
        Capability.TERMINATE_OWN_CONNECTION, "Terminate Own Connection",
        "End or suspend connections where the actor is the therapist",
    ),
    Capability.REVIEW_CONNECTION_REQUESTS: CapabilityDef(
        Capability.REVIEW_CONNECTION_REQUESTS, "Review Connection Requests",
        "Approve or decline requests addressed to the actor",
    ),
    Capability.REQUEST_CONNECTIONS: CapabilityDef(
        Capability.REQUEST_CONNECTIONS, "Request Connections",
        "Ask a therapist for a connection or assign own children",
    ),
    Capability.BOOK_WITHOUT_CONNECTION: CapabilityDef(
        Capability.BOOK_WITHOUT_CONNECTION, "Book Without Connection",
        "Book appointments without an active connection",
    ),
    Capability.BYPASS_FEATURE_GATES: CapabilityDef(
        Capability.BYPASS_FEATURE_GATES, "Bypass Feature Gates",
        "Access messaging, mood data and scheduling for any pair",
    ),
    Capability.VIEW_ALL_CONNECTIONS: CapabilityDef(
        Capability.VIEW_ALL_CONNECTIONS, "View All Connections",
        "List connections and requests across the platform",
    ),
    Capability.MANAGE_OWN_AVAILABILITY: CapabilityDef(
        Capability.MANAGE_OWN_AVAILABILITY, "Manage Own Availability",
        "Edit weekly availability and date overrides",
    ),
}


def capabilities_for(roles: frozenset[Role]) -> frozenset[Capability]:
    """Union of capabilities granted by a role set."""
    granted: set[Capability] = set()
    for role in roles:
        granted |= ROLE_CAPABILITIES[role]
    return frozenset(granted)


def describe_capabilities(roles: frozenset[Role]) -> list[CapabilityDef]:
    """Registry entries for the capabilities a role set grants, in registry order."""
    granted = capabilities_for(roles)
    return [definition for key, definition in CAPABILITY_REGISTRY.items() if key in granted]


@dataclass(frozen=True)
class Actor:
    """Current actor as supplied by the identity context."""
    user_id: UUID
    roles: frozenset[Role]

    @classmethod
    def of(cls, user_id: UUID, *roles: Role) -> "Actor":
        return cls(user_id=user_id, roles=frozenset(roles))

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(user_id=user.id, roles=user.roles)

    @property
    def capabilities(self) -> frozenset[Capability]:
        return capabilities_for(self.roles)

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def kind(self) -> ActorKind:
        if Role.ADMIN in self.roles:
            return ActorKind.ADMIN
        if Role.THERAPIST in self.roles:
            return ActorKind.THERAPIST
        if Role.GUARDIAN in self.roles or Role.CHILD in self.roles:
            return ActorKind.CLIENT
        return ActorKind.NONE

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities
