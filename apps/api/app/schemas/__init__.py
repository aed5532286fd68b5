"""Pydantic schemas for API request/response models."""

from app.schemas.auth import CapabilityRead, MeResponse, TokenPayload
from app.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentRead,
    AppointmentReschedule,
    AvailabilityOverrideCreate,
    AvailabilityOverrideRead,
    AvailabilityRuleInput,
    AvailabilityRuleRead,
    AvailabilityRulesSet,
    AvailableSlotsResponse,
    TimeSlotRead,
)
from app.schemas.connection import (
    CascadeSummary,
    ChildAssignmentCreate,
    ConnectionAssign,
    ConnectionEventRead,
    ConnectionRead,
    ConnectionRequestRead,
    ConnectionStats,
    ConnectionStatusChange,
    RequestApprovalRead,
    RequestStats,
    TherapistRequestCreate,
)
from app.schemas.notification import (
    NotificationData,
    NotificationListResponse,
    NotificationRead,
    UnreadCountResponse,
)
from app.schemas.permission import FeatureAccessRead, MoodLogRead

__all__ = [
    "AppointmentCancel",
    "AppointmentCreate",
    "AppointmentRead",
    "AppointmentReschedule",
    "AvailabilityOverrideCreate",
    "AvailabilityOverrideRead",
    "AvailabilityRuleInput",
    "AvailabilityRuleRead",
    "AvailabilityRulesSet",
    "AvailableSlotsResponse",
    "CapabilityRead",
    "CascadeSummary",
    "ChildAssignmentCreate",
    "ConnectionAssign",
    "ConnectionEventRead",
    "ConnectionRead",
    "ConnectionRequestRead",
    "ConnectionStats",
    "ConnectionStatusChange",
    "FeatureAccessRead",
    "MeResponse",
    "MoodLogRead",
    "NotificationData",
    "NotificationListResponse",
    "NotificationRead",
    "RequestApprovalRead",
    "RequestStats",
    "TherapistRequestCreate",
    "TimeSlotRead",
    "TokenPayload",
    "UnreadCountResponse",
]
