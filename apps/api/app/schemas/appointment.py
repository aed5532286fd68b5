"""Appointment schemas - Pydantic models for appointments and availability API."""

from datetime import date, datetime, time
from uuid import UUID
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# =============================================================================
# Availability Rules
# =============================================================================

class AvailabilityRuleInput(BaseModel):
    """Schema for a single availability rule."""
    day_of_week: int = Field(..., ge=0, le=6, description="Monday=0, Sunday=6")
    start_time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")
    end_time: str = Field(..., pattern=r"^\d{2}:\d{2}$", description="HH:MM format")


class AvailabilityRulesSet(BaseModel):
    """Schema for setting all availability rules."""
    rules: list[AvailabilityRuleInput]
    timezone: str | None = Field(None, max_length=50)


class AvailabilityRuleRead(BaseModel):
    """Schema for reading an availability rule."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    timezone: str


# =============================================================================
# Availability Overrides
# =============================================================================

class AvailabilityOverrideCreate(BaseModel):
    """Schema for creating a date override."""
    override_date: date
    kind: Literal["unavailable", "custom_hours"] = "unavailable"
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_custom_hours(self):
        if self.kind == "custom_hours" and (not self.start_time or not self.end_time):
            raise ValueError("custom_hours overrides need start_time and end_time")
        return self


class AvailabilityOverrideRead(BaseModel):
    """Schema for reading an override."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    override_date: date
    kind: str
    start_time: time | None
    end_time: time | None
    reason: str | None


# =============================================================================
# Slots
# =============================================================================

class TimeSlotRead(BaseModel):
    """Available time slot."""
    start: datetime
    end: datetime


class AvailableSlotsResponse(BaseModel):
    """Response for available slots query."""
    therapist_id: UUID
    date: date
    duration_minutes: int
    slots: list[TimeSlotRead]


# =============================================================================
# Appointments
# =============================================================================

class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    therapist_id: UUID
    scheduled_at: datetime
    duration_minutes: int | None = Field(None, ge=1)
    child_id: UUID | None = None
    guardian_id: UUID | None = None
    notes: str | None = Field(None, max_length=2000)
    status: Literal["requested", "confirmed"] = "requested"


class AppointmentReschedule(BaseModel):
    """Schema for rescheduling."""
    scheduled_at: datetime


class AppointmentCancel(BaseModel):
    """Schema for cancellation."""
    reason: str | None = Field(None, max_length=1000)


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    therapist_id: UUID
    child_id: UUID | None
    guardian_id: UUID | None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    notes: str | None
    session_url: str | None
    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancelled_by: UUID | None
    cancellation_reason: str | None
