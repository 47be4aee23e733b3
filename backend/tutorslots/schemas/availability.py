# backend/tutorslots/schemas/availability.py
"""
Weekly availability rule schemas.

Times travel as ``HH:MM`` in the tutor's own timezone. Ordering checks
(start before end) are left to the service so they surface as
INVALID_RANGE rather than a generic validation error.
"""

from datetime import datetime, time
from typing import Optional

from pydantic import ConfigDict, Field, field_serializer

from ._strict_base import StrictRequestModel
from .base import StandardizedModel, serialize_hhmm, serialize_utc


class AvailabilityRuleCreate(StrictRequestModel):
    """Schema for adding a recurring weekly window."""

    day_of_week: int = Field(..., description="0 = Sunday ... 6 = Saturday")
    start_time: time
    end_time: time


class AvailabilityRuleUpdate(StrictRequestModel):
    """Schema for editing a rule; omitted fields are unchanged."""

    day_of_week: Optional[int] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class AvailabilityRuleActiveUpdate(StrictRequestModel):
    is_active: bool


class AvailabilityRuleRecord(StandardizedModel):
    """Response schema for availability rules."""

    id: str
    tutor_id: str
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_time", "end_time")
    def _hhmm(self, value: time) -> str:
        return serialize_hhmm(value)

    @field_serializer("created_at", "updated_at")
    def _utc(self, value: Optional[datetime]) -> Optional[str]:
        return serialize_utc(value)
