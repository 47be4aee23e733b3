# backend/tutorslots/schemas/booking.py
"""
Booking and slot schemas.

All instants are UTC. Requests may carry any offset; naive values are read
as UTC. Responses always carry an explicit offset.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_serializer

from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel, serialize_utc


class BookingCreate(StrictRequestModel):
    """Schema for requesting a lesson. The student is the calling actor."""

    tutor_id: str
    scheduled_at: datetime
    duration_minutes: int = Field(..., gt=0)
    center_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingConfirm(StrictRequestModel):
    """Tutor confirmation; the meeting link is generated when omitted."""

    meeting_link: Optional[str] = Field(None, max_length=500)


class BookingRecord(StandardizedModel):
    """Full booking as seen by its student or tutor."""

    id: str
    student_id: str
    tutor_id: str
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: str
    payment_status: str
    center_id: Optional[str] = None
    notes: Optional[str] = None
    meeting_link: Optional[str] = None
    payment_intent_id: Optional[str] = None
    amount_paid: Optional[Money] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None
    cancellation_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer(
        "scheduled_at",
        "ends_at",
        "created_at",
        "paid_at",
        "confirmed_at",
        "completed_at",
        "cancelled_at",
    )
    def _utc(self, value: Optional[datetime]) -> Optional[str]:
        return serialize_utc(value)


class BookingListResponse(StandardizedModel):
    bookings: List[BookingRecord]
    total: int


class SlotResponse(StandardizedModel):
    """A derived bookable window."""

    tutor_id: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    available: bool = True
    rule_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("start_at", "end_at")
    def _utc(self, value: datetime) -> Optional[str]:
        return serialize_utc(value)


class DaySlotsResponse(StandardizedModel):
    date: str
    slots: List[SlotResponse]


class TutorSlotsResponse(StandardizedModel):
    tutor_id: str
    days: List[DaySlotsResponse]
