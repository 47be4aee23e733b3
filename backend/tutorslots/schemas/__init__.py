# backend/tutorslots/schemas/__init__.py
"""Pydantic schemas for the scheduling API."""

from .availability import (
    AvailabilityRuleActiveUpdate,
    AvailabilityRuleCreate,
    AvailabilityRuleRecord,
    AvailabilityRuleUpdate,
)
from .booking import (
    BookingCancel,
    BookingConfirm,
    BookingCreate,
    BookingListResponse,
    BookingRecord,
    DaySlotsResponse,
    SlotResponse,
    TutorSlotsResponse,
)
from .payment import (
    PaymentHandleResponse,
    PaymentInitiateRequest,
    ReconcileResponse,
    WebhookResponse,
)

__all__ = [
    "AvailabilityRuleActiveUpdate",
    "AvailabilityRuleCreate",
    "AvailabilityRuleRecord",
    "AvailabilityRuleUpdate",
    "BookingCancel",
    "BookingConfirm",
    "BookingCreate",
    "BookingListResponse",
    "BookingRecord",
    "DaySlotsResponse",
    "PaymentHandleResponse",
    "PaymentInitiateRequest",
    "ReconcileResponse",
    "SlotResponse",
    "TutorSlotsResponse",
    "WebhookResponse",
]
