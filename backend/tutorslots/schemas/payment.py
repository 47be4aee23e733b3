# backend/tutorslots/schemas/payment.py
"""Payment schemas for checkout and reconciliation."""

from typing import Optional

from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel


class PaymentInitiateRequest(StrictRequestModel):
    """Optional overrides for the checkout redirect targets."""

    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class PaymentHandleResponse(StandardizedModel):
    booking_id: str
    session_id: str
    redirect_url: str
    amount_cents: int
    amount: Money
    currency: str


class ReconcileResponse(StandardizedModel):
    booking_id: str
    payment_status: str
    status: str


class WebhookResponse(StandardizedModel):
    status: str = "success"
    event_type: Optional[str] = None
    handled: bool = False
