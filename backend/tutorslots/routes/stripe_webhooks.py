# backend/tutorslots/routes/stripe_webhooks.py
"""
Stripe webhook endpoint.

The signature is verified before anything else; events are then applied
through the payment service, which is idempotent, so Stripe retries are
harmless.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from ..api.dependencies import get_payment_service
from ..schemas.payment import WebhookResponse
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/stripe", tags=["webhooks"])


@router.post("", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    payload = await request.body()
    result = payment_service.handle_webhook(payload, stripe_signature)
    return WebhookResponse(event_type=result.get("event_type"), handled=bool(result.get("handled")))
