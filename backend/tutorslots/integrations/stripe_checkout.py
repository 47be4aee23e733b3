# backend/tutorslots/integrations/stripe_checkout.py
"""
Stripe Checkout payment provider.

The scheduling core only needs two calls from a payment provider: create a
hosted checkout session for an amount, and ask whether a session has been
paid. Everything else about Stripe stays in this module.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional, Protocol

import stripe

from ..core.config import settings
from ..core.exceptions import PaymentProviderError, ValidationException

logger = logging.getLogger(__name__)

SESSION_PAID = "paid"
SESSION_UNPAID = "unpaid"
SESSION_FAILED = "failed"


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    redirect_url: str


class PaymentProvider(Protocol):
    """What the payment gate needs from an external payment provider."""

    def create_checkout_session(
        self,
        amount_cents: int,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSession:
        ...

    def get_session_status(self, session_id: str) -> str:
        """Return ``"paid"``, ``"unpaid"`` or ``"failed"``."""
        ...


def map_session_status(session: Any) -> str:
    """
    Collapse a Stripe checkout session into paid/unpaid/failed.

    ``no_payment_required`` counts as paid; an expired session can no longer
    be paid and counts as failed.
    """
    payment_status = getattr(session, "payment_status", None) or session.get("payment_status")
    status = getattr(session, "status", None) or session.get("status")
    if payment_status in ("paid", "no_payment_required"):
        return SESSION_PAID
    if status == "expired":
        return SESSION_FAILED
    return SESSION_UNPAID


class StripeCheckoutProvider:
    """Payment provider backed by Stripe Checkout sessions."""

    def __init__(self, api_key: Optional[str] = None, currency: Optional[str] = None):
        secret = api_key or settings.stripe_secret_key.get_secret_value()
        self.currency = currency or settings.stripe_currency
        self.stripe_configured = bool(secret)
        if self.stripe_configured:
            stripe.api_key = secret
            stripe.max_network_retries = 1
        else:
            logger.warning("Stripe secret key not configured - checkout calls will fail")

    def _check_stripe_configured(self) -> None:
        if not self.stripe_configured:
            raise PaymentProviderError(
                "Stripe service not configured. Please check STRIPE_SECRET_KEY environment variable."
            )

    def create_checkout_session(
        self,
        amount_cents: int,
        description: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> CheckoutSession:
        self._check_stripe_configured()
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "product_data": {"name": description},
                            "unit_amount": amount_cents,
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
            )
        except stripe.StripeError as exc:
            logger.error(f"Stripe checkout session creation failed: {str(exc)}")
            raise PaymentProviderError(
                f"Could not create checkout session: {exc.user_message or str(exc)}"
            ) from exc
        return CheckoutSession(session_id=session.id, redirect_url=session.url)

    def get_session_status(self, session_id: str) -> str:
        self._check_stripe_configured()
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as exc:
            logger.error(f"Stripe checkout session lookup failed for {session_id}: {str(exc)}")
            raise PaymentProviderError(
                f"Could not retrieve checkout session: {exc.user_message or str(exc)}",
                details={"session_id": session_id},
            ) from exc
        return map_session_status(session)


def construct_webhook_event(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify a Stripe webhook signature and return the parsed event.

    Raises:
        ValidationException: Missing or invalid signature
        PaymentProviderError: Webhook secret not configured
    """
    secret = settings.stripe_webhook_secret.get_secret_value()
    if not secret:
        raise PaymentProviderError("Webhook secret not configured")
    if not signature:
        raise ValidationException("Missing Stripe-Signature header", code="INVALID_SIGNATURE")
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Invalid webhook signature")
        raise ValidationException("Invalid webhook signature", code="INVALID_SIGNATURE") from exc
    except ValueError as exc:
        raise ValidationException("Invalid webhook payload", code="INVALID_PAYLOAD") from exc
    return event.to_dict() if hasattr(event, "to_dict") else dict(event)
