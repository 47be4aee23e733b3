# backend/tutorslots/integrations/__init__.py
"""External providers used by the scheduling backend."""

from .stripe_checkout import (
    CheckoutSession,
    PaymentProvider,
    StripeCheckoutProvider,
    construct_webhook_event,
)

__all__ = [
    "CheckoutSession",
    "PaymentProvider",
    "StripeCheckoutProvider",
    "construct_webhook_event",
]
