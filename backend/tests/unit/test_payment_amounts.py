# backend/tests/unit/test_payment_amounts.py
"""
Unit tests for lesson pricing and the Stripe checkout adapter.

Stripe itself is mocked; no network calls are made.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from pydantic import SecretStr
import pytest
import stripe

from tutorslots.core.config import settings
from tutorslots.core.exceptions import PaymentProviderError, ValidationException
from tutorslots.integrations.stripe_checkout import (
    StripeCheckoutProvider,
    construct_webhook_event,
    map_session_status,
)
from tutorslots.services.payment_service import compute_amount


class TestComputeAmount:
    @pytest.mark.parametrize(
        "rate,minutes,cents,amount",
        [
            ("25.00", 30, 1250, Decimal("12.50")),
            ("25.00", 60, 2500, Decimal("25.00")),
            ("33.33", 30, 1667, Decimal("16.67")),
            ("10.01", 30, 501, Decimal("5.01")),
        ],
    )
    def test_prices_round_half_up_to_the_cent(self, rate, minutes, cents, amount):
        assert compute_amount(Decimal(rate), minutes) == (cents, amount)

    def test_accepts_float_rates_without_binary_drift(self):
        assert compute_amount(19.99, 90) == (2999, Decimal("29.99"))


class TestMapSessionStatus:
    @pytest.mark.parametrize(
        "session,expected",
        [
            ({"payment_status": "paid", "status": "complete"}, "paid"),
            ({"payment_status": "no_payment_required", "status": "complete"}, "paid"),
            ({"payment_status": "unpaid", "status": "open"}, "unpaid"),
            ({"payment_status": "unpaid", "status": "expired"}, "failed"),
        ],
    )
    def test_collapses_stripe_states(self, session, expected):
        assert map_session_status(session) == expected


class TestStripeCheckoutProvider:
    def test_unconfigured_provider_raises(self):
        provider = StripeCheckoutProvider(api_key="")
        provider.stripe_configured = False

        with pytest.raises(PaymentProviderError):
            provider.get_session_status("cs_test_1")

    def test_create_session_sends_amount_in_cents(self):
        provider = StripeCheckoutProvider(api_key="sk_test_123", currency="usd")
        fake = SimpleNamespace(id="cs_test_9", url="https://checkout.stripe.test/cs_test_9")

        with patch("stripe.checkout.Session.create", return_value=fake) as create:
            session = provider.create_checkout_session(
                1250, "30 minute lesson", "https://ok", "https://cancel", {"booking_id": "b1"}
            )

        assert session.session_id == "cs_test_9"
        assert session.redirect_url == fake.url
        kwargs = create.call_args.kwargs
        assert kwargs["mode"] == "payment"
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 1250
        assert kwargs["metadata"] == {"booking_id": "b1"}

    def test_stripe_errors_become_provider_errors(self):
        provider = StripeCheckoutProvider(api_key="sk_test_123")

        with patch(
            "stripe.checkout.Session.retrieve", side_effect=stripe.APIConnectionError("down")
        ):
            with pytest.raises(PaymentProviderError) as exc_info:
                provider.get_session_status("cs_test_1")

        assert exc_info.value.details == {"session_id": "cs_test_1"}


class TestConstructWebhookEvent:
    def test_missing_secret_is_provider_error(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(""))

        with pytest.raises(PaymentProviderError):
            construct_webhook_event(b"{}", "t=1,v1=abc")

    def test_missing_or_bad_signature_is_rejected(self, monkeypatch):
        monkeypatch.setattr(
            settings, "stripe_webhook_secret", SecretStr("whsec_x")
        )

        with pytest.raises(ValidationException) as missing:
            construct_webhook_event(b"{}", None)
        assert missing.value.code == "INVALID_SIGNATURE"

        with patch(
            "stripe.Webhook.construct_event",
            side_effect=stripe.SignatureVerificationError("bad", "sig"),
        ):
            with pytest.raises(ValidationException) as bad:
                construct_webhook_event(b"{}", "t=1,v1=abc")
        assert bad.value.code == "INVALID_SIGNATURE"
