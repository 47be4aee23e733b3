# backend/tests/services/test_payment_gate.py
"""
Tests for PaymentService: pricing, checkout initiation, reconciliation
against the provider and webhook routing.
"""

from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import patch

import pytest

from tests.factories.booking_builders import NEXT_MONDAY, RecordingPublisher, at
from tutorslots.core.config import settings
from tutorslots.core.exceptions import InvalidTransitionException, PaymentProviderError
from tutorslots.models.booking import BookingStatus, PaymentStatus
from tutorslots.services.booking_service import BookingService
from tutorslots.services.payment_service import PaymentService


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def booking_service(db, clock, publisher):
    return BookingService(
        db, clock, event_publisher=publisher, meeting_link_factory=lambda: "https://meet.test/room"
    )


@pytest.fixture
def payments(db, clock, payment_provider, booking_service):
    return PaymentService(
        db, clock, provider=payment_provider, booking_service=booking_service
    )


@pytest.fixture
def booking(booking_service, tutor, student):
    return booking_service.create(student.id, tutor.id, at(NEXT_MONDAY, 9, 0), 30)


class TestInitiate:
    def test_half_hour_with_25_dollar_tutor_costs_1250_cents(
        self, payments, payment_provider, booking
    ):
        handle = payments.initiate(booking.id)

        assert handle.amount_cents == 1250
        assert handle.amount == Decimal("12.50")
        assert handle.currency == settings.stripe_currency
        assert handle.redirect_url == f"https://pay.test/{handle.session_id}"

        sent = payment_provider.created[0]
        assert sent["amount_cents"] == 1250
        assert sent["metadata"] == {"booking_id": booking.id, "student_id": booking.student_id}
        assert sent["description"] == "30 minute lesson with Tina Tutor"

    def test_initiate_records_session_on_booking(self, payments, booking_service, booking):
        handle = payments.initiate(booking.id, success_url="https://app.test/ok")

        stored = booking_service.get(booking.id)
        assert stored.payment_intent_id == handle.session_id
        assert stored.amount_paid == Decimal("12.50")
        assert stored.payment_status == PaymentStatus.PENDING.value

    def test_reinitiate_replaces_session(self, payments, booking_service, booking):
        first = payments.initiate(booking.id)
        second = payments.initiate(booking.id)

        assert first.session_id != second.session_id
        assert booking_service.get(booking.id).payment_intent_id == second.session_id

    def test_provider_failure_leaves_booking_untouched(
        self, payments, payment_provider, booking_service, booking
    ):
        payment_provider.fail_next_create = True

        with pytest.raises(PaymentProviderError):
            payments.initiate(booking.id)

        stored = booking_service.get(booking.id)
        assert stored.status == BookingStatus.PENDING.value
        assert stored.payment_intent_id is None

    def test_cannot_pay_for_paid_booking(self, payments, booking_service, booking):
        booking_service.mark_paid(booking.id)
        with pytest.raises(InvalidTransitionException):
            payments.initiate(booking.id)

    def test_cannot_pay_for_cancelled_booking(self, payments, booking_service, booking):
        booking_service.cancel(booking.id, actor_id=booking.student_id)
        with pytest.raises(InvalidTransitionException):
            payments.initiate(booking.id)


class TestReconcile:
    def test_settled_payment_confirms_booking(
        self, payments, payment_provider, booking_service, publisher, booking
    ):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        assert payments.reconcile(booking.id) == PaymentStatus.PAID.value

        stored = booking_service.get(booking.id)
        assert stored.status == BookingStatus.CONFIRMED.value
        assert stored.payment_status == PaymentStatus.PAID.value
        assert stored.meeting_link == "https://meet.test/room"

    def test_reconcile_twice_confirms_once(
        self, payments, payment_provider, publisher, booking
    ):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        payments.reconcile(booking.id)
        payments.reconcile(booking.id)

        assert publisher.event_types.count("booking_confirmed") == 1
        assert publisher.event_types.count("booking_paid") == 1
        # Second call short-circuits on the stored payment status
        assert payment_provider.status_calls == [handle.session_id]

    def test_unsettled_payment_leaves_booking_pending(
        self, payments, booking_service, booking
    ):
        payments.initiate(booking.id)

        assert payments.reconcile(booking.id) == PaymentStatus.PENDING.value
        assert booking_service.get(booking.id).status == BookingStatus.PENDING.value

    def test_expired_session_marks_payment_failed(
        self, payments, payment_provider, booking_service, booking
    ):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id, status="failed")

        assert payments.reconcile(booking.id) == PaymentStatus.FAILED.value
        assert booking_service.get(booking.id).status == BookingStatus.PENDING.value

    def test_booking_without_session_is_left_alone(self, payments, payment_provider, booking):
        assert payments.reconcile(booking.id) == PaymentStatus.PENDING.value
        assert payment_provider.status_calls == []

    def test_provider_error_propagates_and_keeps_state(
        self, payments, payment_provider, booking_service, booking
    ):
        payments.initiate(booking.id)
        payment_provider.fail_status = True

        with pytest.raises(PaymentProviderError):
            payments.reconcile(booking.id)
        assert booking_service.get(booking.id).payment_status == PaymentStatus.PENDING.value

    def test_payment_for_cancelled_booking_is_recorded_not_confirmed(
        self, payments, payment_provider, booking_service, booking
    ):
        handle = payments.initiate(booking.id)
        booking_service.cancel(booking.id, actor_id=booking.student_id)
        payment_provider.settle(handle.session_id)

        assert payments.reconcile(booking.id) == PaymentStatus.PAID.value
        stored = booking_service.get(booking.id)
        assert stored.status == BookingStatus.CANCELLED.value
        assert stored.meeting_link is None

    def test_tutor_gated_policy_waits_for_tutor(
        self, payments, payment_provider, booking_service, booking, monkeypatch
    ):
        monkeypatch.setattr(settings, "booking_confirmation_policy", "tutor_gated")
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        payments.reconcile(booking.id)
        assert booking_service.get(booking.id).status == BookingStatus.PENDING.value

        confirmed = booking_service.confirm(booking.id)
        assert confirmed.status == BookingStatus.CONFIRMED.value

    def test_held_mutex_skips_reconcile(self, payments, payment_provider, booking):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        @contextmanager
        def busy(_booking_id):
            yield False

        with patch("tutorslots.services.payment_service.booking_lock_sync", busy):
            assert payments.reconcile(booking.id) == PaymentStatus.PENDING.value
        assert payment_provider.status_calls == []

    def test_reconcile_pending_summarizes_batch(
        self, payments, payment_provider, booking_service, tutor, student, other_student
    ):
        paid = booking_service.create(student.id, tutor.id, at(NEXT_MONDAY, 9, 0), 30)
        waiting = booking_service.create(other_student.id, tutor.id, at(NEXT_MONDAY, 10, 0), 30)
        booking_service.create(student.id, tutor.id, at(NEXT_MONDAY, 11, 0), 30)
        payment_provider.settle(payments.initiate(paid.id).session_id)
        payments.initiate(waiting.id)

        summary = payments.reconcile_pending()

        assert summary == {"checked": 2, "paid": 1, "failed": 0, "errors": 0}
        assert booking_service.get(paid.id).status == BookingStatus.CONFIRMED.value


class TestExpireUnpaidHolds:
    def test_late_payment_is_confirmed_not_expired(
        self, payments, payment_provider, booking_service, clock, booking
    ):
        payment_provider.settle(payments.initiate(booking.id).session_id)
        clock.advance(minutes=61)

        assert payments.expire_unpaid() == 0

        kept = booking_service.get(booking.id)
        assert kept.status == BookingStatus.CONFIRMED.value
        assert kept.payment_status == PaymentStatus.PAID.value

    def test_open_unpaid_session_is_expired(
        self, payments, payment_provider, booking_service, clock, booking
    ):
        handle = payments.initiate(booking.id)
        clock.advance(minutes=61)

        assert payments.expire_unpaid() == 1

        assert payment_provider.status_calls == [handle.session_id]
        expired = booking_service.get(booking.id)
        assert expired.status == BookingStatus.CANCELLED.value
        assert expired.cancellation_reason == "payment_timeout"

    def test_booking_is_kept_when_provider_is_down(
        self, payments, payment_provider, booking_service, clock, booking
    ):
        payments.initiate(booking.id)
        payment_provider.fail_status = True
        clock.advance(minutes=61)

        assert payments.expire_unpaid() == 0
        assert booking_service.get(booking.id).status == BookingStatus.PENDING.value


class TestWebhookRouting:
    def _event(self, event_type, session_id, booking_id=None):
        metadata = {"booking_id": booking_id} if booking_id else {}
        return {"type": event_type, "data": {"object": {"id": session_id, "metadata": metadata}}}

    def test_completed_session_reconciles_booking(
        self, payments, payment_provider, booking_service, booking
    ):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        result = payments.handle_webhook_event(
            self._event("checkout.session.completed", handle.session_id, booking.id)
        )

        assert result["handled"] is True
        assert result["payment_status"] == PaymentStatus.PAID.value
        assert booking_service.get(booking.id).status == BookingStatus.CONFIRMED.value

    def test_session_is_found_without_metadata(
        self, payments, payment_provider, booking_service, booking
    ):
        handle = payments.initiate(booking.id)
        payment_provider.settle(handle.session_id)

        result = payments.handle_webhook_event(
            self._event("checkout.session.completed", handle.session_id)
        )

        assert result["booking_id"] == booking.id

    def test_expired_session_marks_failed(self, payments, booking_service, booking):
        handle = payments.initiate(booking.id)

        result = payments.handle_webhook_event(
            self._event("checkout.session.expired", handle.session_id, booking.id)
        )

        assert result["payment_status"] == PaymentStatus.FAILED.value
        assert booking_service.get(booking.id).payment_status == PaymentStatus.FAILED.value

    def test_superseded_session_is_ignored(self, payments, booking_service, booking):
        stale = payments.initiate(booking.id)
        payments.initiate(booking.id)

        result = payments.handle_webhook_event(
            self._event("checkout.session.expired", stale.session_id, booking.id)
        )

        assert result["handled"] is False
        assert booking_service.get(booking.id).payment_status == PaymentStatus.PENDING.value

    def test_unknown_event_and_session_are_acknowledged(self, payments):
        assert payments.handle_webhook_event({"type": "customer.created"})["handled"] is False
        assert (
            payments.handle_webhook_event(
                self._event("checkout.session.completed", "cs_unknown")
            )["handled"]
            is False
        )
