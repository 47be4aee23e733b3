# backend/tutorslots/services/payment_service.py
"""
Payment Service for the scheduling backend.

Bridges bookings and the external payment provider:

- ``initiate`` prices a pending booking, opens a checkout session and
  records the session id on the booking
- ``reconcile`` asks the provider for the session's outcome and applies it
  (mark paid, then confirm under the payment-gated policy)
- ``handle_webhook_event`` routes verified provider events to the above

Reconciliation of one booking is serialized by a Redis mutex, and every
state change goes through ``BookingService`` so its row locks and
transition rules stay authoritative. Reconciling the same booking twice
confirms it once.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.booking_lock import booking_lock_sync
from ..core.config import settings
from ..core.exceptions import (
    InvalidTransitionException,
    NotFoundException,
    PaymentProviderError,
)
from ..integrations.stripe_checkout import (
    SESSION_FAILED,
    SESSION_PAID,
    PaymentProvider,
    StripeCheckoutProvider,
    construct_webhook_event,
)
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService, Clock
from .booking_service import BookingService

logger = logging.getLogger(__name__)

CENTS = Decimal("1")
PAID_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILED_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")


@dataclass(frozen=True)
class PaymentHandle:
    """Where to send the student to pay, and what they will be charged."""

    booking_id: str
    session_id: str
    redirect_url: str
    amount_cents: int
    amount: Decimal
    currency: str


def compute_amount(hourly_rate: Any, duration_minutes: int) -> Tuple[int, Decimal]:
    """
    Price a lesson in minor units, rounding half up to the cent.

    Returns:
        (amount_cents, amount) where amount is the same value in major units
    """
    rate = Decimal(str(hourly_rate))
    cents = (rate * Decimal(duration_minutes) / Decimal(60) * Decimal(100)).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )
    return int(cents), (cents / Decimal(100)).quantize(Decimal("0.01"))


class PaymentService(BaseService):
    """Opens checkout sessions for bookings and applies their outcome."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        provider: Optional[PaymentProvider] = None,
        booking_service: Optional[BookingService] = None,
    ):
        super().__init__(db, clock)
        self.provider = provider or StripeCheckoutProvider()
        self.booking_service = booking_service or BookingService(db, clock)
        self.booking_repository = self.booking_service.repository
        self.profile_repository = RepositoryFactory.create_profile_repository(db)

    @staticmethod
    def _ensure_payable(booking: Booking) -> None:
        if (
            booking.status != BookingStatus.PENDING.value
            or booking.is_paid
        ):
            raise InvalidTransitionException(booking.id, booking.status, "pay for")

    @BaseService.measure_operation("initiate_payment")
    def initiate(
        self,
        booking_id: str,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> PaymentHandle:
        """
        Open a checkout session for a pending, unpaid booking.

        A failed provider call leaves the booking untouched. Calling again
        replaces the session id on the booking; the old session simply
        expires on the provider side.

        Raises:
            NotFoundException: booking or tutor profile missing
            InvalidTransitionException: booking is not pending, or already paid
            PaymentProviderError: provider rejected or could not be reached
        """
        booking = self.booking_service.get(booking_id)
        self._ensure_payable(booking)

        profile = self.profile_repository.get_tutor_profile(booking.tutor_id)
        if not profile:
            raise NotFoundException(
                f"Tutor {booking.tutor_id} not found", details={"tutor_id": booking.tutor_id}
            )
        amount_cents, amount = compute_amount(profile.hourly_rate, booking.duration_minutes)

        tutor_name = profile.user.full_name if profile.user else "your tutor"
        session = self.provider.create_checkout_session(
            amount_cents=amount_cents,
            description=f"{booking.duration_minutes} minute lesson with {tutor_name}",
            success_url=success_url or settings.payment_success_url(booking.id),
            cancel_url=cancel_url or settings.payment_cancel_url(booking.id),
            metadata={"booking_id": booking.id, "student_id": booking.student_id},
        )

        with self.transaction():
            # Re-check under the row lock; the booking may have been cancelled meanwhile.
            locked = self.booking_repository.get_for_update(booking_id)
            if locked is None:
                raise NotFoundException(
                    f"Booking {booking_id} not found", details={"booking_id": booking_id}
                )
            self._ensure_payable(locked)
            self.booking_service.record_checkout(locked, session.session_id, amount)

        self.log_operation(
            "initiate_payment",
            booking_id=booking_id,
            session_id=session.session_id,
            amount_cents=amount_cents,
        )
        return PaymentHandle(
            booking_id=booking_id,
            session_id=session.session_id,
            redirect_url=session.redirect_url,
            amount_cents=amount_cents,
            amount=amount,
            currency=settings.stripe_currency,
        )

    def _confirm_if_gated(self, booking: Booking) -> Booking:
        if settings.booking_confirmation_policy != "payment_gated":
            return booking
        if booking.status != BookingStatus.PENDING.value:
            if booking.status == BookingStatus.CANCELLED.value:
                self.logger.warning(
                    f"Payment settled for cancelled booking {booking.id}; not confirming"
                )
            return booking
        try:
            return self.booking_service.confirm(booking.id)
        except InvalidTransitionException as exc:
            # Cancelled between mark_paid and confirm
            self.logger.warning(f"Skipping confirm for booking {booking.id}: {exc.message}")
            return self.booking_service.get(booking.id)

    @BaseService.measure_operation("reconcile_payment")
    def reconcile(self, booking_id: str) -> str:
        """
        Pull the checkout outcome from the provider and apply it.

        Returns:
            The booking's payment_status after reconciliation

        Raises:
            NotFoundException: booking missing
            PaymentProviderError: provider lookup failed
        """
        booking = self.booking_service.get(booking_id)
        if not booking.payment_intent_id:
            prometheus_metrics.record_payment_reconcile("no_session")
            return booking.payment_status

        with booking_lock_sync(booking_id) as acquired:
            if not acquired:
                prometheus_metrics.record_payment_reconcile("locked")
                self.logger.info(f"Reconcile for booking {booking_id} already in progress")
                return booking.payment_status

            self.booking_repository.refresh(booking)
            if booking.is_paid:
                # Settled earlier; finish a confirm that may not have happened.
                booking = self._confirm_if_gated(booking)
                prometheus_metrics.record_payment_reconcile("already_paid")
                return booking.payment_status

            try:
                outcome = self.provider.get_session_status(booking.payment_intent_id)
            except PaymentProviderError:
                prometheus_metrics.record_payment_reconcile("provider_error")
                raise

            if outcome == SESSION_PAID:
                booking = self.booking_service.mark_paid(booking_id)
                booking = self._confirm_if_gated(booking)
            elif outcome == SESSION_FAILED:
                booking = self.booking_service.mark_payment_failed(booking_id)

            prometheus_metrics.record_payment_reconcile(outcome)
            self.log_operation(
                "reconcile_payment",
                booking_id=booking_id,
                outcome=outcome,
                status=booking.status,
            )
            return booking.payment_status

    @BaseService.measure_operation("reconcile_pending")
    def reconcile_pending(self, limit: int = 100) -> Dict[str, int]:
        """Reconcile every pending booking with an open checkout session."""
        summary = {"checked": 0, "paid": 0, "failed": 0, "errors": 0}
        for booking in self.booking_repository.get_awaiting_payment(limit=limit):
            summary["checked"] += 1
            try:
                result = self.reconcile(booking.id)
            except PaymentProviderError as exc:
                summary["errors"] += 1
                self.logger.warning(f"Reconcile failed for booking {booking.id}: {exc.message}")
                continue
            if result == PaymentStatus.PAID.value:
                summary["paid"] += 1
            elif result == PaymentStatus.FAILED.value:
                summary["failed"] += 1
        return summary

    def expire_unpaid(self, older_than_minutes: Optional[int] = None, limit: int = 500) -> int:
        """Expire stale unpaid holds, reconciling open checkout sessions first."""
        return self.booking_service.expire_unpaid(
            older_than_minutes=older_than_minutes, limit=limit, reconcile=self.reconcile
        )

    def _booking_for_session(self, session: Dict[str, Any]) -> Optional[Booking]:
        booking_id = (session.get("metadata") or {}).get("booking_id")
        if booking_id:
            booking = self.booking_repository.get_by_id(booking_id)
            if booking:
                return booking
        session_id = session.get("id")
        if session_id:
            return self.booking_repository.find_one_by(payment_intent_id=session_id)
        return None

    @BaseService.measure_operation("handle_webhook_event")
    def handle_webhook_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply a verified provider webhook event.

        Unknown event types and sessions that do not belong to a booking are
        acknowledged and ignored so the provider stops retrying them.
        """
        event_type = event.get("type", "")
        session = (event.get("data") or {}).get("object") or {}
        if event_type not in PAID_EVENTS and event_type not in FAILED_EVENTS:
            self.logger.debug(f"Ignoring webhook event {event_type}")
            return {"handled": False, "event_type": event_type}

        booking = self._booking_for_session(session)
        if booking is None:
            self.logger.warning(f"No booking for checkout session {session.get('id')}")
            return {"handled": False, "event_type": event_type}

        if booking.payment_intent_id and session.get("id") not in (None, booking.payment_intent_id):
            # A superseded session; only the latest one counts.
            self.logger.info(f"Ignoring stale session {session.get('id')} for booking {booking.id}")
            return {"handled": False, "event_type": event_type, "booking_id": booking.id}

        if event_type in PAID_EVENTS:
            payment_status = self.reconcile(booking.id)
        else:
            payment_status = self.booking_service.mark_payment_failed(booking.id).payment_status

        return {
            "handled": True,
            "event_type": event_type,
            "booking_id": booking.id,
            "payment_status": payment_status,
        }

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a raw Stripe webhook delivery and apply it.

        Raises:
            ValidationException: signature missing or invalid, or payload malformed
            PaymentProviderError: webhook secret not configured
        """
        event = construct_webhook_event(payload, signature)
        self.logger.info(f"Received Stripe webhook: {event.get('type')}")
        return self.handle_webhook_event(event)
