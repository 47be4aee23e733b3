# backend/tutorslots/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.timezone_utils import utc_now
from ...integrations.stripe_checkout import PaymentProvider, StripeCheckoutProvider
from ...services.availability_service import AvailabilityService
from ...services.base import Clock
from ...services.booking_service import BookingService
from ...services.notification_service import NotificationService
from ...services.payment_service import PaymentService
from ...services.slot_generator import SlotGenerator
from .database import get_db

logger = logging.getLogger(__name__)


def get_clock() -> Clock:
    """Clock used by services; overridden in tests to pin "now"."""
    return utc_now


@lru_cache(maxsize=1)
def get_payment_provider_singleton() -> StripeCheckoutProvider:
    """Get singleton Stripe provider instance."""
    return StripeCheckoutProvider()


def get_payment_provider() -> PaymentProvider:
    return get_payment_provider_singleton()


def get_availability_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    return AvailabilityService(db, clock)


def get_slot_generator(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> SlotGenerator:
    return SlotGenerator(db, clock)


def get_booking_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        clock: Current-time source

    Returns:
        BookingService instance
    """
    return BookingService(db, clock)


def get_payment_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    provider: PaymentProvider = Depends(get_payment_provider),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentService:
    return PaymentService(db, clock, provider=provider, booking_service=booking_service)


def get_notification_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> NotificationService:
    return NotificationService(db, clock)
