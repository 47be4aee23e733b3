"""Booking domain events and their publisher."""

from tutorslots.events.booking_events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingPaid,
)
from tutorslots.events.publisher import EventPublisher

__all__ = [
    "BookingCreated",
    "BookingPaid",
    "BookingConfirmed",
    "BookingCancelled",
    "BookingCompleted",
    "EventPublisher",
]
