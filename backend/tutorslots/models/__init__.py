"""
Database models for the scheduling backend.

The models are organized by functionality:
- Users and tutor profiles (collaborator data read by the core)
- Weekly availability rules
- Bookings
- In-app notifications
"""

from .availability import AvailabilityRule
from .booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, PaymentStatus
from .notification import Notification
from .user import TutorProfile, User, UserRole

__all__ = [
    "User",
    "UserRole",
    "TutorProfile",
    "AvailabilityRule",
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "ACTIVE_BOOKING_STATUSES",
    "Notification",
]
