# backend/tutorslots/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_actor, require_party, require_self
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_clock,
    get_notification_service,
    get_payment_provider,
    get_payment_service,
    get_slot_generator,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_party",
    "require_self",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_clock",
    "get_notification_service",
    "get_payment_provider",
    "get_payment_service",
    "get_slot_generator",
]
