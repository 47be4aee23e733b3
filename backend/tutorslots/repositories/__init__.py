# backend/tutorslots/repositories/__init__.py
"""
Repository Pattern Implementation for the scheduling backend.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- AvailabilityRepository: Weekly availability rules
- BookingRepository: Bookings, overlap queries and sweeps
- ProfileRepository: Users and tutor profiles
- NotificationRepository: In-app notifications

Usage:
    from tutorslots.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_repository(db)
    bookings = repository.list_for_tutor(tutor_id)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .profile_repository import ProfileRepository

__all__ = [
    "IRepository",
    "BaseRepository",
    "RepositoryFactory",
    "AvailabilityRepository",
    "BookingRepository",
    "NotificationRepository",
    "ProfileRepository",
]
