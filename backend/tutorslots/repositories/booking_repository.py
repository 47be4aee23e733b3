# backend/tutorslots/repositories/booking_repository.py
"""
Booking Repository for the scheduling backend.

Implements all data access operations for booking management:
- Overlap queries against a tutor's timeline
- Row-locked loads for state transitions
- Tutor/student listings ordered by start time
- Sweep queries for completion, reconciliation and unpaid-hold expiry
"""

from datetime import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, PaymentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    # Overlap queries

    def get_overlapping_bookings(
        self,
        tutor_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get live bookings that share any instant with ``[start, end)``.

        Two windows overlap iff ``a.start < b.end and b.start < a.end``. Only
        pending and confirmed bookings occupy the timeline.
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.tutor_id == tutor_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.scheduled_at < end,
                Booking.ends_at > start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.scheduled_at, Booking.id).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting overlapping bookings: {str(e)}")
            raise RepositoryException(f"Failed to get overlapping bookings: {str(e)}")

    # Single-booking loads

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Load a booking with a row lock held until the transaction ends."""
        try:
            return (
                self.db.query(Booking)
                .filter(Booking.id == booking_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock booking: {str(e)}")

    # Listings

    def _apply_range(
        self,
        query: Query,
        start: Optional[datetime],
        end: Optional[datetime],
        statuses: Optional[Iterable[str]],
    ) -> Query:
        if start is not None:
            query = query.filter(Booking.scheduled_at >= start)
        if end is not None:
            query = query.filter(Booking.scheduled_at < end)
        if statuses:
            query = query.filter(Booking.status.in_(list(statuses)))
        return query.order_by(Booking.scheduled_at, Booking.id)

    def list_for_tutor(
        self,
        tutor_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.tutor_id == tutor_id)
            return self._apply_range(query, start, end, statuses).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to list tutor bookings: {str(e)}")

    def list_for_student(
        self,
        student_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.student_id == student_id)
            return self._apply_range(query, start, end, statuses).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for student {student_id}: {str(e)}")
            raise RepositoryException(f"Failed to list student bookings: {str(e)}")

    # Sweeps

    def get_elapsed_confirmed(self, now: datetime, limit: int = 500) -> List[Booking]:
        """Confirmed bookings whose end has passed."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.ends_at <= now,
                )
                .order_by(Booking.ends_at, Booking.id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading elapsed bookings: {str(e)}")
            raise RepositoryException(f"Failed to load elapsed bookings: {str(e)}")

    def get_awaiting_payment(self, limit: int = 100) -> List[Booking]:
        """Pending bookings with a checkout session that has not settled yet."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                    Booking.payment_intent_id.isnot(None),
                )
                .order_by(Booking.created_at, Booking.id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading bookings awaiting payment: {str(e)}")
            raise RepositoryException(f"Failed to load bookings awaiting payment: {str(e)}")

    def get_stale_unpaid(self, created_before: datetime, limit: int = 500) -> List[Booking]:
        """Pending, unpaid bookings created before the cutoff."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.payment_status != PaymentStatus.PAID.value,
                    Booking.created_at < created_before,
                )
                .order_by(Booking.created_at, Booking.id)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading stale unpaid bookings: {str(e)}")
            raise RepositoryException(f"Failed to load stale unpaid bookings: {str(e)}")
