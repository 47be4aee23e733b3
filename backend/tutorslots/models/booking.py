# backend/tutorslots/models/booking.py
"""
Booking model.

A booking reserves ``[scheduled_at, ends_at)`` on a tutor's timeline. Bookings
are never hard-deleted; cancellation is a terminal status that frees the
window for new bookings. Payment state is tracked separately from the
booking status and gates the move to ``confirmed``.
"""

from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Reserved, awaiting payment/confirmation
    CONFIRMED = "confirmed"  # Paid and confirmed, meeting link issued
    CANCELLED = "cancelled"  # Terminal; frees the slot
    COMPLETED = "completed"  # Terminal; lesson took place


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# Statuses that occupy the tutor's timeline
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

# Allowed status transitions: current -> targets
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CANCELLED.value: set(),
    BookingStatus.COMPLETED.value: set(),
}


class Booking(Base):
    """
    A student's reservation of a window on a tutor's timeline.

    ``ends_at`` is stored alongside ``duration_minutes`` so overlap checks and
    the database constraints can compare plain columns.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    tutor_id = Column(String(26), ForeignKey("users.id"), nullable=False)

    scheduled_at = Column(UTCDateTime(), nullable=False)
    ends_at = Column(UTCDateTime(), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    center_id = Column(String(26), nullable=True, comment="Optional physical location")
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_intent_id = Column(String(255), nullable=True, comment="Checkout session id")
    amount_paid = Column(Numeric(10, 2), nullable=True)
    meeting_link = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())
    paid_at = Column(UTCDateTime(), nullable=True)
    confirmed_at = Column(UTCDateTime(), nullable=True)
    completed_at = Column(UTCDateTime(), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    student = relationship("User", foreign_keys=[student_id])
    tutor = relationship("User", foreign_keys=[tutor_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint("ends_at > scheduled_at", name="check_time_order"),
        Index("idx_bookings_tutor_scheduled", "tutor_id", "scheduled_at"),
        Index("idx_bookings_student_scheduled", "student_id", "scheduled_at"),
        # Backstop for the transactional overlap check: two live bookings for the
        # same tutor can never share a start instant.
        Index(
            "uq_bookings_tutor_start_active",
            "tutor_id",
            "scheduled_at",
            unique=True,
            postgresql_where=status.in_(ACTIVE_BOOKING_STATUSES),
            sqlite_where=status.in_(ACTIVE_BOOKING_STATUSES),
        ),
    )

    @property
    def is_active(self) -> bool:
        """Whether the booking still occupies the tutor's timeline."""
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def can_transition_to(self, target: str) -> bool:
        return target in BOOKING_TRANSITIONS.get(self.status, set())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging and event payloads."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "tutor_id": self.tutor_id,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "duration_minutes": self.duration_minutes,
            "center_id": self.center_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "amount_paid": float(self.amount_paid) if self.amount_paid is not None else None,
            "meeting_link": self.meeting_link,
        }

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.student_id}, tutor={self.tutor_id}, "
            f"at={self.scheduled_at}, {self.duration_minutes}m, status={self.status}, "
            f"payment={self.payment_status}>"
        )
