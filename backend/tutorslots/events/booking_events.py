"""Booking domain events, emitted after the transition that caused them commits."""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional


@dataclass
class BookingCreated:
    """Fired after a booking is successfully created."""

    event_type: ClassVar[str] = "booking_created"

    booking_id: str
    student_id: str
    tutor_id: str
    scheduled_at: datetime
    duration_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingPaid:
    """Fired the first time a booking's payment is recorded as settled."""

    event_type: ClassVar[str] = "booking_paid"

    booking_id: str
    paid_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingConfirmed:
    """Fired after a paid booking is confirmed and has a meeting link."""

    event_type: ClassVar[str] = "booking_confirmed"

    booking_id: str
    student_id: str
    tutor_id: str
    meeting_link: str
    confirmed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled or rejected."""

    event_type: ClassVar[str] = "booking_cancelled"

    booking_id: str
    previous_status: str
    cancelled_at: datetime
    cancelled_by_id: Optional[str] = None
    cancelled_by_role: str = "system"  # 'student', 'tutor' or 'system'
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCompleted:
    """Fired after a booking is marked complete."""

    event_type: ClassVar[str] = "booking_completed"

    booking_id: str
    completed_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
