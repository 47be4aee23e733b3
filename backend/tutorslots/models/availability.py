# backend/tutorslots/models/availability.py
"""
Weekly availability rules for tutors.

A rule is a recurring window (day of week plus a wall-clock time range in the
tutor's timezone). Rules for the same day may overlap; only bookings are
required not to. Rules are toggled inactive instead of deleted when a tutor
pauses a window.

Classes:
    AvailabilityRule: Recurring weekly availability window
"""

import logging
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func, true
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class AvailabilityRule(Base):
    """Recurring weekly window during which a tutor can be booked (Sunday=0)."""

    __tablename__ = "tutor_availability"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tutor_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    tutor = relationship("User")

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_availability_time_order"),
        Index("idx_availability_tutor_day", "tutor_id", "day_of_week"),
        Index(
            "uq_availability_active_window",
            "tutor_id",
            "day_of_week",
            "start_time",
            "end_time",
            unique=True,
            postgresql_where=(is_active == true()),
            sqlite_where=(is_active == true()),
        ),
    )

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tutor_id": self.tutor_id,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRule {self.id}: tutor={self.tutor_id} "
            f"{self.day_name} {self.start_time}-{self.end_time} active={self.is_active}>"
        )
