# backend/tutorslots/models/user.py
"""
User and tutor profile models.

Identity and profile data are owned by collaborators outside the scheduling
core; the core only reads ``hourly_rate`` and ``timezone`` from the tutor
profile and ``full_name``/``email`` from the user when building
notifications.

Classes:
    UserRole: Enum defining the possible user roles
    User: Student, tutor or admin account
    TutorProfile: Tutor-specific data (rate and timezone)
"""

from enum import Enum
import logging
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class User(Base):
    """
    Account record for anyone taking part in a booking.

    Attributes:
        id: ULID primary key
        email: Unique contact address used for notifications
        full_name: Display name used in notifications
        role: student, tutor or admin
        timezone: Preferred IANA timezone for rendering times
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String(120), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    timezone = Column(String(50), nullable=False, default="UTC")
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    tutor_profile = relationship(
        "TutorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("role IN ('student', 'tutor', 'admin')", name="ck_users_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"


class TutorProfile(Base):
    """Tutor profile: hourly rate and the timezone availability rules are written in."""

    __tablename__ = "tutors"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    hourly_rate = Column(Numeric(10, 2), nullable=False)
    timezone = Column(String(50), nullable=True)
    bio = Column(String(1000), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), server_default=func.now())
    updated_at = Column(UTCDateTime(), onupdate=func.now())

    user = relationship("User", back_populates="tutor_profile")

    __table_args__ = (CheckConstraint("hourly_rate > 0", name="check_tutor_rate_positive"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "hourly_rate": float(self.hourly_rate),
            "timezone": self.timezone,
            "is_active": self.is_active,
        }

    def __repr__(self) -> str:
        return f"<TutorProfile user={self.user_id} rate={self.hourly_rate}>"
