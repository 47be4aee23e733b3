# backend/tutorslots/services/notification_service.py
"""
Notification Service.

Delivers booking notifications to the people involved: an in-app inbox
entry for every recipient, plus an email through Resend when email is
configured. Recipients per event:

- booking_created   -> tutor ("New Lesson Request")
- booking_confirmed -> student ("Your Lesson is Confirmed!")
- booking_cancelled -> student, and the tutor as well when the student
  cancelled
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..core.timezone_utils import get_timezone, utc_to_local
from ..models.booking import Booking
from ..models.notification import Notification
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService, Clock
from .email import EmailService
from .template_service import TemplateService

logger = logging.getLogger(__name__)

EVENT_SUBJECTS = {
    "booking_created": "New Lesson Request",
    "booking_confirmed": "Your Lesson is Confirmed!",
    "booking_cancelled": "Lesson Cancelled",
}

EVENT_TEMPLATES = {
    "booking_created": "email/booking/created.html",
    "booking_confirmed": "email/booking/confirmed.html",
    "booking_cancelled": "email/booking/cancelled.html",
}


@dataclass(frozen=True)
class RecipientContact:
    """Contact details for one notification recipient."""

    user_id: str
    full_name: str
    email: str
    timezone: str

    @classmethod
    def from_user(cls, user: User) -> "RecipientContact":
        return cls(
            user_id=user.id,
            full_name=user.full_name,
            email=user.email,
            timezone=user.timezone or settings.default_timezone,
        )


class NotificationService(BaseService):
    """Builds and delivers booking notifications."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
    ):
        super().__init__(db, clock)
        self.profile_repository = RepositoryFactory.create_profile_repository(db)
        self.notification_repository = RepositoryFactory.create_notification_repository(db)
        self.template_service = template_service or TemplateService(db, clock)
        self.email_service = email_service or self._build_email_service()

    def _build_email_service(self) -> Optional[EmailService]:
        if not settings.email_enabled or not settings.resend_api_key:
            self.logger.debug("Email delivery disabled; sending in-app notifications only")
            return None
        return EmailService(self.db, self._clock)

    def _contact(self, user_id: str) -> Optional[RecipientContact]:
        user = self.profile_repository.get_user(user_id)
        if not user:
            self.logger.warning(f"Notification recipient {user_id} not found")
            return None
        return RecipientContact.from_user(user)

    def _context(self, booking: Booking, recipient: RecipientContact) -> Dict[str, Any]:
        student = self.profile_repository.get_user(booking.student_id)
        tutor = self.profile_repository.get_user(booking.tutor_id)
        tz = get_timezone(recipient.timezone)
        return {
            "recipient_name": recipient.full_name,
            "student_name": student.full_name if student else "A student",
            "tutor_name": tutor.full_name if tutor else "your tutor",
            "scheduled_at_local": utc_to_local(booking.scheduled_at, tz),
            "timezone": recipient.timezone,
            "duration_minutes": booking.duration_minutes,
            "meeting_link": booking.meeting_link,
            "amount_paid": float(booking.amount_paid) if booking.amount_paid is not None else None,
            "notes": booking.notes,
        }

    def _deliver(
        self,
        event_type: str,
        booking: Booking,
        recipient: RecipientContact,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """Store the in-app notification, then try email. Email failure is logged only."""
        subject = EVENT_SUBJECTS[event_type]
        context = {**self._context(booking, recipient), **(extra or {})}

        with self.transaction():
            notification = self.notification_repository.create(
                user_id=recipient.user_id,
                booking_id=booking.id,
                type=event_type,
                title=subject,
                body=f"{subject}: {context['scheduled_at_local'].strftime('%Y-%m-%d %H:%M')}",
                data={"booking_id": booking.id, "status": booking.status},
            )

        if self.email_service is not None:
            try:
                html = self.template_service.render_template(EVENT_TEMPLATES[event_type], context)
                self.email_service.send_email(recipient.email, subject, html)
            except ServiceException as exc:
                self.logger.warning(
                    f"Email for {event_type} to {recipient.user_id} failed: {exc.message}"
                )
        return notification

    @BaseService.measure_operation("send_booking_created")
    def send_booking_created(self, booking: Booking) -> List[Notification]:
        tutor = self._contact(booking.tutor_id)
        if not tutor:
            return []
        return [self._deliver("booking_created", booking, tutor)]

    @BaseService.measure_operation("send_booking_confirmed")
    def send_booking_confirmed(self, booking: Booking) -> List[Notification]:
        student = self._contact(booking.student_id)
        if not student:
            return []
        return [self._deliver("booking_confirmed", booking, student)]

    @BaseService.measure_operation("send_booking_cancelled")
    def send_booking_cancelled(
        self,
        booking: Booking,
        cancelled_by_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> List[Notification]:
        recipient_ids = [booking.student_id]
        if cancelled_by_id and cancelled_by_id == booking.student_id:
            recipient_ids.append(booking.tutor_id)

        sent: List[Notification] = []
        for user_id in recipient_ids:
            contact = self._contact(user_id)
            if contact:
                sent.append(
                    self._deliver("booking_cancelled", booking, contact, {"reason": reason})
                )
        return sent

    def list_for_user(self, user_id: str, limit: int = 50) -> List[Notification]:
        return self.notification_repository.list_for_user(user_id, limit=limit)
