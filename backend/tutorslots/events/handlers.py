"""Event handlers - turn booking events into notifications."""
import json
import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from tutorslots.models.booking import Booking
from tutorslots.repositories.booking_repository import BookingRepository
from tutorslots.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def _load_booking(db: Session, booking_id: str) -> Optional[Booking]:
    return BookingRepository(db).get_by_id(booking_id)


def handle_booking_created(payload_str: str, db: Session) -> None:
    """Tell the tutor about a new lesson request."""
    payload = json.loads(payload_str)

    booking = _load_booking(db, payload["booking_id"])
    if not booking:
        logger.warning("Booking %s not found for creation notice", payload["booking_id"])
        return

    NotificationService(db).send_booking_created(booking)
    logger.info("Sent new booking notice for %s", booking.id)


def handle_booking_confirmed(payload_str: str, db: Session) -> None:
    """Tell the student their lesson is confirmed."""
    payload = json.loads(payload_str)

    booking = _load_booking(db, payload["booking_id"])
    if not booking:
        logger.warning("Booking %s not found for confirmation", payload["booking_id"])
        return

    NotificationService(db).send_booking_confirmed(booking)
    logger.info("Sent booking confirmation for %s", booking.id)


def handle_booking_cancelled(payload_str: str, db: Session) -> None:
    """Send cancellation notices."""
    payload = json.loads(payload_str)

    booking = _load_booking(db, payload["booking_id"])
    if not booking:
        logger.warning("Booking %s not found for cancellation notice", payload["booking_id"])
        return

    NotificationService(db).send_booking_cancelled(
        booking,
        cancelled_by_id=payload.get("cancelled_by_id"),
        reason=payload.get("reason"),
    )
    logger.info("Sent cancellation notification for %s", booking.id)


# Registry of event type -> subscribers
EVENT_HANDLERS: Dict[str, List[Callable[[str, Session], None]]] = {
    "booking_created": [handle_booking_created],
    "booking_confirmed": [handle_booking_confirmed],
    "booking_cancelled": [handle_booking_cancelled],
}
