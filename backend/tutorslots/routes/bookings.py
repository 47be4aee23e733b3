# backend/tutorslots/routes/bookings.py
"""
Booking routes.

Key Features:
    - Students request bookings for a tutor's free window
    - Tutors confirm, reject and complete; either party cancels
    - Listings for a student or a tutor, ordered by start time

Router Endpoints:
    POST /bookings - Create a pending booking (caller is the student)
    GET /bookings/{booking_id} - Booking details for its student or tutor
    POST /bookings/{booking_id}/confirm - Tutor confirms a paid booking
    POST /bookings/{booking_id}/reject - Tutor declines
    POST /bookings/{booking_id}/cancel - Either party cancels
    POST /bookings/{booking_id}/complete - Tutor marks a confirmed lesson done
    GET /students/{student_id}/bookings - Student's bookings
    GET /tutors/{tutor_id}/bookings - Tutor's bookings
"""

from datetime import datetime
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..api.dependencies import (
    get_booking_service,
    get_current_actor,
    require_party,
    require_self,
)
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..schemas.booking import (
    BookingCancel,
    BookingConfirm,
    BookingCreate,
    BookingListResponse,
    BookingRecord,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])
listing_router = APIRouter(tags=["bookings"])

VALID_STATUSES = {s.value for s in BookingStatus}


def _require_tutor(actor: User, booking: Booking) -> None:
    if actor.id != booking.tutor_id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Only the booking's tutor can do this", "code": "FORBIDDEN"},
        )


def _parse_statuses(raw: Optional[List[str]]) -> Optional[List[str]]:
    if not raw:
        return None
    unknown = [s for s in raw if s not in VALID_STATUSES]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": f"Unknown booking status: {', '.join(unknown)}",
                "code": "INVALID_STATUS",
            },
        )
    return raw


def _listing(bookings: List[Booking]) -> BookingListResponse:
    return BookingListResponse(
        bookings=[BookingRecord.model_validate(b) for b in bookings], total=len(bookings)
    )


@router.post("", response_model=BookingRecord, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: BookingCreate,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    """Reserve a window on the tutor's timeline for the calling student."""
    booking = booking_service.create(
        student_id=actor.id,
        tutor_id=payload.tutor_id,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        center_id=payload.center_id,
        notes=payload.notes,
    )
    return BookingRecord.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingRecord)
def get_booking(
    booking_id: str,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    booking = booking_service.get(booking_id)
    require_party(actor, booking.student_id, booking.tutor_id)
    return BookingRecord.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingRecord)
def confirm_booking(
    booking_id: str,
    payload: Optional[BookingConfirm] = None,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    booking = booking_service.get(booking_id)
    _require_tutor(actor, booking)
    confirmed = booking_service.confirm(
        booking_id, meeting_link=payload.meeting_link if payload else None
    )
    return BookingRecord.model_validate(confirmed)


@router.post("/{booking_id}/reject", response_model=BookingRecord)
def reject_booking(
    booking_id: str,
    payload: Optional[BookingCancel] = None,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    booking = booking_service.get(booking_id)
    _require_tutor(actor, booking)
    rejected = booking_service.reject(
        booking_id, actor_id=actor.id, reason=payload.reason if payload else None
    )
    return BookingRecord.model_validate(rejected)


@router.post("/{booking_id}/cancel", response_model=BookingRecord)
def cancel_booking(
    booking_id: str,
    payload: Optional[BookingCancel] = None,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    booking = booking_service.get(booking_id)
    require_party(actor, booking.student_id, booking.tutor_id)
    cancelled = booking_service.cancel(
        booking_id, actor_id=actor.id, reason=payload.reason if payload else None
    )
    return BookingRecord.model_validate(cancelled)


@router.post("/{booking_id}/complete", response_model=BookingRecord)
def complete_booking(
    booking_id: str,
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingRecord:
    booking = booking_service.get(booking_id)
    _require_tutor(actor, booking)
    return BookingRecord.model_validate(booking_service.complete(booking_id))


@listing_router.get("/students/{student_id}/bookings", response_model=BookingListResponse)
def list_student_bookings(
    student_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    require_self(actor, student_id)
    return _listing(
        booking_service.list_for_student(
            student_id, start=start, end=end, statuses=_parse_statuses(status_filter)
        )
    )


@listing_router.get("/tutors/{tutor_id}/bookings", response_model=BookingListResponse)
def list_tutor_bookings(
    tutor_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    actor: User = Depends(get_current_actor),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    require_self(actor, tutor_id)
    return _listing(
        booking_service.list_for_tutor(
            tutor_id, start=start, end=end, statuses=_parse_statuses(status_filter)
        )
    )
