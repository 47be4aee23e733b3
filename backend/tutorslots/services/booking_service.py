# backend/tutorslots/services/booking_service.py
"""
Booking Service for the scheduling backend.

The authoritative ledger of bookings per tutor. It is the only writer of
``status``, ``payment_status`` and ``meeting_link`` and enforces:

- no two pending/confirmed bookings of a tutor overlap
- bookings start in the future, inside the tutor's active availability
- status moves only along pending -> confirmed -> completed,
  pending -> cancelled and confirmed -> cancelled
- a booking is confirmed only after its payment settled

Creation runs check-then-insert while holding a row lock on the tutor's
profile, so concurrent requests for the same tutor are serialized. The
partial unique index on (tutor_id, scheduled_at) and, on PostgreSQL, the
``bookings_no_overlap_per_tutor`` exclusion constraint back that up; any
violation surfaces as ``SlotUnavailableException``.

Events are published only after the transition commits.
"""

from datetime import datetime, timedelta
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    InvalidTimeException,
    InvalidTransitionException,
    NotFoundException,
    PaymentProviderError,
    PaymentRequiredException,
    RepositoryException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, get_timezone
from ..events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingCreated,
    BookingPaid,
    EventPublisher,
)
from ..models.booking import Booking, BookingStatus, PaymentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService, Clock
from .meeting_links import generate_meeting_link
from .slot_generator import SlotGenerator

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot is no longer available"
OUTSIDE_AVAILABILITY_MESSAGE = "The tutor is not available at the requested time"

SLOT_CONSTRAINT_MARKERS = (
    "uq_bookings_tutor_start_active",
    "bookings_no_overlap_per_tutor",
    "unique constraint failed: bookings.",
    "exclusion constraint",
    "deadlock detected",
)


class BookingService(BaseService):
    """
    Service layer for the booking ledger.

    Typical flow:
        booking = service.create(student_id, tutor_id, start, 60)
        ... PaymentService.initiate / reconcile ...
        service.mark_paid(booking.id)
        service.confirm(booking.id)
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        event_publisher: Optional[EventPublisher] = None,
        repository=None,
        slot_generator: Optional[SlotGenerator] = None,
        meeting_link_factory: Callable[[], str] = generate_meeting_link,
    ):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.profile_repository = RepositoryFactory.create_profile_repository(db)
        self.slot_generator = slot_generator or SlotGenerator(
            db, clock, booking_repository=self.repository, profile_repository=self.profile_repository
        )
        self.event_publisher = event_publisher or EventPublisher(db)
        self.meeting_link_factory = meeting_link_factory

    # Helpers

    @staticmethod
    def _is_deadlock_error(exc: OperationalError) -> bool:
        orig = getattr(exc, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode == "40P01":
            return True
        return "deadlock detected" in str(exc).lower()

    @staticmethod
    def _is_slot_constraint(exc: Exception) -> bool:
        message = str(exc).lower()
        return any(marker in message for marker in SLOT_CONSTRAINT_MARKERS)

    def _slot_unavailable(
        self, reason: str, tutor_id: str, start: datetime, end: datetime, **extra
    ) -> SlotUnavailableException:
        prometheus_metrics.record_slot_conflict(reason)
        message = (
            OUTSIDE_AVAILABILITY_MESSAGE if reason == "outside_availability" else GENERIC_CONFLICT_MESSAGE
        )
        return SlotUnavailableException(
            message,
            details={
                "reason": reason,
                "tutor_id": tutor_id,
                "scheduled_at": start.isoformat(),
                "ends_at": end.isoformat(),
                **extra,
            },
        )

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        granularity = settings.slot_granularity_minutes
        if (
            not isinstance(duration_minutes, int)
            or duration_minutes <= 0
            or duration_minutes % granularity != 0
            or duration_minutes > settings.max_booking_minutes
        ):
            raise ValidationException(
                f"Duration must be a positive multiple of {granularity} minutes "
                f"up to {settings.max_booking_minutes}",
                code="INVALID_DURATION",
                details={"duration_minutes": duration_minutes},
            )

    def _get_for_update_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_for_update(booking_id)
        if not booking:
            raise NotFoundException(
                f"Booking {booking_id} not found", details={"booking_id": booking_id}
            )
        return booking

    def _record_transition(self, booking: Booking, previous: str) -> None:
        prometheus_metrics.record_booking_transition(previous, booking.status)
        self.log_operation(
            "booking_transition",
            booking_id=booking.id,
            from_status=previous,
            to_status=booking.status,
        )

    def _publish(self, event) -> None:
        self.event_publisher.publish(event)

    # Creation

    @BaseService.measure_operation("create_booking")
    def create(
        self,
        student_id: str,
        tutor_id: str,
        scheduled_at: datetime,
        duration_minutes: int,
        center_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Reserve ``[scheduled_at, scheduled_at + duration)`` on the tutor's timeline.

        Returns:
            New booking with status=pending and payment_status=pending

        Raises:
            InvalidTimeException: start is not strictly in the future
            ValidationException: duration is not a positive slot multiple
            NotFoundException: tutor or student does not exist
            SlotUnavailableException: window overlaps a live booking or lies
                outside the tutor's active availability
        """
        start = ensure_utc(scheduled_at)
        now = self.now()
        if start <= now:
            raise InvalidTimeException(
                "Bookings must start in the future",
                details={"scheduled_at": start.isoformat(), "now": now.isoformat()},
            )
        self._validate_duration(duration_minutes)
        end = start + timedelta(minutes=duration_minutes)

        self.log_operation(
            "create_booking",
            student_id=student_id,
            tutor_id=tutor_id,
            scheduled_at=start.isoformat(),
            duration_minutes=duration_minutes,
        )

        try:
            with self.repository.transaction():
                # Row lock serializes concurrent creates for this tutor.
                profile = self.profile_repository.get_tutor_profile(tutor_id, for_update=True)
                if not profile or not profile.is_active:
                    raise NotFoundException(
                        f"Tutor {tutor_id} not found", details={"tutor_id": tutor_id}
                    )
                if not self.profile_repository.get_user(student_id):
                    raise NotFoundException(
                        f"Student {student_id} not found", details={"student_id": student_id}
                    )

                if settings.enforce_availability_on_create:
                    fits = self.slot_generator.slot_fits_availability(
                        tutor_id, start, duration_minutes, tz=get_timezone(profile.timezone)
                    )
                    if not fits:
                        raise self._slot_unavailable("outside_availability", tutor_id, start, end)

                conflicts = self.repository.get_overlapping_bookings(tutor_id, start, end)
                if conflicts:
                    raise self._slot_unavailable(
                        "overlap",
                        tutor_id,
                        start,
                        end,
                        conflicting_booking_ids=[b.id for b in conflicts],
                    )

                booking = self.repository.create(
                    student_id=student_id,
                    tutor_id=tutor_id,
                    scheduled_at=start,
                    ends_at=end,
                    duration_minutes=duration_minutes,
                    center_id=center_id,
                    notes=notes,
                    status=BookingStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    created_at=now,
                )
        except IntegrityError as exc:
            raise self._slot_unavailable("constraint", tutor_id, start, end) from exc
        except OperationalError as exc:
            if self._is_deadlock_error(exc):
                raise self._slot_unavailable("deadlock", tutor_id, start, end) from exc
            raise
        except RepositoryException as exc:
            if self._is_slot_constraint(exc):
                raise self._slot_unavailable("constraint", tutor_id, start, end) from exc
            raise

        prometheus_metrics.record_booking_transition("new", BookingStatus.PENDING.value)
        self._publish(
            BookingCreated(
                booking_id=booking.id,
                student_id=student_id,
                tutor_id=tutor_id,
                scheduled_at=start,
                duration_minutes=duration_minutes,
            )
        )
        return booking

    # Payment state

    @BaseService.measure_operation("mark_paid")
    def mark_paid(self, booking_id: str) -> Booking:
        """
        Record that the booking's payment settled. Calling it again is a no-op.

        Allowed whatever the booking status: money that arrives for a booking
        cancelled meanwhile is still recorded.
        """
        newly_paid = False
        with self.transaction():
            booking = self._get_for_update_or_404(booking_id)
            if not booking.is_paid:
                booking.payment_status = PaymentStatus.PAID.value
                booking.paid_at = self.now()
                self.repository.flush()
                newly_paid = True

        if newly_paid:
            self.log_operation("mark_paid", booking_id=booking_id, status=booking.status)
            self._publish(BookingPaid(booking_id=booking.id, paid_at=ensure_utc(booking.paid_at)))
        return booking

    @BaseService.measure_operation("mark_payment_failed")
    def mark_payment_failed(self, booking_id: str) -> Booking:
        """Record a failed or expired checkout. A settled payment is never downgraded."""
        with self.transaction():
            booking = self._get_for_update_or_404(booking_id)
            if booking.payment_status == PaymentStatus.PENDING.value:
                booking.payment_status = PaymentStatus.FAILED.value
                self.repository.flush()
                self.log_operation("mark_payment_failed", booking_id=booking_id)
        return booking

    def record_checkout(self, booking: Booking, session_id: str, amount_paid) -> Booking:
        """Attach a new checkout session to a pending booking (caller holds the transaction)."""
        booking.payment_intent_id = session_id
        booking.amount_paid = amount_paid
        booking.payment_status = PaymentStatus.PENDING.value
        self.repository.flush()
        return booking

    # Status transitions

    @BaseService.measure_operation("confirm_booking")
    def confirm(self, booking_id: str, meeting_link: Optional[str] = None) -> Booking:
        """
        Move a paid pending booking to confirmed and attach a meeting link.

        Status is re-read under a row lock right before the change, so a
        booking cancelled while its payment was in flight is never confirmed.

        Payment is checked before status: an unpaid booking reports
        PaymentRequired whatever its status.

        Raises:
            PaymentRequiredException: payment has not settled
            InvalidTransitionException: booking is paid but not pending
        """
        with self.transaction():
            booking = self._get_for_update_or_404(booking_id)
            previous = booking.status
            if not booking.is_paid:
                raise PaymentRequiredException(booking_id, booking.payment_status)
            if previous != BookingStatus.PENDING.value:
                raise InvalidTransitionException(booking_id, previous, "confirm")

            booking.status = BookingStatus.CONFIRMED.value
            booking.meeting_link = meeting_link or self.meeting_link_factory()
            booking.confirmed_at = self.now()
            self.repository.flush()

        self._record_transition(booking, previous)
        self._publish(
            BookingConfirmed(
                booking_id=booking.id,
                student_id=booking.student_id,
                tutor_id=booking.tutor_id,
                meeting_link=booking.meeting_link,
                confirmed_at=ensure_utc(booking.confirmed_at),
            )
        )
        return booking

    def _cancel(
        self,
        booking_id: str,
        target: str,
        actor_id: Optional[str],
        reason: Optional[str],
    ) -> Booking:
        with self.transaction():
            booking = self._get_for_update_or_404(booking_id)
            previous = booking.status
            if not booking.can_transition_to(BookingStatus.CANCELLED.value):
                raise InvalidTransitionException(booking_id, previous, target)

            booking.status = BookingStatus.CANCELLED.value
            booking.meeting_link = None
            booking.cancelled_at = self.now()
            booking.cancelled_by_id = actor_id
            booking.cancellation_reason = reason
            self.repository.flush()

        if actor_id is None:
            role = "system"
        elif actor_id == booking.student_id:
            role = "student"
        elif actor_id == booking.tutor_id:
            role = "tutor"
        else:
            role = "admin"

        self._record_transition(booking, previous)
        self._publish(
            BookingCancelled(
                booking_id=booking.id,
                previous_status=previous,
                cancelled_at=ensure_utc(booking.cancelled_at),
                cancelled_by_id=actor_id,
                cancelled_by_role=role,
                reason=reason,
            )
        )
        return booking

    @BaseService.measure_operation("reject_booking")
    def reject(
        self, booking_id: str, actor_id: Optional[str] = None, reason: Optional[str] = None
    ) -> Booking:
        """Tutor declines a booking. Same transition as cancel."""
        return self._cancel(booking_id, "reject", actor_id, reason or "rejected")

    @BaseService.measure_operation("cancel_booking")
    def cancel(
        self, booking_id: str, actor_id: Optional[str] = None, reason: Optional[str] = None
    ) -> Booking:
        """Cancel a pending or confirmed booking, freeing its window."""
        return self._cancel(booking_id, "cancel", actor_id, reason)

    @BaseService.measure_operation("complete_booking")
    def complete(self, booking_id: str) -> Booking:
        """Mark a confirmed booking as completed."""
        with self.transaction():
            booking = self._get_for_update_or_404(booking_id)
            previous = booking.status
            if previous != BookingStatus.CONFIRMED.value:
                raise InvalidTransitionException(booking_id, previous, "complete")
            booking.status = BookingStatus.COMPLETED.value
            booking.completed_at = self.now()
            self.repository.flush()

        self._record_transition(booking, previous)
        self._publish(
            BookingCompleted(booking_id=booking.id, completed_at=ensure_utc(booking.completed_at))
        )
        return booking

    # Sweeps

    @BaseService.measure_operation("complete_elapsed")
    def complete_elapsed(self, now: Optional[datetime] = None, limit: int = 500) -> int:
        """Complete every confirmed booking whose end has passed. Safe to rerun."""
        cutoff = ensure_utc(now) if now else self.now()
        completed = 0
        for booking in self.repository.get_elapsed_confirmed(cutoff, limit=limit):
            try:
                self.complete(booking.id)
                completed += 1
            except InvalidTransitionException:
                # Changed state since the sweep query ran
                continue
        if completed:
            self.log_operation("complete_elapsed", completed=completed)
        return completed

    @BaseService.measure_operation("expire_unpaid")
    def expire_unpaid(
        self,
        older_than_minutes: Optional[int] = None,
        limit: int = 500,
        reconcile: Optional[Callable[[str], str]] = None,
    ) -> int:
        """
        Cancel pending bookings whose payment never settled within the hold window.

        With ``reconcile``, a booking that has an open checkout session is
        reconciled first and kept when its payment turns out to have settled
        or when the provider cannot be asked.
        """
        hold = older_than_minutes or settings.unpaid_hold_minutes
        cutoff = self.now() - timedelta(minutes=hold)
        expired = 0
        for booking in self.repository.get_stale_unpaid(cutoff, limit=limit):
            if reconcile is not None and booking.payment_intent_id:
                try:
                    payment_status = reconcile(booking.id)
                except PaymentProviderError as exc:
                    self.logger.warning(
                        f"Keeping booking {booking.id}: payment lookup failed: {exc.message}"
                    )
                    continue
                if payment_status == PaymentStatus.PAID.value:
                    continue
            try:
                self.cancel(booking.id, actor_id=None, reason="payment_timeout")
                expired += 1
            except InvalidTransitionException:
                continue
        if expired:
            self.log_operation("expire_unpaid", expired=expired)
        return expired

    # Queries

    def get(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundException(
                f"Booking {booking_id} not found", details={"booking_id": booking_id}
            )
        return booking

    @BaseService.measure_operation("list_for_tutor")
    def list_for_tutor(
        self,
        tutor_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        """Tutor's bookings ordered by start time, optionally within ``[start, end)``."""
        return self.repository.list_for_tutor(
            tutor_id,
            start=ensure_utc(start) if start else None,
            end=ensure_utc(end) if end else None,
            statuses=statuses,
        )

    @BaseService.measure_operation("list_for_student")
    def list_for_student(
        self,
        student_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        """Student's bookings ordered by start time, optionally within ``[start, end)``."""
        return self.repository.list_for_student(
            student_id,
            start=ensure_utc(start) if start else None,
            end=ensure_utc(end) if end else None,
            statuses=statuses,
        )
