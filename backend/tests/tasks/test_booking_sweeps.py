# backend/tests/tasks/test_booking_sweeps.py
"""
Tests for the periodic booking sweeps and their beat schedule.

Most tests patch the services out and cover session handling, return
payloads and retry behaviour of the Celery tasks themselves. The reconcile
sweep is also run end to end against a failing fake provider.
"""

from unittest.mock import MagicMock, patch

from celery.exceptions import Retry
from celery.schedules import crontab
import pytest

from tests.factories.booking_builders import NEXT_MONDAY, at
from tutorslots.core.exceptions import PaymentProviderError
from tutorslots.models.booking import PaymentStatus
from tutorslots.services.booking_service import BookingService
from tutorslots.services.payment_service import PaymentService
from tutorslots.tasks import booking_tasks
from tutorslots.tasks.beat_schedule import CELERYBEAT_SCHEDULE, get_beat_schedule


@pytest.fixture
def session():
    db = MagicMock()
    with patch.object(booking_tasks, "SessionLocal", return_value=db):
        yield db


class TestCompleteElapsedBookings:
    def test_returns_count_and_closes_session(self, session):
        with patch.object(booking_tasks, "BookingService") as service_cls:
            service_cls.return_value.complete_elapsed.return_value = 3

            result = booking_tasks.complete_elapsed_bookings(limit=10)

        service_cls.assert_called_once_with(session)
        service_cls.return_value.complete_elapsed.assert_called_once_with(limit=10)
        assert result["completed"] == 3
        assert "processed_at" in result
        session.close.assert_called_once()

    def test_session_closed_when_sweep_fails(self, session):
        with patch.object(booking_tasks, "BookingService") as service_cls:
            service_cls.return_value.complete_elapsed.side_effect = RuntimeError("db gone")

            with pytest.raises(RuntimeError):
                booking_tasks.complete_elapsed_bookings()

        session.close.assert_called_once()


class TestExpireUnpaidBookings:
    def test_zero_means_configured_hold(self, session):
        with patch.object(booking_tasks, "PaymentService") as service_cls:
            service_cls.return_value.expire_unpaid.return_value = 2

            result = booking_tasks.expire_unpaid_bookings()

        service_cls.return_value.expire_unpaid.assert_called_once_with(
            older_than_minutes=None, limit=500
        )
        assert result["expired"] == 2


class TestReconcilePendingPayments:
    def test_returns_summary(self, session):
        summary = {"checked": 2, "paid": 1, "failed": 0, "errors": 1}
        with patch.object(booking_tasks, "PaymentService") as service_cls:
            service_cls.return_value.reconcile_pending.return_value = summary

            result = booking_tasks.reconcile_pending_payments(limit=5)

        service_cls.return_value.reconcile_pending.assert_called_once_with(limit=5)
        assert result["paid"] == 1
        assert result["errors"] == 1

    def test_every_lookup_failing_schedules_retry(self, session):
        task = booking_tasks.reconcile_pending_payments
        summary = {"checked": 3, "paid": 0, "failed": 0, "errors": 3}
        with patch.object(booking_tasks, "PaymentService") as service_cls, patch.object(
            task, "retry", side_effect=Retry()
        ) as retry:
            service_cls.return_value.reconcile_pending.return_value = summary

            with pytest.raises(Retry):
                task()

        assert retry.call_args.kwargs["countdown"] == 60
        assert isinstance(retry.call_args.kwargs["exc"], PaymentProviderError)
        session.close.assert_called_once()

    def test_empty_batch_does_not_retry(self, session):
        task = booking_tasks.reconcile_pending_payments
        summary = {"checked": 0, "paid": 0, "failed": 0, "errors": 0}
        with patch.object(booking_tasks, "PaymentService") as service_cls, patch.object(
            task, "retry"
        ) as retry:
            service_cls.return_value.reconcile_pending.return_value = summary

            result = task()

        retry.assert_not_called()
        assert result["checked"] == 0


class TestReconcileSweepAgainstProvider:
    def test_provider_down_retries_and_leaves_bookings_pending(
        self, db, clock, payment_provider, tutor, student, other_student
    ):
        booking_service = BookingService(db, clock)
        payments = PaymentService(db, clock, provider=payment_provider)
        first = booking_service.create(student.id, tutor.id, at(NEXT_MONDAY, 9, 0), 30)
        second = booking_service.create(other_student.id, tutor.id, at(NEXT_MONDAY, 10, 0), 30)
        payments.initiate(first.id)
        payments.initiate(second.id)
        payment_provider.fail_status = True

        task = booking_tasks.reconcile_pending_payments
        with patch.object(booking_tasks, "SessionLocal", return_value=db), patch.object(
            booking_tasks,
            "PaymentService",
            side_effect=lambda session: PaymentService(session, clock, provider=payment_provider),
        ), patch.object(task, "retry", side_effect=Retry()) as retry:
            with pytest.raises(Retry):
                task()

        assert retry.call_args.kwargs["exc"].details["errors"] == 2
        assert len(payment_provider.status_calls) == 2
        for booking_id in (first.id, second.id):
            assert booking_service.get(booking_id).payment_status == PaymentStatus.PENDING.value


class TestBeatSchedule:
    def test_every_sweep_is_scheduled_on_bookings_queue(self):
        names = {entry["task"] for entry in CELERYBEAT_SCHEDULE.values()}

        assert names == {
            "tutorslots.tasks.booking_tasks.complete_elapsed_bookings",
            "tutorslots.tasks.booking_tasks.reconcile_pending_payments",
            "tutorslots.tasks.booking_tasks.expire_unpaid_bookings",
        }
        assert all(e["options"]["queue"] == "bookings" for e in CELERYBEAT_SCHEDULE.values())

    def test_development_reconciles_every_minute(self):
        schedule = get_beat_schedule("development")

        assert schedule["reconcile-pending-payments"]["schedule"] == crontab(minute="*/1")
        assert get_beat_schedule("production") == CELERYBEAT_SCHEDULE
