# backend/tutorslots/tasks/booking_tasks.py
"""
Periodic booking sweeps.

- complete_elapsed_bookings: confirmed lessons whose end has passed -> completed
- reconcile_pending_payments: pull outcomes for open checkout sessions
  (covers webhooks that never arrived)
- expire_unpaid_bookings: free slots held by pending bookings whose payment
  never settled

Each task opens its own session and is safe to run again.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from tutorslots.core.exceptions import PaymentProviderError
from tutorslots.database import SessionLocal
from tutorslots.services.booking_service import BookingService
from tutorslots.services.payment_service import PaymentService
from tutorslots.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    base=BaseTask, bind=True, name="tutorslots.tasks.booking_tasks.complete_elapsed_bookings"
)
def complete_elapsed_bookings(self: Any, limit: int = 500) -> Dict[str, Any]:
    """Mark confirmed bookings whose end time has passed as completed."""
    db: Session = SessionLocal()
    try:
        completed = BookingService(db).complete_elapsed(limit=limit)
        logger.info(f"Completion sweep finished: {completed} booking(s) completed")
        return {"completed": completed, "processed_at": datetime.now(timezone.utc).isoformat()}
    finally:
        db.close()


@celery_app.task(
    base=BaseTask,
    bind=True,
    max_retries=3,
    name="tutorslots.tasks.booking_tasks.reconcile_pending_payments",
)
def reconcile_pending_payments(self: Any, limit: int = 100) -> Dict[str, Any]:
    """
    Reconcile every pending booking that has an open checkout session.

    Per-booking provider errors are counted by the service. When every
    lookup in the batch failed the provider is treated as down and the
    sweep is retried; partial failures wait for the next scheduled run.
    """
    db: Session = SessionLocal()
    try:
        summary = PaymentService(db).reconcile_pending(limit=limit)
    finally:
        db.close()
    if summary["checked"] and summary["errors"] == summary["checked"]:
        exc = PaymentProviderError(
            f"All {summary['checked']} payment lookup(s) failed",
            details=summary,
        )
        logger.warning(f"Payment reconcile sweep could not reach the provider: {exc.message}")
        raise self.retry(exc=exc, countdown=60)
    if summary["errors"]:
        logger.warning(f"Payment reconcile sweep had {summary['errors']} failed lookup(s)")
    logger.info(f"Payment reconcile sweep finished: {summary}")
    return {**summary, "processed_at": datetime.now(timezone.utc).isoformat()}


@celery_app.task(
    base=BaseTask, bind=True, name="tutorslots.tasks.booking_tasks.expire_unpaid_bookings"
)
def expire_unpaid_bookings(self: Any, older_than_minutes: int = 0, limit: int = 500) -> Dict[str, Any]:
    """
    Cancel pending bookings left unpaid beyond the hold window.

    Bookings with an open checkout session are reconciled first.
    """
    db: Session = SessionLocal()
    try:
        expired = PaymentService(db).expire_unpaid(
            older_than_minutes=older_than_minutes or None, limit=limit
        )
        logger.info(f"Unpaid-hold sweep finished: {expired} booking(s) expired")
        return {"expired": expired, "processed_at": datetime.now(timezone.utc).isoformat()}
    finally:
        db.close()
