# backend/tutorslots/tasks/beat_schedule.py
"""
Celery Beat schedule configuration.

Tasks are scheduled using crontab expressions for precise timing control.
"""

from typing import Any

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Complete lessons whose end passed - every 15 minutes
    "complete-elapsed-bookings": {
        "task": "tutorslots.tasks.booking_tasks.complete_elapsed_bookings",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "bookings", "priority": 5},
    },
    # Safety net for missed payment webhooks - every 5 minutes
    "reconcile-pending-payments": {
        "task": "tutorslots.tasks.booking_tasks.reconcile_pending_payments",
        "schedule": crontab(minute="*/5"),
        "options": {"queue": "bookings", "priority": 8},
    },
    # Release slots held by unpaid bookings - every 10 minutes
    "expire-unpaid-bookings": {
        "task": "tutorslots.tasks.booking_tasks.expire_unpaid_bookings",
        "schedule": crontab(minute="*/10"),
        "options": {"queue": "bookings", "priority": 5},
    },
}

# Environment-specific overrides
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "reconcile-pending-payments": {
            "task": "tutorslots.tasks.booking_tasks.reconcile_pending_payments",
            "schedule": crontab(minute="*/1"),
            "options": {"queue": "bookings", "priority": 8},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
