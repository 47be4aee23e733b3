"""Event publisher - runs subscribers for committed booking transitions."""
from datetime import datetime
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy.orm import Session

from tutorslots.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Session], None]


class Event(Protocol):
    """Protocol for event types."""

    event_type: str

    def to_dict(self) -> Dict[str, Any]:
        ...


def serialize_event(event: Event) -> str:
    payload = event.to_dict()

    # Convert datetime objects to ISO strings for JSON serialization
    for key, value in payload.items():
        if isinstance(value, datetime):
            payload[key] = value.isoformat()

    return json.dumps(payload)


class EventPublisher:
    """
    Publishes domain events to registered subscribers.

    Publishing happens after the state transition has committed. A failing
    subscriber is logged and counted; it never propagates to the caller, so a
    notification outage cannot make a successful transition look failed.
    """

    def __init__(self, db: Session, handlers: Optional[Dict[str, List[EventHandler]]] = None):
        self.db = db
        if handlers is None:
            from tutorslots.events.handlers import EVENT_HANDLERS

            handlers = EVENT_HANDLERS
        self._handlers: Dict[str, List[EventHandler]] = {
            event_type: list(subscribers) for event_type, subscribers in handlers.items()
        }
        self.published: List[str] = []

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def publish(self, event: Event) -> None:
        event_type = event.event_type
        payload = serialize_event(event)
        self.published.append(event_type)

        for handler in self._handlers.get(event_type, []):
            started = time.monotonic()
            try:
                handler(payload, self.db)
                prometheus_metrics.record_notification_outcome(event_type, "delivered")
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"event_type": event_type, "handler": getattr(handler, "__name__", "")},
                )
                prometheus_metrics.record_notification_outcome(event_type, "failed")
                try:
                    self.db.rollback()
                except Exception:
                    logger.warning("Rollback after handler failure did not complete")
            finally:
                prometheus_metrics.observe_notification_dispatch(
                    event_type, time.monotonic() - started
                )
