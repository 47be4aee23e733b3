# backend/tutorslots/services/slot_generator.py
"""
Slot Generator for the scheduling backend.

Turns a tutor's weekly availability rules into concrete, bookable time slots
for a calendar date. Slots are derived on demand and never stored.

Algorithm for one date:
1. Weekday of the date (Sunday=0)
2. Active rules for the tutor on that weekday
3. For each rule, walk from start_time in granularity steps, keeping each
   start whose slot end does not pass end_time
4. Localize in the tutor's timezone, convert to UTC, drop starts <= now
   and starts that do not exist locally (DST gap)
5. Flag slots overlapping a pending/confirmed booking as unavailable
6. Stable sort by start time (ties keep rule order)
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.timezone_utils import (
    ensure_utc,
    get_timezone,
    local_to_utc,
    sunday_based_weekday,
    utc_to_local,
)
from ..models.availability import AvailabilityRule
from ..models.booking import Booking
from ..repositories.factory import RepositoryFactory
from .base import BaseService, Clock

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 31


@dataclass(frozen=True)
class Slot:
    """A derived bookable window. ``start_at``/``end_at`` are aware UTC."""

    tutor_id: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    available: bool = True
    rule_id: Optional[str] = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start_at < end and start < self.end_at

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["start_at"] = self.start_at.isoformat()
        data["end_at"] = self.end_at.isoformat()
        return data


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def walk_rule(start_time: time, end_time: time, granularity_minutes: int) -> Iterator[time]:
    """Yield slot start times inside ``[start_time, end_time)`` whose slot end fits."""
    current = _minutes(start_time)
    end = _minutes(end_time)
    while current + granularity_minutes <= end:
        yield time(current // 60, current % 60)
        current += granularity_minutes


class SlotGenerator(BaseService):
    """Derives bookable slots from availability rules and existing bookings."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        availability_repository=None,
        booking_repository=None,
        profile_repository=None,
    ):
        super().__init__(db, clock)
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(
            db
        )
        self.profile_repository = profile_repository or RepositoryFactory.create_profile_repository(
            db
        )

    @staticmethod
    def _resolve_granularity(granularity_minutes: Optional[int]) -> int:
        granularity = granularity_minutes or settings.slot_granularity_minutes
        if granularity <= 0 or granularity > 24 * 60:
            raise ValidationException(
                "granularity_minutes must be a positive number of minutes",
                code="INVALID_GRANULARITY",
                details={"granularity_minutes": granularity_minutes},
            )
        return granularity

    def tutor_timezone(self, tutor_id: str):
        profile = self.profile_repository.get_tutor_profile(tutor_id)
        return get_timezone(profile.timezone if profile else None)

    def _candidates(
        self,
        tutor_id: str,
        on_date: date,
        rules: Sequence[AvailabilityRule],
        granularity: int,
        tz,
        now: datetime,
    ) -> List[Slot]:
        slots: List[Slot] = []
        step = timedelta(minutes=granularity)
        for rule in rules:
            for start_local in walk_rule(rule.start_time, rule.end_time, granularity):
                start_at = local_to_utc(on_date, start_local, tz)
                # None: wall time skipped by a DST jump
                if start_at is None or start_at <= now:
                    continue
                slots.append(
                    Slot(
                        tutor_id=tutor_id,
                        start_at=start_at,
                        end_at=start_at + step,
                        duration_minutes=granularity,
                        rule_id=rule.id,
                    )
                )
        return slots

    @staticmethod
    def _booked_windows(bookings: Sequence[Booking]) -> List[Tuple[datetime, datetime]]:
        return [(ensure_utc(b.scheduled_at), ensure_utc(b.ends_at)) for b in bookings]

    @BaseService.measure_operation("generate_slots")
    def generate(
        self,
        tutor_id: str,
        on_date: date,
        granularity_minutes: Optional[int] = None,
        include_unavailable: bool = False,
    ) -> List[Slot]:
        """
        Derive slots for one calendar date in the tutor's timezone.

        Args:
            tutor_id: Tutor whose rules to expand
            on_date: Calendar date in the tutor's timezone
            granularity_minutes: Slot length; defaults to the deployment setting
            include_unavailable: Return booked slots flagged ``available=False``
                instead of filtering them out

        Returns:
            Slots ordered by start time; empty when no active rule matches
        """
        granularity = self._resolve_granularity(granularity_minutes)
        rules = self.availability_repository.get_active_rules_for_day(
            tutor_id, sunday_based_weekday(on_date)
        )
        if not rules:
            return []

        tz = self.tutor_timezone(tutor_id)
        candidates = self._candidates(tutor_id, on_date, rules, granularity, tz, self.now())
        if not candidates:
            return []

        window_start = min(slot.start_at for slot in candidates)
        window_end = max(slot.end_at for slot in candidates)
        booked = self._booked_windows(
            self.booking_repository.get_overlapping_bookings(tutor_id, window_start, window_end)
        )

        result: List[Slot] = []
        for slot in candidates:
            taken = any(slot.overlaps(start, end) for start, end in booked)
            if taken and not include_unavailable:
                continue
            result.append(
                Slot(
                    tutor_id=slot.tutor_id,
                    start_at=slot.start_at,
                    end_at=slot.end_at,
                    duration_minutes=slot.duration_minutes,
                    available=not taken,
                    rule_id=slot.rule_id,
                )
            )

        # list.sort is stable, so equal start times keep rule order
        result.sort(key=lambda s: s.start_at)
        return result

    def generate_range(
        self,
        tutor_id: str,
        start_date: date,
        days: int = 7,
        granularity_minutes: Optional[int] = None,
        include_unavailable: bool = False,
    ) -> Dict[date, List[Slot]]:
        """Slots for ``days`` consecutive dates starting at ``start_date``."""
        if days < 1 or days > MAX_RANGE_DAYS:
            raise ValidationException(
                f"days must be between 1 and {MAX_RANGE_DAYS}",
                code="INVALID_RANGE_LENGTH",
                details={"days": days},
            )
        return {
            start_date + timedelta(days=offset): self.generate(
                tutor_id,
                start_date + timedelta(days=offset),
                granularity_minutes=granularity_minutes,
                include_unavailable=include_unavailable,
            )
            for offset in range(days)
        }

    def find_covering_rule(
        self,
        tutor_id: str,
        start_at: datetime,
        duration_minutes: int,
        granularity_minutes: Optional[int] = None,
        tz=None,
    ) -> Optional[AvailabilityRule]:
        """
        Return the active rule whose slot grid contains the whole window.

        The window must begin on a slot boundary of the rule and end no later
        than the rule's end, on the same local calendar day.
        """
        granularity = self._resolve_granularity(granularity_minutes)
        tz = tz or self.tutor_timezone(tutor_id)
        local_start = utc_to_local(start_at, tz)
        local_end = local_start + timedelta(minutes=duration_minutes)
        if local_end.date() != local_start.date():
            return None

        start_minutes = local_start.hour * 60 + local_start.minute
        if local_start.second or local_start.microsecond:
            return None
        end_minutes = start_minutes + duration_minutes

        rules = self.availability_repository.get_active_rules_for_day(
            tutor_id, sunday_based_weekday(local_start.date())
        )
        for rule in rules:
            rule_start = _minutes(rule.start_time)
            if (
                rule_start <= start_minutes
                and end_minutes <= _minutes(rule.end_time)
                and (start_minutes - rule_start) % granularity == 0
            ):
                return rule
        return None

    def slot_fits_availability(
        self, tutor_id: str, start_at: datetime, duration_minutes: int, tz=None
    ) -> bool:
        """Whether a booking window lies on the grid of one of the tutor's active rules."""
        return self.find_covering_rule(tutor_id, start_at, duration_minutes, tz=tz) is not None
