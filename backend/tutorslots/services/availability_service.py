# backend/tutorslots/services/availability_service.py
"""
Availability Service for the scheduling backend.

Owns a tutor's recurring weekly availability rules. Rules are plain data:
changing them never touches existing bookings, and there is no payment or
notification coupling here.
"""

from datetime import time
import logging
from typing import List, Optional, Union

from sqlalchemy.orm import Session

from ..core.exceptions import (
    DuplicateAvailabilityException,
    InvalidRangeException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import format_hhmm, parse_hhmm
from ..models.availability import AvailabilityRule
from ..repositories.factory import RepositoryFactory
from .base import BaseService, Clock

logger = logging.getLogger(__name__)

TimeInput = Union[time, str]


def coerce_time_of_day(value: TimeInput, field: str) -> time:
    """Accept a ``time`` or ``HH:MM`` string and truncate to minute precision."""
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise ValidationException(
                f"{field} must have minute precision", code="INVALID_TIME_FORMAT"
            )
        return value.replace(tzinfo=None)
    try:
        return parse_hhmm(value)
    except ValueError as exc:
        raise ValidationException(str(exc), code="INVALID_TIME_FORMAT") from exc


class AvailabilityService(BaseService):
    """
    Service layer for weekly availability rules.

    Invariants:
    - start_time < end_time, both inside one calendar day
    - at most one ACTIVE rule per exact (tutor, day, start, end)
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None, repository=None):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_availability_repository(db)

    # Validation helpers

    @staticmethod
    def _validate_window(day_of_week: int, start_time: time, end_time: time) -> None:
        if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
            raise InvalidRangeException(
                "day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                details={"day_of_week": day_of_week},
            )
        if start_time >= end_time:
            raise InvalidRangeException(
                "End time must be after start time",
                details={
                    "start_time": format_hhmm(start_time),
                    "end_time": format_hhmm(end_time),
                },
            )

    def _ensure_not_duplicate(
        self,
        tutor_id: str,
        day_of_week: int,
        start_time: time,
        end_time: time,
        exclude_rule_id: Optional[str] = None,
    ) -> None:
        existing = self.repository.find_active_duplicate(
            tutor_id, day_of_week, start_time, end_time, exclude_rule_id=exclude_rule_id
        )
        if existing:
            raise DuplicateAvailabilityException(
                day_of_week, format_hhmm(start_time), format_hhmm(end_time)
            )

    def _get_or_404(self, rule_id: str) -> AvailabilityRule:
        rule = self.repository.get_by_id(rule_id)
        if not rule:
            raise NotFoundException(
                f"Availability rule {rule_id} not found", details={"rule_id": rule_id}
            )
        return rule

    # Operations

    @BaseService.measure_operation("add_rule")
    def add_rule(
        self,
        tutor_id: str,
        day_of_week: int,
        start_time: TimeInput,
        end_time: TimeInput,
    ) -> AvailabilityRule:
        """
        Add a recurring weekly window for a tutor.

        Raises:
            InvalidRangeException: start is not before end, or day outside 0-6
            DuplicateAvailabilityException: an identical active rule exists
        """
        start = coerce_time_of_day(start_time, "start_time")
        end = coerce_time_of_day(end_time, "end_time")
        self._validate_window(day_of_week, start, end)

        self.log_operation(
            "add_rule",
            tutor_id=tutor_id,
            day_of_week=day_of_week,
            start_time=format_hhmm(start),
            end_time=format_hhmm(end),
        )

        try:
            with self.transaction():
                self._ensure_not_duplicate(tutor_id, day_of_week, start, end)
                rule = self.repository.create(
                    tutor_id=tutor_id,
                    day_of_week=day_of_week,
                    start_time=start,
                    end_time=end,
                    is_active=True,
                )
        except RepositoryException as exc:
            # The partial unique index caught a concurrent identical insert.
            if "integrity constraint" in str(exc).lower():
                raise DuplicateAvailabilityException(
                    day_of_week, format_hhmm(start), format_hhmm(end)
                ) from exc
            raise
        return rule

    @BaseService.measure_operation("update_rule")
    def update_rule(
        self,
        rule_id: str,
        *,
        day_of_week: Optional[int] = None,
        start_time: Optional[TimeInput] = None,
        end_time: Optional[TimeInput] = None,
    ) -> AvailabilityRule:
        """Edit a rule's window; omitted fields keep their current value."""
        with self.transaction():
            rule = self._get_or_404(rule_id)
            new_day = rule.day_of_week if day_of_week is None else day_of_week
            new_start = (
                rule.start_time
                if start_time is None
                else coerce_time_of_day(start_time, "start_time")
            )
            new_end = (
                rule.end_time if end_time is None else coerce_time_of_day(end_time, "end_time")
            )
            self._validate_window(new_day, new_start, new_end)
            if rule.is_active:
                self._ensure_not_duplicate(
                    rule.tutor_id, new_day, new_start, new_end, exclude_rule_id=rule.id
                )
            rule = self.repository.update(
                rule.id, day_of_week=new_day, start_time=new_start, end_time=new_end
            )
        self.log_operation("update_rule", rule_id=rule_id)
        return rule

    @BaseService.measure_operation("set_active")
    def set_active(self, rule_id: str, active: bool) -> AvailabilityRule:
        """
        Toggle a rule on or off. Setting the current value again is a no-op.

        Raises:
            NotFoundException: rule does not exist
            DuplicateAvailabilityException: reactivating would clash with an
                identical active rule
        """
        with self.transaction():
            rule = self._get_or_404(rule_id)
            if bool(rule.is_active) == bool(active):
                return rule
            if active:
                self._ensure_not_duplicate(
                    rule.tutor_id,
                    rule.day_of_week,
                    rule.start_time,
                    rule.end_time,
                    exclude_rule_id=rule.id,
                )
            rule = self.repository.update(rule.id, is_active=bool(active))
        self.log_operation("set_active", rule_id=rule_id, active=bool(active))
        return rule

    @BaseService.measure_operation("remove_rule")
    def remove(self, rule_id: str) -> None:
        """Hard-delete a rule. Bookings already made inside it are untouched."""
        with self.transaction():
            if not self.repository.delete(rule_id):
                raise NotFoundException(
                    f"Availability rule {rule_id} not found", details={"rule_id": rule_id}
                )
        self.log_operation("remove_rule", rule_id=rule_id)

    def get_rule(self, rule_id: str) -> AvailabilityRule:
        return self._get_or_404(rule_id)

    @BaseService.measure_operation("list_active")
    def list_active(self, tutor_id: str) -> List[AvailabilityRule]:
        """Active rules ordered by (day_of_week, start_time)."""
        return self.repository.get_rules_for_tutor(tutor_id, active_only=True)

    def list_rules(self, tutor_id: str, include_inactive: bool = True) -> List[AvailabilityRule]:
        """All of a tutor's rules for the management screen, same ordering."""
        return self.repository.get_rules_for_tutor(tutor_id, active_only=not include_inactive)
