# backend/tutorslots/repositories/availability_repository.py
"""
Availability Repository for the scheduling backend.

Data access for weekly availability rules. All listings share one ordering,
(day_of_week, start_time, end_time, id), so callers get a deterministic
sequence.
"""

from datetime import time
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityRule]):
    """Repository for weekly availability rules."""

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityRule)

    def _ordered(self, query):
        return query.order_by(
            AvailabilityRule.day_of_week,
            AvailabilityRule.start_time,
            AvailabilityRule.end_time,
            AvailabilityRule.id,
        )

    def get_rules_for_tutor(
        self,
        tutor_id: str,
        *,
        active_only: bool = False,
        day_of_week: Optional[int] = None,
    ) -> List[AvailabilityRule]:
        """
        List a tutor's rules in display order.

        Args:
            tutor_id: Owning tutor
            active_only: Skip rules that have been toggled off
            day_of_week: Restrict to one weekday (Sunday=0)
        """
        try:
            query = self.db.query(AvailabilityRule).filter(AvailabilityRule.tutor_id == tutor_id)
            if active_only:
                query = query.filter(AvailabilityRule.is_active.is_(True))
            if day_of_week is not None:
                query = query.filter(AvailabilityRule.day_of_week == day_of_week)
            return self._ordered(query).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing availability for tutor {tutor_id}: {str(e)}")
            raise RepositoryException(f"Failed to list availability: {str(e)}")

    def get_active_rules_for_day(self, tutor_id: str, day_of_week: int) -> List[AvailabilityRule]:
        return self.get_rules_for_tutor(tutor_id, active_only=True, day_of_week=day_of_week)

    def find_active_duplicate(
        self,
        tutor_id: str,
        day_of_week: int,
        start_time: time,
        end_time: time,
        exclude_rule_id: Optional[str] = None,
    ) -> Optional[AvailabilityRule]:
        """Return an active rule with exactly this window, if any."""
        try:
            query = self.db.query(AvailabilityRule).filter(
                AvailabilityRule.tutor_id == tutor_id,
                AvailabilityRule.day_of_week == day_of_week,
                AvailabilityRule.start_time == start_time,
                AvailabilityRule.end_time == end_time,
                AvailabilityRule.is_active.is_(True),
            )
            if exclude_rule_id:
                query = query.filter(AvailabilityRule.id != exclude_rule_id)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking duplicate availability: {str(e)}")
            raise RepositoryException(f"Failed to check duplicate availability: {str(e)}")
