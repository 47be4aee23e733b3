# backend/tests/unit/test_booking_service_unit.py
"""
Unit tests for BookingService error classification, using mocked sessions.
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from tutorslots.core.exceptions import RepositoryException
from tutorslots.middleware.prometheus_middleware import normalize_path
from tutorslots.services.booking_service import BookingService


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__("error")
        self.pgcode = pgcode


class TestErrorClassification:
    def test_deadlock_detected_by_pgcode(self):
        exc = OperationalError("INSERT ...", {}, _PgError("40P01"))
        assert BookingService._is_deadlock_error(exc) is True

    def test_other_operational_errors_are_not_deadlocks(self):
        exc = OperationalError("INSERT ...", {}, _PgError("57014"))
        assert BookingService._is_deadlock_error(exc) is False

    @pytest.mark.parametrize(
        "message",
        [
            'duplicate key value violates unique constraint "uq_bookings_tutor_start_active"',
            'conflicting key value violates exclusion constraint "bookings_no_overlap_per_tutor"',
            "UNIQUE constraint failed: bookings.tutor_id, bookings.scheduled_at",
        ],
    )
    def test_slot_constraints_are_recognized(self, message):
        assert BookingService._is_slot_constraint(RepositoryException(message)) is True

    def test_unrelated_integrity_errors_are_not_slot_conflicts(self):
        exc = RepositoryException('insert violates foreign key constraint "bookings_student_id_fkey"')
        assert BookingService._is_slot_constraint(exc) is False

    def test_service_builds_on_mocked_session(self):
        service = BookingService(Mock(spec=Session))
        assert service.repository.model.__tablename__ == "bookings"


class TestNormalizePath:
    def test_ids_collapse_to_placeholder(self):
        path = "/api/v1/bookings/01HZZZZZZZZZZZZZZZZZZZZZZZ/payment"
        assert normalize_path(path) == "/api/v1/bookings/:id/payment"
        assert normalize_path("/api/v1/items/42") == "/api/v1/items/:id"
        assert normalize_path("/health") == "/health"
