# backend/tests/conftest.py
"""
Pytest configuration for the scheduling backend.

Every test runs against a fresh in-memory SQLite database, a pinned clock
and a fake payment provider. Redis locking and email are switched off.
"""

import os

# CRITICAL: Set testing mode BEFORE any tutorslots imports!
os.environ["IS_TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["BOOKING_LOCK_ENABLED"] = "false"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["TEST_DATABASE_URL"] = "sqlite://"

# Mock Resend API globally to prevent real emails in ANY test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

from datetime import time

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from tests.factories.booking_builders import (
    MONDAY,
    FakeClock,
    FakePaymentProvider,
    add_rule,
    make_tutor,
    make_user,
)
from tutorslots.api.dependencies import get_clock, get_payment_provider
from tutorslots.api.dependencies import get_db as get_request_db
from tutorslots.core.config import settings
from tutorslots.database import Base, engine, get_db
import tutorslots.models  # noqa: F401
from tutorslots.models.user import User


@pytest.fixture
def db() -> Session:
    """Fresh schema per test on the shared in-memory engine."""
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def payment_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture(autouse=True)
def _default_policy(monkeypatch: pytest.MonkeyPatch):
    """Keep deployment policy deterministic regardless of local .env files."""
    monkeypatch.setattr(settings, "slot_granularity_minutes", 30)
    monkeypatch.setattr(settings, "max_booking_minutes", 240)
    monkeypatch.setattr(settings, "enforce_availability_on_create", True)
    monkeypatch.setattr(settings, "booking_confirmation_policy", "payment_gated")
    monkeypatch.setattr(settings, "booking_lock_enabled", False)
    monkeypatch.setattr(settings, "email_enabled", False)
    monkeypatch.setattr(settings, "unpaid_hold_minutes", 60)
    monkeypatch.setattr(settings, "default_timezone", "UTC")


@pytest.fixture
def tutor(db: Session) -> User:
    """Tutor at $25/hr, available Mondays 09:00-12:00 UTC."""
    user = make_tutor(db, full_name="Tina Tutor")
    add_rule(db, user.id, MONDAY, time(9, 0), time(12, 0))
    return user


@pytest.fixture
def student(db: Session) -> User:
    return make_user(db, full_name="Sam Student")


@pytest.fixture
def other_student(db: Session) -> User:
    return make_user(db, full_name="Olive Other")


@pytest.fixture
def client(db: Session, clock: FakeClock, payment_provider: FakePaymentProvider) -> TestClient:
    """TestClient with the test session, pinned clock and fake provider."""
    from tutorslots.main import app

    def override_get_db():
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_request_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_payment_provider] = lambda: payment_provider
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
