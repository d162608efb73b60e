"""
Pytest configuration and fixtures for the application server and form client
"""
import os

# Settings are read once at import time, so the environment goes first
os.environ["ENVIRONMENT"] = "test"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["EMAIL_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["RATE_LIMIT_PER_MINUTE"] = "30"
os.environ["EXPOSE_ERROR_DETAILS"] = "true"

import pytest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from src.db.models import Base
from src.core.rate_limit import rate_limiter
from src.main import app
from src.services.notifications import ConfirmationNotification, get_notifier
from src.services.storage import DatabaseStorageSink, FileStorageSink, get_storage_sink


# ============================================================================
# STORAGE FIXTURES
# ============================================================================

@pytest.fixture(scope="function")
def file_sink(tmp_path: Path) -> FileStorageSink:
    """File sink writing into a per-test directory"""
    return FileStorageSink(tmp_path / "applications")


@pytest.fixture(scope="function")
def database_sink() -> Generator[DatabaseStorageSink, None, None]:
    """
    Database sink on an in-memory SQLite database

    Each test gets a fresh database with all tables created.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    try:
        yield DatabaseStorageSink(TestingSessionLocal)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


# ============================================================================
# NOTIFICATION FIXTURES
# ============================================================================

class RecordingNotifier:
    """Collects notifications instead of delivering them"""

    def __init__(self):
        self.sent: list[ConfirmationNotification] = []

    def send(self, notification: ConfirmationNotification) -> None:
        self.sent.append(notification)


class RecordingDispatcher:
    """Dispatches synchronously into a list"""

    def __init__(self):
        self.dispatched: list[ConfirmationNotification] = []

    def dispatch(self, notification: ConfirmationNotification) -> None:
        self.dispatched.append(notification)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# ============================================================================
# API CLIENT
# ============================================================================

@pytest.fixture(scope="function")
def client(file_sink: FileStorageSink, notifier: RecordingNotifier) -> Generator[TestClient, None, None]:
    """
    Create FastAPI test client with dependency overrides

    Overrides:
    - Storage sink (file sink in tmp_path)
    - Notifier (records instead of sending email)
    """
    app.dependency_overrides[get_storage_sink] = lambda: file_sink
    app.dependency_overrides[get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ============================================================================
# TEST DATA GENERATORS
# ============================================================================

@pytest.fixture
def today() -> date:
    return date(2026, 10, 19)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 19, 9, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def valid_application() -> dict[str, Any]:
    """
    A complete, valid flat application payload

    Dates are relative to the real current date so the server accepts them.
    """
    current = date.today()
    return {
        "firstName": "Achieng",
        "lastName": "Otieno",
        "email": "achieng.otieno@example.com",
        "phone": "+254 712 345 678",
        "dob": date(current.year - 20, 1, 15).isoformat(),
        "gender": "female",
        "idNumber": "32145678",
        "address": "P.O. Box 12",
        "city": "Kisumu",
        "county": "Kisumu",
        "postalCode": "40100",
        "emergencyName": "Grace Otieno",
        "emergencyPhone": "0722 000 111",
        "relationship": "parent",
        "lastSchool": "Nyang'oma School for the Deaf",
        "graduationYear": "2024",
        "qualification": "kcse",
        "certificates": "",
        "programme": "electrical",
        "programmeLevel": "certificate",
        "startDate": (current + timedelta(days=30)).isoformat(),
        "disabilityType": "deaf",
        "supportNeeds": "KSL interpreter",
        "signLanguage": "fluent",
        "currentEmployment": "unemployed",
        "jobTitle": "",
        "workExperience": "0",
        "motivation": "I want to become a certified electrician.",
        "goals": "Open my own workshop.",
        "referral": "school",
    }


# ============================================================================
# RATE LIMITER FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """
    Automatically reset rate limiter before each test

    Ensures tests don't interfere with each other
    """
    rate_limiter.reset_all()
    yield
    rate_limiter.reset_all()


# ============================================================================
# CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
