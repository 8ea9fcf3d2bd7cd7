"""Pytest configuration and fixtures for all tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from exchange_desk.lib.db import init_db, reset_db, reset_engine
from exchange_desk.models.actor import Actor, UserRole
from exchange_desk.services.store import InMemoryStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Initialize test database before any tests run.

    Creates a temporary database for testing that is automatically cleaned up.
    Uses session scope so database is created once per test session.
    """
    # Create temporary database file
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        test_db_path = Path(tmp.name)

    # Set environment variables for test database BEFORE initializing
    os.environ["EXCHANGE_DESK_DB_PATH"] = str(test_db_path)
    os.environ["EXCHANGE_DESK_LOG_FILE"] = str(test_db_path.with_suffix(".log"))

    # Initialize database with all tables
    init_db(test_db_path)

    yield test_db_path

    # Cleanup: Remove temporary database file
    reset_engine()
    for path in (test_db_path, test_db_path.with_suffix(".log")):
        if path.exists():
            path.unlink()


@pytest.fixture(autouse=True)
def reset_database_between_tests(setup_test_database):
    """Reset database state between each test.

    This ensures test isolation by clearing all data between tests
    while keeping the schema intact.
    """
    # Reset engine to ensure fresh connection
    reset_engine()

    # Reset database tables
    reset_db(setup_test_database)

    yield


class TickingClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self, start: datetime = datetime(2024, 3, 13, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(minutes=1)
        return current


@pytest.fixture
def clock():
    """Clock starting Wednesday 2024-03-13 09:00 UTC."""
    return TickingClock()


@pytest.fixture
def memory_store(clock):
    """Empty in-memory store driven by the test clock."""
    return InMemoryStore(clock=clock)


@pytest.fixture
def admin():
    """Privileged actor."""
    return Actor(name="Alice", role=UserRole.ADMIN)


@pytest.fixture
def teller():
    """Non-privileged exchange desk actor."""
    return Actor(name="Bob", role=UserRole.EXCHANGE_USER)
