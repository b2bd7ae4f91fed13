"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quantdrill.config import PracticeSettings
from quantdrill.core.operations import Operation
from quantdrill.delivery.clock import FixedClock
from quantdrill.delivery.records import Attempt, ProblemRecord
from quantdrill.delivery.state_store import StateStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite on disk)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """A clock frozen at 2024-01-01 09:00."""
    return FixedClock(datetime(2024, 1, 1, 9, 0, 0))


@pytest.fixture
def rng():
    """Seeded random source for reproducible selection."""
    return random.Random(42)


@pytest.fixture
def store():
    """In-memory state store."""
    s = StateStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def disk_store(tmp_path):
    """State store backed by a file in a temp directory."""
    s = StateStore(tmp_path / "state.db")
    yield s
    s.close()


@pytest.fixture
def mul_only_settings():
    """Practice settings with only multiplication enabled."""
    settings = PracticeSettings()
    for op in (Operation.ADD, Operation.SUB, Operation.DIV):
        settings.range_for(op).enabled = False
    return settings


@pytest.fixture
def make_record():
    """Factory for ProblemRecord with arbitrary state."""

    def _make(
        operation: str = "mul",
        a: int = 7,
        b: int = 8,
        *,
        ease_factor: float = 2.5,
        interval: int = 0,
        repetitions: int = 0,
        next_review_date: date | None = None,
        total_attempts: int = 0,
        total_correct: int = 0,
        total_time_ms: int = 0,
    ) -> ProblemRecord:
        answers = {"add": a + b, "sub": a - b, "mul": a * b, "div": a // b if b else 0}
        record = ProblemRecord.create(operation, a, b, answers[operation])
        record.ease_factor = ease_factor
        record.interval = interval
        record.repetitions = repetitions
        record.next_review_date = next_review_date
        record.total_attempts = total_attempts
        record.total_correct = total_correct
        record.total_time_ms = total_time_ms
        return record

    return _make


@pytest.fixture
def make_attempt():
    """Factory for session attempts."""

    def _make(
        operation: str = "mul",
        key: str | None = None,
        is_correct: bool = True,
        response_time_ms: int = 2000,
        timestamp: datetime | None = None,
    ) -> Attempt:
        return Attempt(
            problem_key=key or f"{operation}:2x3",
            operation=operation,
            is_correct=is_correct,
            response_time_ms=response_time_ms,
            timestamp=timestamp or datetime(2024, 1, 1, 9, 0, 0),
        )

    return _make
