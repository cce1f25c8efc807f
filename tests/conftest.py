"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from companion.core.models import LearningPreferences, LearningSession, SessionOutcome  # noqa: E402

FIXED_NOW = datetime(2025, 3, 1, 9, 0, 0)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (several components together)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class MutableClock:
    """Deterministic clock for scheduler tests."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None, store_shards=8)


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW, advanced explicitly by tests."""
    return MutableClock()


@pytest.fixture
def rng():
    """Seeded random source for reproducible sequencing."""
    return random.Random(1234)


def make_session(topic: str = "python", *scores: float, session_id: str = "session-001") -> LearningSession:
    """Build a session with one outcome per score."""
    outcomes = tuple(SessionOutcome(f"objective-{i}", s) for i, s in enumerate(scores))
    return LearningSession(id=session_id, topic=topic, outcomes=outcomes)


@pytest.fixture
def session_factory():
    """Factory building sessions: session_factory("python", 0.9, 0.8)."""
    return make_session


@pytest.fixture
def sample_session():
    """A session on 'python' averaging 0.9."""
    return make_session("python", 0.9, 0.85, 0.95)


@pytest.fixture
def preferences():
    """Preferences of a learner who likes exercises at medium difficulty."""
    return LearningPreferences(
        learner_id="alice",
        preferred_content_types=frozenset({"exercise"}),
        preferred_difficulty=0.5,
    )
