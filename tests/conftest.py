"""Global test fixtures and utilities for creator-engine tests"""
import inspect
from datetime import datetime, timedelta, timezone

import pytest

from creator_engine.db import queries
from creator_engine.utils import datetime_helpers
from fakes import FakeLLM, FakeStore


# ============================================================================
# Clock Fixtures
# ============================================================================

# A Wednesday at noon: no weekend or time-of-day bonus applies
DEFAULT_NOW = datetime(2024, 1, 10, 12, 0, 0, tzinfo=timezone.utc)


class Clock:
    """Mutable stand-in for datetime_helpers.now_local"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def clock(monkeypatch):
    """Every engine clock read returns clock.now"""
    fake = Clock(DEFAULT_NOW)
    monkeypatch.setattr(datetime_helpers, "now_local", fake)
    return fake


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def store(monkeypatch, clock):
    """In-memory store patched over every creator_engine.db.queries function"""
    fake = FakeStore()
    for name, fn in vars(queries).items():
        if inspect.iscoroutinefunction(fn):
            monkeypatch.setattr(queries, name, getattr(fake, name))
    return fake


@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "creator-1"


@pytest.fixture
def registered_user(store, test_user_id):
    """A verified user registered a month before DEFAULT_NOW"""
    store.add_user(test_user_id, created_at=DEFAULT_NOW - timedelta(days=30), display_name="Test Creator")
    return test_user_id


# ============================================================================
# LLM Fixtures
# ============================================================================

@pytest.fixture
def fake_llm():
    return FakeLLM()

