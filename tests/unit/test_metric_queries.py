"""Unit tests for the SQL the query modules send (creator_engine/db/queries)"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest

from creator_engine.db.queries import gamification as gamification_queries
from creator_engine.db.queries import metrics as metric_queries

SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)


class RecordingCursor:
    def __init__(self, executed: list):
        self.executed = executed

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, params):
        self.executed.append((sql, params))

    async def fetchone(self):
        return {"count": 3, "days": 2, "total_xp": 150}


class RecordingConnection:
    def __init__(self, executed: list):
        self.executed = executed

    def cursor(self):
        return RecordingCursor(self.executed)

    async def commit(self):
        pass


class RecordingDatabase:
    def __init__(self):
        self.executed = []

    @asynccontextmanager
    async def connection(self):
        yield RecordingConnection(self.executed)


@pytest.fixture
def recording_db(monkeypatch):
    database = RecordingDatabase()
    monkeypatch.setattr(metric_queries, "db", database)
    monkeypatch.setattr(metric_queries, "APP_TIMEZONE", "America/New_York")
    return database


@pytest.mark.asyncio
async def test_task_hours_use_app_timezone(recording_db):
    count = await metric_queries.count_completed_tasks("creator-1", since=SINCE, hour_range=(0, 5))

    sql, params = recording_db.executed[0]
    assert count == 3
    assert sql.count("completed_at AT TIME ZONE %s") == 2
    assert params == ("creator-1", SINCE, "America/New_York", 0, "America/New_York", 5)


@pytest.mark.asyncio
async def test_before_hour_uses_app_timezone(recording_db):
    await metric_queries.count_completed_tasks("creator-1", before_hour=10)

    sql, params = recording_db.executed[0]
    assert "EXTRACT(HOUR FROM completed_at AT TIME ZONE %s) < %s" in sql
    assert params == ("creator-1", "America/New_York", 10)


@pytest.mark.asyncio
async def test_content_days_use_app_timezone(recording_db):
    days = await metric_queries.count_distinct_content_days("creator-1", SINCE)

    sql, params = recording_db.executed[0]
    assert days == 2
    assert "DATE(published_at AT TIME ZONE %s)" in sql
    assert params == ("America/New_York", "creator-1", SINCE)


@pytest.mark.asyncio
async def test_xp_increment_touches_only_the_cumulative_total(monkeypatch):
    database = RecordingDatabase()
    monkeypatch.setattr(gamification_queries, "db", database)

    total = await gamification_queries.increment_user_xp("creator-1", 50)

    sql, params = database.executed[0]
    assert total == 150
    assert "monthly_xp" not in sql
    assert params == (50, "creator-1")
