"""
Live metric values

Badge triggers may arrive without a value, and cumulative achievement
conditions need windowed aggregates. Both are resolved here from the
persistence collaborator.
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional
import logging

from creator_engine.db import queries
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)


async def _stat(user_id: str, column: str) -> float:
    stats = await queries.get_user_stats(user_id)
    return stats[column]


def _activity(kind: str) -> Callable[[str], Awaitable[float]]:
    async def count(user_id: str) -> float:
        return await queries.count_activity_events(user_id, kind)
    return count


async def _registration_rank(user_id: str) -> float:
    rank = await queries.get_registration_rank(user_id)
    return rank or 0


async def _task_completion_rate(user_id: str) -> float:
    since = datetime_helpers.now_local() - timedelta(days=30)
    return await queries.get_task_completion_rate(user_id, since)


# Metric name -> current value
METRIC_SOURCES: dict[str, Callable[[str], Awaitable[float]]] = {
    "content_published": lambda user_id: queries.count_published_content(user_id),
    "templates_created": lambda user_id: queries.count_templates(user_id),
    "ai_interactions": _activity("ai_interaction"),
    "creators_helped": _activity("help_given"),
    "thanks_received": _activity("thanks_received"),
    "youtube_setup": _activity("youtube_connected"),
    "tiktok_trending_templates": _activity("tiktok_trending_template"),
    "perfect_days": lambda user_id: _stat(user_id, "streak_days"),
    "user_level": lambda user_id: _stat(user_id, "level"),
    "user_number": _registration_rank,
    "task_completion_rate": _task_completion_rate,
}


async def get_metric_value(user_id: str, metric: str) -> Optional[float]:
    """Current value of a named metric, or None if it has no live source"""
    source = METRIC_SOURCES.get(metric)
    if source is None:
        logger.debug(f"No live source for metric '{metric}'")
        return None
    return float(await source(user_id))


def trailing_window_start(timeframe: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Start of a trailing aggregate window

    daily: local midnight, weekly: 7 days, monthly: 30 days, all-time/None: unbounded
    """
    now = now or datetime_helpers.now_local()
    if timeframe == "daily":
        return datetime_helpers.start_of_day(now)
    if timeframe == "weekly":
        return now - timedelta(days=7)
    if timeframe == "monthly":
        return now - timedelta(days=30)
    return None


async def _content_days(user_id: str, since: Optional[datetime]) -> float:
    if since is None:
        since = datetime.min.replace(tzinfo=datetime_helpers.local_timezone())
    return await queries.count_distinct_content_days(user_id, since)


# Metric name -> value since a window start
WINDOWED_SOURCES: dict[str, Callable[[str, Optional[datetime]], Awaitable[float]]] = {
    "daily_content": _content_days,
    "content_published": lambda user_id, since: queries.count_published_content(user_id, since=since),
    "tasks_completed": lambda user_id, since: queries.count_completed_tasks(user_id, since=since),
    "night_tasks": lambda user_id, since: queries.count_completed_tasks(user_id, since=since, hour_range=(0, 5)),
    "ai_interactions": lambda user_id, since: queries.count_activity_events(user_id, "ai_interaction", since=since),
}


async def get_windowed_value(user_id: str, metric: str, timeframe: Optional[str]) -> float:
    """Aggregate of `metric` over the trailing `timeframe`; unknown metrics read as 0"""
    source = WINDOWED_SOURCES.get(metric)
    if source is None:
        logger.warning(f"No windowed source for metric '{metric}', treating as 0")
        return 0.0
    return float(await source(user_id, trailing_window_start(timeframe)))
