"""
Daily activity streak

One streak per user: consecutive local calendar days with at least one
recorded activity. Counting the same day twice is a no-op; a gap of more
than one day restarts the streak at 1. Best streak is kept alongside.
"""

from datetime import date, datetime, timedelta
from typing import Any, Optional
import logging

from creator_engine.db import queries
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)


async def record_activity_day(user_id: str, activity_date: Optional[date] = None) -> dict[str, Any]:
    """
    Count a day of activity toward the user's streak

    Args:
        user_id: User ID
        activity_date: Day of activity (defaults to today, local)

    Returns:
        {
            'current_streak': int,
            'best_streak': int,
            'old_streak': int,
            'extended': bool,  # False when today was already counted
            'message': str
        }
    """
    if activity_date is None:
        activity_date = datetime_helpers.now_local().date()

    stats = await queries.get_user_stats(user_id)
    old_current = stats["streak_days"]
    best = stats["best_streak"]
    last_date = stats["last_active_date"]
    if isinstance(last_date, datetime):
        last_date = last_date.date()

    if last_date is None:
        current = 1
        message = "Streak started! Day 1 🎉"
    elif last_date >= activity_date:
        # Already counted
        return {
            "current_streak": old_current,
            "best_streak": best,
            "old_streak": old_current,
            "extended": False,
            "message": f"Streak continues! Day {old_current} 🔥",
        }
    elif last_date == activity_date - timedelta(days=1):
        current = old_current + 1
        message = f"Streak continues! Day {current} 🔥"
    else:
        gap_days = (activity_date - last_date).days
        current = 1
        message = f"Streak reset. Previous: {old_current} days. Starting fresh! Day 1 💪"
        logger.info(f"User {user_id} streak broken. Was {old_current}, gap was {gap_days} days")

    best = max(best, current)
    await queries.update_user_streak(user_id, current, best, activity_date)

    logger.info(f"Updated streak for user {user_id}: {old_current} → {current} days")

    return {
        "current_streak": current,
        "best_streak": best,
        "old_streak": old_current,
        "extended": True,
        "message": message,
    }


async def get_streak(user_id: str) -> dict[str, Any]:
    """Current and best streak; a streak whose last day is before yesterday reads as 0"""
    stats = await queries.get_user_stats(user_id)
    last_date = stats["last_active_date"]
    if isinstance(last_date, datetime):
        last_date = last_date.date()

    today = datetime_helpers.now_local().date()
    current = stats["streak_days"]
    if last_date is None or last_date < today - timedelta(days=1):
        current = 0

    return {
        "current_streak": current,
        "best_streak": stats["best_streak"],
        "last_active_date": last_date,
    }
