"""
Date/Time helpers

All calendar logic (local midnight for daily limits, challenge expiry,
time-of-day bonuses, leaderboard windows) goes through `now_local()` so a
single clock governs the whole engine.

CRITICAL RULES:
- Every datetime handed to the database is timezone-aware
- "Local" means the process timezone configured by APP_TIMEZONE
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from creator_engine.config import APP_TIMEZONE

logger = logging.getLogger(__name__)


def local_timezone() -> ZoneInfo:
    """Timezone used for every calendar boundary"""
    return ZoneInfo(APP_TIMEZONE)


def now_local() -> datetime:
    """
    Get current datetime in the process timezone (timezone-aware)

    Returns:
        Current datetime with tzinfo set
    """
    return datetime.now(local_timezone())


def start_of_day(moment: Optional[datetime] = None) -> datetime:
    """Local midnight at the start of the day containing `moment`"""
    moment = moment or now_local()
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def next_midnight(moment: Optional[datetime] = None) -> datetime:
    """Local midnight at the end of the day containing `moment`"""
    return start_of_day(moment) + timedelta(days=1)


def add_months(moment: datetime, months: int) -> datetime:
    """
    Add calendar months, clamping the day to the target month's length

    Example:
        add_months(datetime(2024, 1, 31), 1) -> datetime(2024, 2, 29)
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(timeframe: str, moment: Optional[datetime] = None) -> Optional[datetime]:
    """
    Start of a leaderboard/aggregate window

    Args:
        timeframe: 'daily', 'weekly', 'monthly' or 'all-time'
        moment: Reference time (defaults to now)

    Returns:
        Window start, or None for 'all-time'
    """
    moment = moment or now_local()
    if timeframe == "daily":
        return start_of_day(moment)
    if timeframe == "weekly":
        return moment - timedelta(days=7)
    if timeframe == "monthly":
        return add_months(moment, -1)
    if timeframe == "all-time":
        return None
    raise ValueError(f"Unknown timeframe: {timeframe}")


def is_weekend(moment: datetime) -> bool:
    """Saturday or Sunday"""
    return moment.weekday() >= 5
