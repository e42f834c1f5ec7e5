"""Source-table aggregates behind badge metrics, achievement conditions and challenge progress"""
import logging
from datetime import datetime
from typing import Optional
from creator_engine.config import APP_TIMEZONE
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


async def count_published_content(user_id: str, since: Optional[datetime] = None) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM content_items
                WHERE user_id = %s AND status = 'published'
                  AND (%s::timestamptz IS NULL OR published_at >= %s)
                """,
                (user_id, since, since)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


async def count_distinct_content_days(user_id: str, since: datetime) -> int:
    """Distinct calendar days with published content since `since`"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(DISTINCT DATE(published_at AT TIME ZONE %s)) AS days
                FROM content_items
                WHERE user_id = %s AND status = 'published' AND published_at >= %s
                """,
                (APP_TIMEZONE, user_id, since)
            )
            row = await cur.fetchone()
            return row["days"] if row else 0


async def count_templates(user_id: str) -> int:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT COUNT(*) AS count FROM templates WHERE user_id = %s",
                (user_id,)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


async def count_activity_events(user_id: str, kind: str, since: Optional[datetime] = None) -> int:
    """
    Count community/assistant events

    Args:
        kind: 'ai_interaction', 'help_given', 'share', 'thanks_received' or 'platform_setup'
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS count
                FROM activity_events
                WHERE user_id = %s AND kind = %s
                  AND (%s::timestamptz IS NULL OR created_at >= %s)
                """,
                (user_id, kind, since, since)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


async def count_completed_tasks(
    user_id: str,
    since: Optional[datetime] = None,
    before_hour: Optional[int] = None,
    hour_range: Optional[tuple[int, int]] = None
) -> int:
    """
    Count completed tasks

    Args:
        since: Only tasks completed at or after this time
        before_hour: Only tasks completed before this local hour
        hour_range: Only tasks completed with start <= hour < end
    """
    clauses = ["user_id = %s", "completed_at IS NOT NULL"]
    params: list = [user_id]
    if since is not None:
        clauses.append("completed_at >= %s")
        params.append(since)
    if before_hour is not None:
        clauses.append("EXTRACT(HOUR FROM completed_at AT TIME ZONE %s) < %s")
        params.extend((APP_TIMEZONE, before_hour))
    if hour_range is not None:
        clauses.append(
            "EXTRACT(HOUR FROM completed_at AT TIME ZONE %s) >= %s "
            "AND EXTRACT(HOUR FROM completed_at AT TIME ZONE %s) < %s"
        )
        params.extend((APP_TIMEZONE, hour_range[0], APP_TIMEZONE, hour_range[1]))

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT COUNT(*) AS count FROM tasks WHERE {' AND '.join(clauses)}",
                tuple(params)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


async def get_task_completion_rate(user_id: str, since: datetime) -> float:
    """Percentage of tasks due since `since` that were completed"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS total, COUNT(completed_at) AS done
                FROM tasks
                WHERE user_id = %s AND created_at >= %s
                """,
                (user_id, since)
            )
            row = await cur.fetchone()
            if not row or not row["total"]:
                return 0.0
            return round(row["done"] * 100.0 / row["total"], 2)


async def get_registration_rank(user_id: str) -> Optional[int]:
    """1-based position of the user in sign-up order"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COUNT(*) AS rank
                FROM users u, users me
                WHERE me.id = %s AND (u.created_at, u.id) <= (me.created_at, me.id)
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return row["rank"] if row and row["rank"] else None
