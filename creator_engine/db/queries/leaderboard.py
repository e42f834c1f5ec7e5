"""
Leaderboard aggregates

Every ranking query orders by score DESC, then earlier registration, then user id,
so equal scores always produce the same order.
"""
import json
import logging
from datetime import datetime
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


async def get_xp_totals(since: Optional[datetime]) -> list[dict]:
    """
    XP per user: lifetime column for all-time, summed ledger rows otherwise

    Returns:
        [{'user_id', 'display_name', 'created_at', 'level', 'score'}, ...] in rank order
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if since is None:
                await cur.execute(
                    """
                    SELECT u.id AS user_id, u.display_name, u.created_at, s.level, s.total_xp AS score
                    FROM user_stats s
                    JOIN users u ON u.id = s.user_id
                    WHERE s.total_xp > 0
                    ORDER BY score DESC, u.created_at ASC, u.id ASC
                    """
                )
            else:
                await cur.execute(
                    """
                    SELECT u.id AS user_id, u.display_name, u.created_at,
                           COALESCE(s.level, 1) AS level, SUM(t.total_xp) AS score
                    FROM xp_transactions t
                    JOIN users u ON u.id = t.user_id
                    LEFT JOIN user_stats s ON s.user_id = t.user_id
                    WHERE t.created_at >= %s
                    GROUP BY u.id, u.display_name, u.created_at, s.level
                    ORDER BY score DESC, u.created_at ASC, u.id ASC
                    """,
                    (since,)
                )
            return [dict(row) for row in await cur.fetchall()]


async def get_badge_counts() -> list[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id AS user_id, u.display_name, u.created_at,
                       COALESCE(s.level, 1) AS level, COUNT(*) AS score
                FROM user_badges b
                JOIN users u ON u.id = b.user_id
                LEFT JOIN user_stats s ON s.user_id = b.user_id
                GROUP BY u.id, u.display_name, u.created_at, s.level
                ORDER BY score DESC, u.created_at ASC, u.id ASC
                """
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_achievement_points() -> list[dict]:
    """Sum of achievement points; level-up and challenge records carry no points"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id AS user_id, u.display_name, u.created_at,
                       COALESCE(s.level, 1) AS level, SUM(a.points) AS score,
                       COUNT(*) AS achievement_count
                FROM user_achievements a
                JOIN users u ON u.id = a.user_id
                LEFT JOIN user_stats s ON s.user_id = a.user_id
                WHERE a.type = 'achievement'
                GROUP BY u.id, u.display_name, u.created_at, s.level
                ORDER BY score DESC, u.created_at ASC, u.id ASC
                """
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_content_counts(since: Optional[datetime]) -> list[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id AS user_id, u.display_name, u.created_at,
                       COALESCE(s.level, 1) AS level, COUNT(*) AS score
                FROM content_items c
                JOIN users u ON u.id = c.user_id
                LEFT JOIN user_stats s ON s.user_id = c.user_id
                WHERE c.status = 'published' AND (%s::timestamptz IS NULL OR c.published_at >= %s)
                GROUP BY u.id, u.display_name, u.created_at, s.level
                ORDER BY score DESC, u.created_at ASC, u.id ASC
                """,
                (since, since)
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_activity_counts(kind: str, since: Optional[datetime]) -> list[dict]:
    """Per-user event counts for one activity kind; blended and sorted by the caller"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT u.id AS user_id, u.display_name, u.created_at,
                       COALESCE(s.level, 1) AS level, COUNT(*) AS score
                FROM activity_events e
                JOIN users u ON u.id = e.user_id
                LEFT JOIN user_stats s ON s.user_id = e.user_id
                WHERE e.kind = %s AND (%s::timestamptz IS NULL OR e.created_at >= %s)
                GROUP BY u.id, u.display_name, u.created_at, s.level
                """,
                (kind, since, since)
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_leaderboard_snapshot(type: str, timeframe: str) -> dict[str, int]:
    """Previous period's ranks keyed by user id; empty when no snapshot exists"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT ranks FROM leaderboard_snapshots
                WHERE type = %s AND timeframe = %s
                ORDER BY taken_at DESC
                LIMIT 1
                """,
                (type, timeframe)
            )
            row = await cur.fetchone()
            if not row:
                return {}
            ranks = row["ranks"]
            return json.loads(ranks) if isinstance(ranks, str) else dict(ranks)


async def save_leaderboard_snapshot(type: str, timeframe: str, ranks: dict[str, int], taken_at: datetime) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO leaderboard_snapshots (type, timeframe, ranks, taken_at)
                VALUES (%s, %s, %s, %s)
                """,
                (type, timeframe, json.dumps(ranks), taken_at)
            )
            await conn.commit()
