"""Gamification database queries: stats, XP ledger, badges, achievements, unlock records"""
import json
import logging
from datetime import datetime
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


# ==========================================
# User Stats
# ==========================================

async def get_user_stats(user_id: str) -> dict:
    """
    Get per-user aggregate stats (creates if doesn't exist)

    Returns:
        {
            'user_id': str,
            'total_xp': int,
            'level': int,
            'streak_days': int,
            'best_streak': int,
            'last_active_date': date | None
        }
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, total_xp, level, streak_days, best_streak, last_active_date
                FROM user_stats
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()

            if not row:
                await cur.execute(
                    """
                    INSERT INTO user_stats (user_id)
                    VALUES (%s)
                    ON CONFLICT (user_id) DO UPDATE SET user_id = EXCLUDED.user_id
                    RETURNING user_id, total_xp, level, streak_days, best_streak, last_active_date
                    """,
                    (user_id,)
                )
                row = await cur.fetchone()
                await conn.commit()
                logger.info(f"Created stats record for user {user_id}")

            return dict(row)


async def increment_user_xp(user_id: str, amount: int) -> int:
    """
    Add XP to the cumulative total

    Returns:
        New cumulative XP
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_stats
                SET total_xp = total_xp + %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s
                RETURNING total_xp
                """,
                (amount, user_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row["total_xp"]


async def update_user_level(user_id: str, level: int) -> None:
    """Store derived level; GREATEST keeps the column monotonic under races"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_stats
                SET level = GREATEST(level, %s), updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s
                """,
                (level, user_id)
            )
            await conn.commit()


async def update_user_streak(user_id: str, streak_days: int, best_streak: int, last_active_date) -> None:
    """Persist streak counters after a day of activity"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE user_stats
                SET streak_days = %s, best_streak = %s, last_active_date = %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s
                """,
                (streak_days, best_streak, last_active_date, user_id)
            )
            await conn.commit()


# ==========================================
# XP Ledger
# ==========================================

async def add_xp_transaction(
    user_id: str,
    action_id: str,
    base_xp: int,
    bonus_xp: int,
    category: str,
    created_at: datetime,
    metadata: Optional[dict] = None
) -> None:
    """
    Append an XP transaction

    Args:
        user_id: User ID
        action_id: XPAction id from the catalog
        base_xp: Base reward (or override amount)
        bonus_xp: Multiplier bonus
        category: Action category (drives the focus bonus)
        created_at: Award time, supplied by the caller's clock
        metadata: Optional free-form payload
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO xp_transactions
                    (user_id, action_id, base_xp, bonus_xp, total_xp, category, metadata, created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    user_id, action_id, base_xp, bonus_xp, base_xp + bonus_xp, category,
                    json.dumps(metadata) if metadata else None, created_at
                )
            )
            await conn.commit()


async def count_xp_transactions(
    user_id: str,
    action_id: Optional[str] = None,
    since: Optional[datetime] = None,
    category: Optional[str] = None
) -> int:
    """Count ledger rows for a user, optionally filtered by action, category and start time"""
    clauses = ["user_id = %s"]
    params: list = [user_id]
    if action_id is not None:
        clauses.append("action_id = %s")
        params.append(action_id)
    if category is not None:
        clauses.append("category = %s")
        params.append(category)
    if since is not None:
        clauses.append("created_at >= %s")
        params.append(since)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT COUNT(*) AS count FROM xp_transactions WHERE {' AND '.join(clauses)}",
                tuple(params)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


async def get_last_xp_transaction_time(user_id: str, action_id: str) -> Optional[datetime]:
    """Most recent award time for (user, action), used for cooldowns"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT MAX(created_at) AS last_at
                FROM xp_transactions
                WHERE user_id = %s AND action_id = %s
                """,
                (user_id, action_id)
            )
            row = await cur.fetchone()
            return row["last_at"] if row else None


async def get_xp_transactions(user_id: str, since: Optional[datetime] = None, limit: int = 100) -> list[dict]:
    """Newest-first ledger rows"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, action_id, base_xp, bonus_xp, total_xp, category, metadata, created_at
                FROM xp_transactions
                WHERE user_id = %s AND (%s::timestamptz IS NULL OR created_at >= %s)
                ORDER BY created_at DESC, id DESC
                LIMIT %s
                """,
                (user_id, since, since, limit)
            )
            return [dict(row) for row in await cur.fetchall()]


async def sum_xp_since(user_id: str, since: datetime) -> int:
    """Total XP earned since a point in time"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT COALESCE(SUM(total_xp), 0) AS total
                FROM xp_transactions
                WHERE user_id = %s AND created_at >= %s
                """,
                (user_id, since)
            )
            row = await cur.fetchone()
            return int(row["total"]) if row else 0


# ==========================================
# Badges & Achievements
# ==========================================

async def get_user_badges(user_id: str) -> list[dict]:
    """Earned badges, oldest first"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, badge_id, earned_at, metadata
                FROM user_badges
                WHERE user_id = %s
                ORDER BY earned_at
                """,
                (user_id,)
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_user_badge_ids(user_id: str) -> set[str]:
    """Earned badge ids, fetched once per evaluation pass"""
    return {row["badge_id"] for row in await get_user_badges(user_id)}


async def insert_user_badge(user_id: str, badge_id: str, earned_at: datetime, metadata: Optional[dict] = None) -> bool:
    """
    Insert-if-absent on (user_id, badge_id)

    Returns:
        True if this call created the row, False if it already existed
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_badges (user_id, badge_id, earned_at, metadata)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, badge_id) DO NOTHING
                RETURNING badge_id
                """,
                (user_id, badge_id, earned_at, json.dumps(metadata) if metadata else None)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def get_user_achievements(user_id: str, include_level_ups: bool = False) -> list[dict]:
    """Earned achievement-like records, level-up entries excluded unless requested"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, achievement_id, type, points, earned_at, metadata
                FROM user_achievements
                WHERE user_id = %s AND (%s OR type <> 'level_up')
                ORDER BY earned_at
                """,
                (user_id, include_level_ups)
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_user_achievement_ids(user_id: str) -> set[str]:
    """Ids of every achievement-like record, including level-up and challenge entries"""
    rows = await get_user_achievements(user_id, include_level_ups=True)
    return {row["achievement_id"] for row in rows}


async def insert_user_achievement(
    user_id: str,
    achievement_id: str,
    earned_at: datetime,
    type: str = "achievement",
    points: int = 0,
    metadata: Optional[dict] = None
) -> bool:
    """Insert-if-absent on (user_id, achievement_id); True if created"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_achievements (user_id, achievement_id, type, points, earned_at, metadata)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id, achievement_id) DO NOTHING
                RETURNING achievement_id
                """,
                (user_id, achievement_id, type, points, earned_at, json.dumps(metadata) if metadata else None)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def count_achievement_holders(achievement_id: str) -> int:
    """How many users hold an achievement"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT COUNT(*) AS count FROM user_achievements WHERE achievement_id = %s",
                (achievement_id,)
            )
            row = await cur.fetchone()
            return row["count"] if row else 0


# ==========================================
# Unlock records (titles, features, cosmetics)
# ==========================================

async def insert_user_title(user_id: str, title: str, source_id: str) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_titles (user_id, title, source_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, title) DO NOTHING
                RETURNING title
                """,
                (user_id, title, source_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def insert_unlocked_feature(user_id: str, feature_id: str, unlocked_by: str) -> bool:
    """Idempotent feature flag grant"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO unlocked_features (user_id, feature_id, unlocked_by)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, feature_id) DO NOTHING
                RETURNING feature_id
                """,
                (user_id, feature_id, unlocked_by)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def insert_user_cosmetic(user_id: str, cosmetic_id: str, source_id: str) -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_cosmetics (user_id, cosmetic_id, source_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, cosmetic_id) DO NOTHING
                RETURNING cosmetic_id
                """,
                (user_id, cosmetic_id, source_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


# ==========================================
# Notifications
# ==========================================

async def insert_notification(user_id: str, type: str, title: str, message: str, data: Optional[dict] = None) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO notifications (user_id, type, title, message, data)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (user_id, type, title, message, json.dumps(data) if data else None)
            )
            await conn.commit()
