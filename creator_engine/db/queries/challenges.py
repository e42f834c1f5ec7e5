"""Daily challenge queries"""
import json
import logging
from datetime import datetime
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)

_CHALLENGE_COLUMNS = """
    id, user_id, template_id, title, description, type, category, difficulty,
    requirements, rewards, status, progress, created_at, expires_at, completed_at, claimed_at
"""


async def insert_challenge(challenge: dict) -> None:
    """Persist a per-user challenge row"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO daily_challenges
                    (id, user_id, template_id, title, description, type, category, difficulty,
                     requirements, rewards, status, progress, created_at, expires_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    challenge["id"], challenge["user_id"], challenge["template_id"],
                    challenge["title"], challenge["description"], challenge["type"],
                    challenge["category"], challenge["difficulty"],
                    json.dumps(challenge["requirements"]), json.dumps(challenge["rewards"]),
                    challenge["status"], challenge["progress"],
                    challenge["created_at"], challenge["expires_at"]
                )
            )
            await conn.commit()


async def get_recent_template_ids(user_id: str, since: datetime) -> set[str]:
    """Templates this user has been given since `since`"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT DISTINCT template_id
                FROM daily_challenges
                WHERE user_id = %s AND created_at >= %s
                """,
                (user_id, since)
            )
            return {row["template_id"] for row in await cur.fetchall()}


async def get_challenges(user_id: str, statuses: list[str], not_expired_at: Optional[datetime] = None) -> list[dict]:
    """Challenges in the given statuses, optionally only those expiring after a time"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_CHALLENGE_COLUMNS}
                FROM daily_challenges
                WHERE user_id = %s AND status = ANY(%s)
                  AND (%s::timestamptz IS NULL OR expires_at > %s)
                ORDER BY created_at
                """,
                (user_id, statuses, not_expired_at, not_expired_at)
            )
            return [dict(row) for row in await cur.fetchall()]


async def get_challenge(user_id: str, challenge_id: str) -> Optional[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_CHALLENGE_COLUMNS} FROM daily_challenges WHERE user_id = %s AND id = %s",
                (user_id, challenge_id)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def update_challenge_progress(
    challenge_id: str,
    progress: int,
    completed_at: Optional[datetime] = None
) -> None:
    """
    Raise progress (never lowers it) and mark completed when `completed_at` is given

    Only rows still 'active' are touched.
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE daily_challenges
                SET progress = GREATEST(progress, %s),
                    status = CASE WHEN %s::timestamptz IS NULL THEN status ELSE 'completed' END,
                    completed_at = COALESCE(completed_at, %s)
                WHERE id = %s AND status = 'active'
                """,
                (progress, completed_at, completed_at, challenge_id)
            )
            await conn.commit()


async def mark_challenge_claimed(challenge_id: str, claimed_at: datetime) -> bool:
    """
    Conditional claim: only a completed, unclaimed row is updated

    Returns:
        True for exactly one caller per challenge
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE daily_challenges
                SET claimed_at = %s
                WHERE id = %s AND status = 'completed' AND claimed_at IS NULL
                RETURNING id
                """,
                (claimed_at, challenge_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def set_challenge_status(challenge_id: str, status: str, from_status: str = "active") -> bool:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE daily_challenges
                SET status = %s
                WHERE id = %s AND status = %s
                RETURNING id
                """,
                (status, challenge_id, from_status)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def expire_challenges(user_id: str, now: datetime) -> int:
    """Flip active challenges past their expiry to 'expired'"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE daily_challenges
                SET status = 'expired'
                WHERE user_id = %s AND status = 'active' AND expires_at <= %s
                """,
                (user_id, now)
            )
            count = cur.rowcount
            await conn.commit()
            return count
