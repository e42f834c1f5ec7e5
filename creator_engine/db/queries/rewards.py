"""Reward unlock and activation queries"""
import json
import logging
from datetime import datetime
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


async def get_unlocked_rewards(user_id: str) -> list[dict]:
    """All UnlockedReward rows for a user"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, reward_id, unlocked_at, claimed_at, active
                FROM unlocked_rewards
                WHERE user_id = %s
                ORDER BY unlocked_at
                """,
                (user_id,)
            )
            return [dict(row) for row in await cur.fetchall()]


async def insert_unlocked_reward(user_id: str, reward_id: str, unlocked_at: datetime) -> bool:
    """Insert-if-absent on (user_id, reward_id); True if created"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO unlocked_rewards (user_id, reward_id, unlocked_at, active)
                VALUES (%s, %s, %s, TRUE)
                ON CONFLICT (user_id, reward_id) DO NOTHING
                RETURNING reward_id
                """,
                (user_id, reward_id, unlocked_at)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


async def mark_reward_claimed(user_id: str, reward_id: str, claimed_at: datetime) -> bool:
    """
    Set claimed_at only where it is still NULL

    Returns:
        True for the first successful claim, False otherwise
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE unlocked_rewards
                SET claimed_at = %s
                WHERE user_id = %s AND reward_id = %s AND claimed_at IS NULL
                RETURNING reward_id
                """,
                (claimed_at, user_id, reward_id)
            )
            row = await cur.fetchone()
            await conn.commit()
            return row is not None


# ==========================================
# Activation grants
# ==========================================

async def insert_template_access(user_id: str, reward_id: str, template_count: Optional[int], categories: list[str]) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_template_access (user_id, reward_id, template_count, categories)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, reward_id) DO NOTHING
                """,
                (user_id, reward_id, template_count, json.dumps(categories))
            )
            await conn.commit()


async def insert_user_perk(user_id: str, reward_id: str, value: dict, expires_at: Optional[datetime]) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_perks (user_id, reward_id, value, expires_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, reward_id) DO NOTHING
                """,
                (user_id, reward_id, json.dumps(value), expires_at)
            )
            await conn.commit()


async def insert_content_access(user_id: str, reward_id: str, value: dict) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO content_access (user_id, reward_id, value)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, reward_id) DO NOTHING
                """,
                (user_id, reward_id, json.dumps(value))
            )
            await conn.commit()


async def insert_user_discount(user_id: str, reward_id: str, percentage: int, plan_type: str, lifetime: bool) -> None:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_discounts (user_id, reward_id, percentage, plan_type, lifetime, active)
                VALUES (%s, %s, %s, %s, %s, TRUE)
                ON CONFLICT (user_id, reward_id) DO NOTHING
                """,
                (user_id, reward_id, percentage, plan_type, lifetime)
            )
            await conn.commit()


async def get_active_discounts(user_id: str, plan_type: str) -> list[dict]:
    """Active discounts applicable to a plan"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT reward_id, percentage, plan_type, lifetime
                FROM user_discounts
                WHERE user_id = %s AND plan_type = %s AND active
                """,
                (user_id, plan_type)
            )
            return [dict(row) for row in await cur.fetchall()]
