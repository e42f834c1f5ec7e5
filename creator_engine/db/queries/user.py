"""User profile queries"""
import json
import logging
from typing import Optional
from creator_engine.db.connection import db

logger = logging.getLogger(__name__)


async def get_user(user_id: str) -> Optional[dict]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id, display_name, email_verified, created_at, creator_level,
                       preferred_platforms, content_niche, equipment, goals, challenges,
                       onboarding_completed_at
                FROM users
                WHERE id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def get_verified_user_ids() -> list[str]:
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT id FROM users WHERE email_verified ORDER BY created_at")
            return [row["id"] for row in await cur.fetchall()]


async def save_onboarding_profile(user_id: str, profile: dict) -> None:
    """
    Store completed onboarding responses on the user row

    Args:
        user_id: User ID
        profile: CreatorProfile.model_dump()
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                UPDATE users
                SET creator_level = %s,
                    preferred_platforms = %s,
                    content_niche = %s,
                    equipment = %s,
                    goals = %s,
                    challenges = %s,
                    platform_notes = %s,
                    onboarding_completed_at = CURRENT_TIMESTAMP
                WHERE id = %s
                """,
                (
                    profile["creator_level"],
                    json.dumps(profile["preferred_platforms"]),
                    profile["content_niche"],
                    profile.get("equipment", ""),
                    profile.get("goals", ""),
                    profile.get("challenges", ""),
                    profile.get("platform_notes", ""),
                    user_id
                )
            )
            await conn.commit()
        logger.info(f"Saved onboarding profile for user {user_id}")
