"""
UserService - User Management Business Logic

Receives completed onboarding responses and persists the creator profile,
then runs the badge checks that onboarding answers can satisfy.
"""

import logging
from typing import Any, Optional

from creator_engine.db import queries
from creator_engine.exceptions import ValidationError
from creator_engine.gamification import check_and_award_badges
from creator_engine.models.onboarding import CreatorProfile

logger = logging.getLogger(__name__)


def build_profile(user_id: str, responses: dict[str, Any]) -> CreatorProfile:
    """
    Map onboarding response keys onto a CreatorProfile

    Raises:
        ValidationError: A required answer is missing
    """
    for key in ("creatorLevel", "preferredPlatforms", "contentNiche"):
        if not responses.get(key):
            raise ValidationError(
                f"Onboarding response '{key}' is missing",
                field=key,
                user_id=user_id,
                operation="complete_onboarding",
            )

    return CreatorProfile(
        user_id=user_id,
        creator_level=responses["creatorLevel"],
        preferred_platforms=list(responses["preferredPlatforms"]),
        content_niche=responses["contentNiche"],
        equipment=responses.get("equipment", ""),
        goals=responses.get("goals", ""),
        challenges=responses.get("challenges", ""),
        platform_notes=responses.get("platformNotes", ""),
    )


class UserService:
    """
    Service for user profiles.

    Responsibilities:
    - Onboarding completion and profile persistence
    - Badges unlocked by onboarding answers
    """

    async def complete_onboarding(self, user_id: str, responses: dict[str, Any]) -> Optional[CreatorProfile]:
        """
        Persist the profile collected by the onboarding interview

        Args:
            user_id: Authenticated user ID
            responses: Onboarding `responses` map

        Returns:
            The saved profile

        Raises:
            ValidationError: Required answers are missing
        """
        profile = build_profile(user_id, responses)
        await queries.save_onboarding_profile(user_id, profile.model_dump())
        logger.info(
            f"Saved onboarding profile for user {user_id}: {profile.creator_level}, "
            f"{', '.join(profile.preferred_platforms)}, {profile.content_niche}"
        )

        if "youtube" in profile.preferred_platforms:
            await check_and_award_badges(user_id, "youtube_setup")
        await check_and_award_badges(user_id, "user_number")

        return profile
