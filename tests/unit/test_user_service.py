"""Unit tests for UserService (creator_engine/services/user_service.py)"""
import pytest

from creator_engine.exceptions import ValidationError
from creator_engine.services.user_service import UserService, build_profile


RESPONSES = {
    "creatorLevel": "beginner",
    "preferredPlatforms": ["youtube", "twitch"],
    "contentNiche": "gaming",
    "equipment": "phone",
    "goals": "1k subscribers",
    "challenges": "time",
}


@pytest.fixture
def user_service():
    return UserService()


def test_build_profile_maps_response_keys():
    profile = build_profile("creator-1", {**RESPONSES, "platformNotes": "also streams on Kick"})

    assert profile.creator_level == "beginner"
    assert profile.preferred_platforms == ["youtube", "twitch"]
    assert profile.content_niche == "gaming"
    assert profile.platform_notes == "also streams on Kick"


@pytest.mark.parametrize("missing", ["creatorLevel", "preferredPlatforms", "contentNiche"])
def test_build_profile_requires_core_answers(missing):
    responses = {k: v for k, v in RESPONSES.items() if k != missing}

    with pytest.raises(ValidationError) as exc_info:
        build_profile("creator-1", responses)

    assert exc_info.value.field == missing


@pytest.mark.asyncio
async def test_complete_onboarding_saves_profile_and_awards_badges(store, registered_user, user_service):
    profile = await user_service.complete_onboarding(registered_user, RESPONSES)

    assert profile.content_niche == "gaming"
    assert store.profiles[registered_user]["preferred_platforms"] == ["youtube", "twitch"]
    assert store.users[registered_user]["content_niche"] == "gaming"
    # First registered user, so early adopter as well
    assert store.badge_ids(registered_user) == {"early-adopter"}


@pytest.mark.asyncio
async def test_youtube_badge_needs_connected_channel(store, registered_user, user_service, clock):
    store.add_event(registered_user, "youtube_connected", clock.now)

    await user_service.complete_onboarding(registered_user, RESPONSES)

    assert "youtube-starter" in store.badge_ids(registered_user)


@pytest.mark.asyncio
async def test_incomplete_responses_save_nothing(store, user_service):
    with pytest.raises(ValidationError):
        await user_service.complete_onboarding("creator-1", {"creatorLevel": "advanced"})

    assert store.profiles == {}
