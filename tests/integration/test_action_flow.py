"""
Integration tests: user actions flowing through the whole award cascade

XP ledger → badges → achievements → rewards → challenges, all against the
in-memory store with a fixed clock.
"""
from datetime import date

import pytest

from creator_engine.gamification.challenges import create_special_challenge
from creator_engine.models.gamification import ChallengeRequirement, ChallengeReward
from creator_engine.services.gamification_service import GamificationService
from creator_engine.services.container import get_container, init_container, reset_container
from fakes import FakeLLM

pytestmark = pytest.mark.integration

USER = "creator-1"


@pytest.fixture
def service():
    return GamificationService()


# ============================================================================
# Cascade Flows
# ============================================================================

@pytest.mark.asyncio
async def test_first_publish_cascades_into_badge_xp(store, service, clock):
    store.publish(USER, clock.now)

    outcome = await service.record_action(USER, "publish-content")

    assert outcome.xp_gain.xp_amount == 100
    assert [b.id for b in outcome.badges] == ["first-content"]
    assert [g.action_id for g in outcome.xp_gains] == ["publish-content", "unlock-badge"]
    assert outcome.total_xp == 200
    assert store.stats[USER]["total_xp"] == 200
    assert "🎯 Badge earned: First Steps" in outcome.messages()


@pytest.mark.asyncio
async def test_seventh_login_completes_perfect_week(store, service):
    store.set_stats(USER, streak_days=6, best_streak=6, last_active_date=date(2024, 1, 9))

    outcome = await service.record_action(USER, "daily-login")

    assert outcome.streak["current_streak"] == 7
    assert store.stats[USER]["best_streak"] == 7
    assert [b.id for b in outcome.badges] == ["perfect-week"]
    # login 10 (+0) + streak bonus 20 (+2) + badge 1000 (+100) + level-2 payout 200 (+20)
    assert [g.xp_amount for g in outcome.xp_gains] == [10, 22, 1100, 220]
    assert outcome.leveled_up_to == 2
    assert store.stats[USER]["level"] == 2


@pytest.mark.asyncio
async def test_broken_streak_restarts_without_bonus(store, service):
    store.set_stats(USER, streak_days=12, best_streak=12, last_active_date=date(2024, 1, 5))

    outcome = await service.record_action(USER, "daily-login")

    assert outcome.streak["current_streak"] == 1
    assert store.stats[USER]["best_streak"] == 12
    assert store.xp_for(USER, "streak-bonus") == []


@pytest.mark.asyncio
async def test_reported_metrics_unlock_achievement_and_its_badge(store, service):
    outcome = await service.record_action(USER, "share-achievement", metrics={"content_views": 15000})

    assert [a.id for a in outcome.achievements] == ["first-viral"]
    assert [b.id for b in outcome.badges] == ["viral-creator"]
    assert "🏆 Achievement unlocked: Gone Viral" in outcome.messages()


@pytest.mark.asyncio
async def test_level_up_unlocks_level_gated_reward(store, service, clock):
    store.set_stats(USER, total_xp=1400, level=2)
    store.publish(USER, clock.now)

    outcome = await service.record_action(USER, "publish-content")

    assert outcome.leveled_up_to == 3
    assert [r.id for r in outcome.rewards] == ["advanced-analytics"]
    assert (USER, "analytics-pro") in store.features
    assert (USER, "level-3-analytics-access") in store.features


@pytest.mark.asyncio
async def test_action_completes_matching_challenge(store, service):
    [challenge] = await create_special_challenge(
        "Plan Ahead", "Schedule one piece of content",
        requirements=[ChallengeRequirement(type="action", target="schedule-content", count=1)],
        rewards=[ChallengeReward(type="xp", value=150)],
        user_ids=[USER],
    )

    outcome = await service.record_action(USER, "schedule-content")

    assert [c.id for c in outcome.completed_challenges] == [challenge.id]
    assert store.challenges[challenge.id]["claimed_at"] is not None
    assert store.xp_for(USER, "complete-challenge")[0]["base_xp"] == 150


# ============================================================================
# Onboarding Through the Container
# ============================================================================

@pytest.fixture
def container(store):
    c = init_container(None, FakeLLM())
    yield c
    reset_container()


@pytest.mark.asyncio
async def test_finished_interview_saves_profile_and_awards_early_adopter(container, store, registered_user):
    manager = container.conversation_manager
    conversation = await manager.create_onboarding_conversation(registered_user)

    for reply in ("1", "YouTube, TikTok", "cooking", "just my phone", "reach 1k followers", "finding time"):
        await manager.complete_message(conversation.id, reply, user_id=registered_user)

    assert conversation.context["step"] == "complete"
    profile = store.profiles[registered_user]
    assert profile["preferred_platforms"] == ["youtube", "tiktok"]
    assert profile["content_niche"] == "cooking"
    assert store.badge_ids(registered_user) == {"early-adopter"}
    assert get_container() is container
