"""Unit tests for achievements (creator_engine/gamification/achievement_system.py)"""
from datetime import datetime, timedelta, timezone

import pytest

from creator_engine.gamification.achievement_system import (
    check_and_award_achievements,
    get_achievement_progress,
    get_user_achievements,
)


USER = "creator-1"


# ============================================================================
# Milestone & Perfect Tests
# ============================================================================

@pytest.mark.asyncio
async def test_first_viral_pays_xp_and_grants_badge(store):
    awarded = await check_and_award_achievements(USER, {"content_views": 12000})

    assert [a.id for a in awarded] == ["first-viral"]
    assert store.achievements[(USER, "first-viral")]["points"] == 100
    assert "viral-creator" in store.badge_ids(USER)
    milestone = store.xp_for(USER, "complete-milestone")
    assert milestone[0]["base_xp"] == 500
    assert any(n["type"] == "achievement_unlocked" for n in store.notifications)


@pytest.mark.asyncio
async def test_achievement_awarded_once(store):
    await check_and_award_achievements(USER, {"content_views": 12000})
    again = await check_and_award_achievements(USER, {"content_views": 50000})

    assert again == []
    assert len(store.xp_for(USER, "complete-milestone")) == 1


@pytest.mark.asyncio
async def test_below_threshold_awards_nothing(store):
    assert await check_and_award_achievements(USER, {"content_views": 10000}) == []


@pytest.mark.asyncio
async def test_no_supplied_metrics_skips_metric_driven_achievements(store):
    assert await check_and_award_achievements(USER, {}) == []
    assert store.achievements == {}


@pytest.mark.asyncio
async def test_engagement_master_grants_cosmetic(store):
    awarded = await check_and_award_achievements(USER, {"engagement_rate": 12.5})

    assert [a.id for a in awarded] == ["engagement-master"]
    assert (USER, "golden-frame") in store.cosmetics


@pytest.mark.asyncio
async def test_platform_master_requires_both_perfect_scores(store):
    assert await check_and_award_achievements(
        USER, {"platform_features_used": 100, "platform_tutorials_completed": 90}
    ) == []

    awarded = await check_and_award_achievements(
        USER, {"platform_features_used": 100, "platform_tutorials_completed": 100}
    )

    assert [a.id for a in awarded] == ["platform-master"]
    assert "platform-expert" in store.badge_ids(USER)
    assert (USER, "beta-access") in store.features


@pytest.mark.asyncio
async def test_unique_achievement_blocked_once_held(store):
    store.achievements[("someone-else", "pioneer")] = {
        "user_id": "someone-else", "achievement_id": "pioneer", "type": "achievement",
        "points": 500, "earned_at": datetime(2023, 12, 1, tzinfo=timezone.utc), "metadata": None,
    }

    assert await check_and_award_achievements(USER, {"total_views": 2_000_000}) == []


# ============================================================================
# Cumulative & Special Tests
# ============================================================================

@pytest.mark.asyncio
async def test_consistency_king_from_thirty_publishing_days(store, clock):
    for days_ago in range(30):
        store.publish(USER, clock.now - timedelta(days=days_ago))

    awarded = await check_and_award_achievements(USER, {})

    assert [a.id for a in awarded] == ["consistency-king"]
    assert store.titles[(USER, "The Consistent")] == "consistency-king"


@pytest.mark.asyncio
async def test_twenty_nine_publishing_days_is_not_enough(store, clock):
    for days_ago in range(29):
        store.publish(USER, clock.now - timedelta(days=days_ago))

    assert await check_and_award_achievements(USER, {}) == []


@pytest.mark.asyncio
async def test_hidden_night_owl_is_awarded_silently(store, clock):
    night = datetime(2024, 1, 9, 2, 0, tzinfo=timezone.utc)
    for _ in range(51):
        store.add_task(USER, created_at=night - timedelta(hours=1), completed_at=night)

    awarded = await check_and_award_achievements(USER, {})

    assert [a.id for a in awarded] == ["night-owl"]
    assert (USER, "night-theme") in store.cosmetics
    assert not any(n["type"] == "achievement_unlocked" for n in store.notifications)


# ============================================================================
# Listing Tests
# ============================================================================

@pytest.mark.asyncio
async def test_progress_never_lists_hidden_achievements(store):
    progress = await get_achievement_progress(USER, {"content_views": 5000})

    ids = {p["achievement"].id for p in progress}
    assert "night-owl" not in ids
    assert "perfect-planning" not in ids
    by_id = {p["achievement"].id: p["progress"] for p in progress}
    assert by_id["first-viral"] == 50.0


@pytest.mark.asyncio
async def test_user_achievements_exclude_level_ups(store):
    await check_and_award_achievements(USER, {"content_views": 12000})

    earned = await get_user_achievements(USER)

    # first-viral's 500 XP crossed level 2, whose record is a level_up row
    assert (USER, "level-2") in store.achievements
    assert [e["achievement"].id for e in earned] == ["first-viral"]
