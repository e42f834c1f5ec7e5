"""Unit tests for the trigger-driven badge system (creator_engine/gamification/badge_system.py)"""
import pytest

from creator_engine.gamification.badge_system import (
    check_and_award_badges,
    get_badge_progress,
    get_user_badges,
    grant_badge,
)
from fakes import StoreFailure


USER = "creator-1"


# ============================================================================
# Award Tests
# ============================================================================

@pytest.mark.asyncio
async def test_first_publish_awards_first_steps(store, clock):
    store.publish(USER, clock.now)

    awarded = await check_and_award_badges(USER, "content_published")

    assert [b.id for b in awarded] == ["first-content"]
    assert awarded[0].name == "First Steps"
    assert store.badge_ids(USER) == {"first-content"}
    gains = store.xp_for(USER, "unlock-badge")
    assert len(gains) == 1
    assert gains[0]["base_xp"] == 100
    assert any(n["type"] == "badge_earned" for n in store.notifications)


@pytest.mark.asyncio
async def test_badge_awarded_only_once(store, clock):
    store.publish(USER, clock.now)
    await check_and_award_badges(USER, "content_published")

    store.publish(USER, clock.now)
    again = await check_and_award_badges(USER, "content_published")

    assert again == []
    assert len(store.xp_for(USER, "unlock-badge")) == 1


@pytest.mark.asyncio
async def test_supplied_value_awards_every_satisfied_tier(store):
    awarded = await check_and_award_badges(USER, "content_published", value=10)

    assert {b.id for b in awarded} == {"first-content", "content-10"}
    assert store.stats[USER]["total_xp"] == 350


@pytest.mark.asyncio
async def test_unrelated_metric_awards_nothing(store):
    assert await check_and_award_badges(USER, "no_such_metric", value=1000) == []
    assert store.badges == {}


@pytest.mark.asyncio
async def test_early_adopter_uses_registration_rank(store, registered_user):
    awarded = await check_and_award_badges(registered_user, "user_number")

    assert [b.id for b in awarded] == ["early-adopter"]


@pytest.mark.asyncio
async def test_early_adopter_needs_a_registration(store):
    assert await check_and_award_badges(USER, "user_number") == []


@pytest.mark.asyncio
async def test_store_failure_is_logged_not_raised(store):
    store.failing["insert_user_badge"] = StoreFailure("db down")

    assert await check_and_award_badges(USER, "content_published", value=1) == []
    assert store.xp_rows == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_block_award(store):
    store.failing["insert_notification"] = StoreFailure("queue down")

    awarded = await check_and_award_badges(USER, "content_published", value=1)

    assert [b.id for b in awarded] == ["first-content"]
    assert store.stats[USER]["total_xp"] == 100


# ============================================================================
# Direct Grant Tests
# ============================================================================

@pytest.mark.asyncio
async def test_grant_badge_once(store):
    first = await grant_badge(USER, "viral-creator", "achievement:first-viral")
    second = await grant_badge(USER, "viral-creator", "achievement:first-viral")

    assert first.id == "viral-creator"
    assert second is None
    assert store.badges[(USER, "viral-creator")]["metadata"] == {"source": "achievement:first-viral"}
    assert store.xp_for(USER, "unlock-badge")[0]["base_xp"] == 500


@pytest.mark.asyncio
async def test_grant_unknown_badge_is_ignored(store):
    assert await grant_badge(USER, "made-up", "test") is None
    assert store.badges == {}


# ============================================================================
# Listing & Progress Tests
# ============================================================================

@pytest.mark.asyncio
async def test_get_user_badges_joins_catalog(store):
    await grant_badge(USER, "platform-expert", "test")

    badges = await get_user_badges(USER)

    assert len(badges) == 1
    assert badges[0]["badge"].name == "Platform Expert"


@pytest.mark.asyncio
async def test_badge_progress_for_unearned_badges(store, clock):
    for _ in range(5):
        store.publish(USER, clock.now)
    await check_and_award_badges(USER, "content_published")

    progress = {p["badge"].id: p for p in await get_badge_progress(USER)}

    assert "first-content" not in progress
    assert "viral-creator" not in progress
    assert progress["content-10"]["current"] == 5.0
    assert progress["content-10"]["progress"] == 50.0
    assert progress["content-100"]["progress"] == 5.0
