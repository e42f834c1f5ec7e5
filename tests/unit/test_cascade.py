"""Unit tests for the award cascade queue (creator_engine/gamification/cascade.py)"""
import pytest

from creator_engine.gamification.cascade import AwardCascade, BadgeCheck, BadgeGrant, RewardCheck
from fakes import StoreFailure, metric_value


USER = "creator-1"


def test_push_respects_depth_bound():
    cascade = AwardCascade(USER, max_depth=2)

    assert cascade.push(BadgeCheck(metric="user_level", value=2)) is True

    cascade.depth = 2
    assert cascade.push(RewardCheck(trigger_type="badge", trigger_value="x")) is False
    assert cascade.result.dropped == 1
    assert len(cascade) == 1


@pytest.mark.asyncio
async def test_drain_processes_follow_ups_in_order(store):
    cascade = AwardCascade(USER)
    cascade.push(BadgeGrant(badge_id="viral-creator", source="test"))
    cascade.push(BadgeGrant(badge_id="platform-expert", source="test"))

    result = await cascade.drain()

    assert [b.id for b in result.badges] == ["viral-creator", "platform-expert"]
    assert len(cascade) == 0
    assert cascade.depth == 0


@pytest.mark.asyncio
async def test_follow_ups_beyond_depth_are_dropped(store):
    # Depth 1: the grant runs, but the reward check it enqueues would be depth 2
    cascade = AwardCascade(USER, max_depth=1)
    cascade.push(BadgeGrant(badge_id="viral-creator", source="test"))

    result = await cascade.drain()

    assert [b.id for b in result.badges] == ["viral-creator"]
    assert result.dropped >= 1


@pytest.mark.asyncio
async def test_failed_follow_up_does_not_stop_the_drain(store):
    store.failing["get_unlocked_rewards"] = StoreFailure("db hiccup")
    failures_before = metric_value("creator_award_failures_total", kind="cascade")
    cascade = AwardCascade(USER)
    cascade.push(RewardCheck(trigger_type="xp", trigger_value=100))
    cascade.push(BadgeGrant(badge_id="viral-creator", source="test"))

    result = await cascade.drain()

    assert [b.id for b in result.badges] == ["viral-creator"]
    assert store.badge_ids(USER) == {"viral-creator"}
    assert result.failed >= 1
    assert metric_value("creator_award_failures_total", kind="cascade") == failures_before + result.failed
    assert len(cascade) == 0


def test_unknown_follow_up_rejected():
    with pytest.raises(TypeError):
        AwardCascade(USER).push("not a follow-up")
