"""
Achievement System

Achievements bundle several rewards behind one requirement. Requirement
kinds and where their values come from:
- milestone: the metrics supplied with the check (missing metrics read as 0)
- perfect: supplied metrics, every condition must match its target exactly
- unique: supplied metrics, and nobody may already hold the achievement
- cumulative: time-windowed aggregates (e.g. distinct publishing days, trailing 30 days)
- special: values produced by a named resolver

Hidden achievements are evaluated like any other but never listed in
progress views and never announced.
"""

from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional
import logging

from creator_engine.db import queries
from creator_engine.gamification import user_metrics
from creator_engine.gamification.cascade import AwardCascade, BadgeGrant, RewardCheck
from creator_engine.gamification.notifications import notify
from creator_engine.gamification.requirements import (
    AchievementFacts,
    achievement_progress,
    evaluate_achievement_requirement,
)
from creator_engine.gamification.xp_system import award_xp
from creator_engine.models.gamification import (
    Achievement,
    AchievementReward,
    Condition,
    ConditionOperator,
    CumulativeRequirement,
    MilestoneRequirement,
    PerfectRequirement,
    SpecialRequirement,
    UniqueRequirement,
)
from creator_engine.observability.metrics import award_failures_total, awards_total
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)

GT = ConditionOperator.GREATER_THAN
EQ = ConditionOperator.EQUALS


ACHIEVEMENTS: dict[str, Achievement] = {a.id: a for a in (
    Achievement(
        id="first-viral", name="Gone Viral", description="Get over 10,000 views on a single piece of content",
        icon="🔥", category="growth", points=100,
        requirement=MilestoneRequirement(conditions=[Condition(metric="content_views", operator=GT, value=10000)]),
        rewards=(AchievementReward(type="xp", value=500), AchievementReward(type="badge", value="viral-creator")),
    ),
    Achievement(
        id="consistency-king", name="Consistency King", description="Publish content every day for 30 days",
        icon="👑", category="consistency", points=200,
        requirement=CumulativeRequirement(conditions=[
            Condition(metric="daily_content", operator=EQ, value=30, timeframe="monthly"),
        ]),
        rewards=(AchievementReward(type="xp", value=1500), AchievementReward(type="title", value="The Consistent")),
    ),
    Achievement(
        id="rapid-growth", name="Rapid Growth", description="Gain over 1,000 followers in a month",
        icon="📈", category="growth", points=150,
        requirement=MilestoneRequirement(conditions=[
            Condition(metric="follower_growth", operator=GT, value=1000, timeframe="monthly"),
        ]),
        rewards=(AchievementReward(type="xp", value=750), AchievementReward(type="feature", value="growth-analytics-pro")),
    ),
    Achievement(
        id="engagement-master", name="Engagement Master", description="Reach an engagement rate above 10%",
        icon="💬", category="engagement", points=180,
        requirement=MilestoneRequirement(conditions=[Condition(metric="engagement_rate", operator=GT, value=10)]),
        rewards=(AchievementReward(type="xp", value=900), AchievementReward(type="cosmetic", value="golden-frame")),
    ),
    Achievement(
        id="platform-master", name="Platform Master", description="Use every feature and finish every tutorial",
        icon="🧠", category="mastery", points=300,
        requirement=PerfectRequirement(conditions=[
            Condition(metric="platform_features_used", operator=EQ, value=100),
            Condition(metric="platform_tutorials_completed", operator=EQ, value=100),
        ]),
        rewards=(
            AchievementReward(type="xp", value=2000),
            AchievementReward(type="badge", value="platform-expert"),
            AchievementReward(type="feature", value="beta-access"),
        ),
    ),
    Achievement(
        id="pioneer", name="Pioneer", description="Be the first creator to pass 1,000,000 total views",
        icon="🗺️", category="growth", points=500,
        requirement=UniqueRequirement(conditions=[Condition(metric="total_views", operator=GT, value=1_000_000)]),
        rewards=(AchievementReward(type="xp", value=2500), AchievementReward(type="title", value="The Pioneer")),
    ),
    Achievement(
        id="night-owl", name="Night Owl", description="Complete 50 tasks between midnight and 5am",
        icon="🦉", category="special", points=50, hidden=True,
        requirement=SpecialRequirement(resolver="night_tasks_30d", conditions=[
            Condition(metric="night_tasks", operator=GT, value=50),
        ]),
        rewards=(AchievementReward(type="xp", value=250), AchievementReward(type="cosmetic", value="night-theme")),
    ),
    Achievement(
        id="perfect-planning", name="Perfect Planning", description="Complete every planned task for a month",
        icon="✅", category="special", points=250, hidden=True,
        requirement=PerfectRequirement(conditions=[
            Condition(metric="task_completion_rate", operator=EQ, value=100, timeframe="monthly"),
        ]),
        rewards=(AchievementReward(type="xp", value=1000), AchievementReward(type="title", value="The Perfectionist")),
    ),
)}


# ==========================================
# Special resolvers: user id -> metric values
# ==========================================

async def _night_tasks_30d(user_id: str) -> dict[str, float]:
    since = datetime_helpers.now_local() - timedelta(days=30)
    count = await queries.count_completed_tasks(user_id, since=since, hour_range=(0, 5))
    return {"night_tasks": count}


SPECIAL_RESOLVERS: dict[str, Callable[[str], Awaitable[dict[str, float]]]] = {
    "night_tasks_30d": _night_tasks_30d,
}


async def gather_facts(user_id: str, achievement: Achievement, metrics: dict[str, Any]) -> AchievementFacts:
    """Collect the values this achievement's requirement is evaluated against"""
    requirement = achievement.requirement

    if isinstance(requirement, CumulativeRequirement):
        values = {}
        for condition in requirement.conditions:
            values[condition.metric] = await user_metrics.get_windowed_value(
                user_id, condition.metric, condition.timeframe
            )
        return AchievementFacts(values=values)

    if isinstance(requirement, SpecialRequirement):
        resolver = SPECIAL_RESOLVERS.get(requirement.resolver)
        if resolver is None:
            logger.warning(f"No resolver '{requirement.resolver}' for achievement {achievement.id}")
            return AchievementFacts()
        return AchievementFacts(values=await resolver(user_id))

    if isinstance(requirement, UniqueRequirement):
        holders = await queries.count_achievement_holders(achievement.id)
        return AchievementFacts(values=metrics, holder_count=holders)

    return AchievementFacts(values=metrics)


def _needs_supplied_metrics(achievement: Achievement, metrics: dict[str, Any]) -> bool:
    """Metric-driven requirements are skipped when none of their metrics were supplied"""
    if isinstance(achievement.requirement, (CumulativeRequirement, SpecialRequirement)):
        return False
    return not any(c.metric in metrics for c in achievement.requirement.conditions)


async def check_and_award_achievements(
    user_id: str,
    metrics: dict[str, Any],
    cascade: Optional[AwardCascade] = None
) -> list[Achievement]:
    """
    Evaluate every unearned achievement and award those now satisfied

    Args:
        user_id: User ID
        metrics: Metric values observed by the caller (e.g. {'content_views': 12000})
        cascade: Follow-up queue; a local one is drained if omitted

    Returns:
        Achievements newly awarded by this check
    """
    owns_cascade = cascade is None
    if owns_cascade:
        cascade = AwardCascade(user_id)

    earned = await queries.get_user_achievement_ids(user_id)
    awarded: list[Achievement] = []

    for achievement in ACHIEVEMENTS.values():
        if achievement.id in earned or _needs_supplied_metrics(achievement, metrics):
            continue
        try:
            facts = await gather_facts(user_id, achievement, metrics)
            if not evaluate_achievement_requirement(achievement.requirement, facts):
                continue
            if await _award_achievement(user_id, achievement, cascade):
                awarded.append(achievement)
        except Exception as e:
            award_failures_total.labels(kind="achievement").inc()
            logger.error(f"Failed to check/award achievement {achievement.id} for user {user_id}: {e}", exc_info=True)

    if owns_cascade:
        await cascade.drain()
    return awarded


async def _award_achievement(user_id: str, achievement: Achievement, cascade: AwardCascade) -> bool:
    """Persist the achievement, then apply each of its rewards in order"""
    created = await queries.insert_user_achievement(
        user_id, achievement.id, datetime_helpers.now_local(),
        type="achievement", points=achievement.points,
    )
    if not created:
        return False

    logger.info(f"User {user_id} unlocked achievement {achievement.id} ({achievement.name})")
    awards_total.labels(kind="achievement").inc()
    cascade.result.achievements.append(achievement)

    for reward in achievement.rewards:
        try:
            await _apply_reward(user_id, achievement, reward, cascade)
        except Exception as e:
            award_failures_total.labels(kind="achievement_reward").inc()
            logger.error(
                f"Failed to apply {reward.type} reward of achievement {achievement.id} for user {user_id}: {e}",
                exc_info=True
            )

    if not achievement.hidden:
        await notify(
            user_id,
            "achievement_unlocked",
            f"{achievement.icon} Achievement unlocked: {achievement.name}",
            achievement.description,
            {"achievement_id": achievement.id, "points": achievement.points},
        )

    cascade.push(RewardCheck(trigger_type="achievement", trigger_value=achievement.id))
    return True


async def _apply_reward(user_id: str, achievement: Achievement, reward: AchievementReward, cascade: AwardCascade) -> None:
    if reward.type == "xp":
        await award_xp(
            user_id, "complete-milestone",
            metadata={"reason": f"Achievement: {achievement.name}", "achievement_id": achievement.id},
            xp_override=int(reward.value),
            cascade=cascade,
        )
    elif reward.type == "badge":
        cascade.push(BadgeGrant(badge_id=str(reward.value), source=f"achievement:{achievement.id}"))
    elif reward.type == "title":
        await queries.insert_user_title(user_id, str(reward.value), achievement.id)
    elif reward.type == "feature":
        await queries.insert_unlocked_feature(user_id, str(reward.value), "achievement")
    elif reward.type == "cosmetic":
        await queries.insert_user_cosmetic(user_id, str(reward.value), achievement.id)
    else:
        raise ValueError(f"Unknown achievement reward type: {reward.type}")


async def get_user_achievements(user_id: str) -> list[dict[str, Any]]:
    """Earned achievements (level-up and challenge records excluded)"""
    rows = await queries.get_user_achievements(user_id)
    result = []
    for row in rows:
        achievement = ACHIEVEMENTS.get(row["achievement_id"])
        if achievement is None:
            continue
        result.append({"achievement": achievement, "earned_at": row["earned_at"]})
    return result


async def get_achievement_progress(user_id: str, metrics: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
    """
    Progress toward unearned, visible achievements, highest first

    Hidden achievements are never listed.
    """
    metrics = metrics or {}
    earned = await queries.get_user_achievement_ids(user_id)
    progress = []
    for achievement in ACHIEVEMENTS.values():
        if achievement.hidden or achievement.id in earned:
            continue
        facts = await gather_facts(user_id, achievement, metrics)
        progress.append({
            "achievement": achievement,
            "progress": achievement_progress(achievement.requirement, facts),
        })
    progress.sort(key=lambda p: p["progress"], reverse=True)
    return progress
