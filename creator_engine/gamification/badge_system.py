"""
Badge System

Badges are trigger-driven: a check names one metric and only badges whose
requirement metric matches are evaluated. There is no periodic rescan, so a
badge becomes eligible at the moment a matching metric event fires.

Award path: insert-if-absent UserBadge → badge XP via `unlock-badge`
(amount = badge.xp_reward) → notification → reward check for the badge.
"""

from typing import Any, Optional
import logging

from creator_engine.db import queries
from creator_engine.gamification import user_metrics
from creator_engine.gamification.cascade import AwardCascade, RewardCheck
from creator_engine.gamification.notifications import notify
from creator_engine.gamification.requirements import badge_progress, evaluate_badge_requirement
from creator_engine.gamification.xp_system import award_xp
from creator_engine.models.gamification import (
    AchievementFlagRequirement,
    Badge,
    BadgeTier,
    CountRequirement,
    CustomRequirement,
    GrantOnlyRequirement,
    LevelRequirement,
    Rarity,
    StreakRequirement,
    UserBadge,
)
from creator_engine.observability.metrics import award_failures_total, awards_total
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)


BADGES: dict[str, Badge] = {b.id: b for b in (
    # Content
    Badge(id="first-content", name="First Steps", description="Publish your first piece of content",
          icon="🎯", category="content", tier=BadgeTier.BRONZE, rarity=Rarity.COMMON, xp_reward=100,
          requirement=CountRequirement(metric="content_published", target=1)),
    Badge(id="content-10", name="Content Creator", description="Publish 10 pieces of content",
          icon="📝", category="content", tier=BadgeTier.SILVER, rarity=Rarity.COMMON, xp_reward=250,
          requirement=CountRequirement(metric="content_published", target=10)),
    Badge(id="content-100", name="Prolific Publisher", description="Publish 100 pieces of content",
          icon="📚", category="content", tier=BadgeTier.GOLD, rarity=Rarity.RARE, xp_reward=1000,
          requirement=CountRequirement(metric="content_published", target=100)),
    Badge(id="template-master", name="Template Master", description="Create 5 custom templates",
          icon="🧩", category="content", tier=BadgeTier.SILVER, rarity=Rarity.RARE, xp_reward=300,
          requirement=CountRequirement(metric="templates_created", target=5)),
    # Engagement
    Badge(id="ai-whisperer", name="AI Whisperer", description="Have 100 conversations with the AI assistant",
          icon="🤖", category="engagement", tier=BadgeTier.SILVER, rarity=Rarity.COMMON, xp_reward=200,
          requirement=CountRequirement(metric="ai_interactions", target=100)),
    # Community
    Badge(id="helpful-creator", name="Helpful Creator", description="Help 10 other creators",
          icon="🤝", category="community", tier=BadgeTier.SILVER, rarity=Rarity.RARE, xp_reward=400,
          requirement=CountRequirement(metric="creators_helped", target=10)),
    Badge(id="community-champion", name="Community Champion", description="Receive 50 thanks from the community",
          icon="🏅", category="community", tier=BadgeTier.GOLD, rarity=Rarity.EPIC, xp_reward=750,
          requirement=CountRequirement(metric="thanks_received", target=50)),
    # Platform
    Badge(id="youtube-starter", name="YouTube Starter", description="Connect your YouTube channel",
          icon="▶️", category="platform", tier=BadgeTier.BRONZE, rarity=Rarity.COMMON, xp_reward=150,
          requirement=AchievementFlagRequirement(metric="youtube_setup", target=1)),
    Badge(id="tiktok-trendsetter", name="TikTok Trendsetter", description="Use 5 trending TikTok templates",
          icon="🎵", category="platform", tier=BadgeTier.SILVER, rarity=Rarity.RARE, xp_reward=350,
          requirement=CountRequirement(metric="tiktok_trending_templates", target=5)),
    # Consistency
    Badge(id="perfect-week", name="Perfect Week", description="Stay active 7 days in a row",
          icon="📅", category="consistency", tier=BadgeTier.GOLD, rarity=Rarity.RARE, xp_reward=1000,
          requirement=StreakRequirement(metric="perfect_days", target=7)),
    # Special
    Badge(id="early-adopter", name="Early Adopter", description="One of the first 1000 creators on the platform",
          icon="🚀", category="special", tier=BadgeTier.PLATINUM, rarity=Rarity.EPIC, xp_reward=2000,
          requirement=CustomRequirement(metric="user_number", target=1000, predicate="at_most")),
    Badge(id="creator-legend", name="Creator Legend", description="Reach level 10",
          icon="🌈", category="special", tier=BadgeTier.DIAMOND, rarity=Rarity.LEGENDARY, xp_reward=5000,
          requirement=LevelRequirement(metric="user_level", target=10)),
    # Granted by achievements
    Badge(id="viral-creator", name="Viral Creator", description="Had a piece of content go viral",
          icon="🔥", category="achievement", tier=BadgeTier.GOLD, rarity=Rarity.EPIC, xp_reward=500,
          requirement=GrantOnlyRequirement()),
    Badge(id="platform-expert", name="Platform Expert", description="Mastered every platform feature",
          icon="🧠", category="achievement", tier=BadgeTier.PLATINUM, rarity=Rarity.EPIC, xp_reward=750,
          requirement=GrantOnlyRequirement()),
)}


async def check_and_award_badges(
    user_id: str,
    metric: str,
    value: Optional[float] = None,
    cascade: Optional[AwardCascade] = None
) -> list[Badge]:
    """
    Award every unearned badge whose requirement metric is `metric` and is now satisfied

    Args:
        user_id: User ID
        metric: Trigger metric name (e.g. 'content_published')
        value: Metric value; resolved from live data when omitted
        cascade: Follow-up queue; a local one is drained if omitted

    Returns:
        Badges newly awarded by this trigger (follow-up awards are not included)
    """
    candidates = [b for b in BADGES.values() if b.requirement.metric == metric]
    if not candidates:
        return []

    owns_cascade = cascade is None
    if owns_cascade:
        cascade = AwardCascade(user_id)

    earned = await queries.get_user_badge_ids(user_id)
    pending = [b for b in candidates if b.id not in earned]

    if pending and value is None:
        value = await user_metrics.get_metric_value(user_id, metric)

    awarded: list[Badge] = []
    if value is not None:
        for badge in pending:
            if not evaluate_badge_requirement(badge.requirement, value):
                continue
            try:
                if await _award_badge(user_id, badge, {"metric": metric, "value": value}, cascade):
                    awarded.append(badge)
            except Exception as e:
                award_failures_total.labels(kind="badge").inc()
                logger.error(f"Failed to award badge {badge.id} to user {user_id}: {e}", exc_info=True)

    if owns_cascade:
        await cascade.drain()
    return awarded


async def grant_badge(
    user_id: str,
    badge_id: str,
    source: str,
    cascade: Optional[AwardCascade] = None
) -> Optional[Badge]:
    """
    Award a badge directly (achievement rewards); already-earned is a no-op

    Returns:
        The badge if this call awarded it
    """
    badge = BADGES.get(badge_id)
    if badge is None:
        logger.warning(f"Unknown badge '{badge_id}' granted by {source}; ignoring")
        return None

    owns_cascade = cascade is None
    if owns_cascade:
        cascade = AwardCascade(user_id)

    result = None
    try:
        if await _award_badge(user_id, badge, {"source": source}, cascade):
            result = badge
    except Exception as e:
        award_failures_total.labels(kind="badge").inc()
        logger.error(f"Failed to grant badge {badge_id} to user {user_id}: {e}", exc_info=True)

    if owns_cascade:
        await cascade.drain()
    return result


async def _award_badge(user_id: str, badge: Badge, metadata: dict[str, Any], cascade: AwardCascade) -> bool:
    """Persist, pay out and announce one badge; False if it was already earned"""
    created = await queries.insert_user_badge(user_id, badge.id, datetime_helpers.now_local(), metadata)
    if not created:
        logger.debug(f"Badge {badge.id} already earned by user {user_id}")
        return False

    logger.info(f"User {user_id} earned badge {badge.id} ({badge.name})")
    awards_total.labels(kind="badge").inc()
    cascade.result.badges.append(badge)

    await award_xp(
        user_id, "unlock-badge",
        metadata={"reason": f"Badge: {badge.name}", "badge_id": badge.id},
        xp_override=badge.xp_reward,
        cascade=cascade,
    )
    await notify(
        user_id,
        "badge_earned",
        f"{badge.icon} New badge: {badge.name}",
        badge.description,
        {"badge_id": badge.id, "tier": badge.tier.value, "xp_reward": badge.xp_reward},
    )
    cascade.push(RewardCheck(trigger_type="badge", trigger_value=badge.id))
    return True


async def get_user_badges(user_id: str) -> list[dict[str, Any]]:
    """Earned badges joined with their catalog entries"""
    rows = await queries.get_user_badges(user_id)
    result = []
    for row in rows:
        badge = BADGES.get(row["badge_id"])
        if badge is None:
            continue
        earned = UserBadge(**row)
        result.append({"badge": badge, "earned_at": earned.earned_at, "metadata": earned.metadata})
    return result


async def get_badge_progress(user_id: str) -> list[dict[str, Any]]:
    """
    Progress toward every unearned, metric-driven badge, highest first

    Returns:
        [{'badge': Badge, 'current': float, 'target': int, 'progress': float}, ...]
    """
    earned = await queries.get_user_badge_ids(user_id)
    values: dict[str, Optional[float]] = {}
    progress = []
    for badge in BADGES.values():
        if badge.id in earned or isinstance(badge.requirement, GrantOnlyRequirement):
            continue
        metric = badge.requirement.metric
        if metric not in values:
            values[metric] = await user_metrics.get_metric_value(user_id, metric)
        current = values[metric] or 0.0
        progress.append({
            "badge": badge,
            "current": current,
            "target": badge.requirement.target,
            "progress": badge_progress(badge.requirement, current),
        })
    progress.sort(key=lambda p: p["progress"], reverse=True)
    return progress
