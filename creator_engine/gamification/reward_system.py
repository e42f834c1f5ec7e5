"""
Reward Unlock Engine

Rewards are gated by a requirement (level, xp, streak, achievement, badge,
special). A trigger whose type matches the requirement type is compared
directly; any other trigger falls back to a full check against a fresh
snapshot of the user's state, so an already-met threshold unlocks on the
next trigger of any kind.

Activation by reward type:
- feature → unlocked feature flag
- cosmetic → user cosmetic
- template → template access grant with category list
- perk → user perk, monthly perks expire one calendar month after unlock
- content → content access grant
- discount → user discount (percentage, plan, lifetime)
"""

from typing import Any, Optional
import logging

from creator_engine.db import queries
from creator_engine.gamification.cascade import AwardCascade
from creator_engine.gamification.notifications import notify
from creator_engine.gamification.requirements import (
    evaluate_reward_requirement,
    matches_trigger,
    reward_progress,
)
from creator_engine.gamification.xp_system import award_xp, calculate_level
from creator_engine.models.gamification import (
    AchievementGate,
    BadgeGate,
    DiscountQuote,
    LevelGate,
    Reward,
    RewardTier,
    RewardType,
    StreakGate,
    UnlockedReward,
    UserState,
    XPGate,
)
from creator_engine.observability.metrics import award_failures_total, awards_total
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)


REWARDS: dict[str, Reward] = {r.id: r for r in (
    # Features
    Reward(id="advanced-analytics", name="Advanced Analytics", description="Deep insights into your content performance",
           type=RewardType.FEATURE, category="analytics", icon="📊",
           requirement=LevelGate(target=3), value={"feature": "analytics-pro"}),
    Reward(id="ai-content-ideas", name="Unlimited AI Content Ideas", description="Generate unlimited content ideas",
           type=RewardType.FEATURE, category="ai", icon="💡",
           requirement=LevelGate(target=4), value={"feature": "ai-ideas-unlimited"}),
    Reward(id="collaboration-tools", name="Collaboration Tools", description="Plan content together with other creators",
           type=RewardType.FEATURE, category="community", icon="👥",
           requirement=LevelGate(target=5), value={"feature": "collaboration"}),
    # Cosmetics
    Reward(id="dark-theme-variants", name="Dark Theme Variants", description="Extra dark themes for your dashboard",
           type=RewardType.COSMETIC, category="themes", icon="🌙",
           requirement=AchievementGate(target="theme-explorer"),
           value={"cosmetic": "themes", "items": ["midnight", "obsidian", "aurora"]}),
    Reward(id="profile-frames", name="Profile Frames", description="Decorative frames for your profile picture",
           type=RewardType.COSMETIC, category="profile", icon="🖼️",
           requirement=XPGate(target=5000), value={"cosmetic": "frames", "items": ["bronze", "silver", "gold"]}),
    Reward(id="chat-emojis", name="Exclusive Chat Emojis", description="Community-only emoji pack",
           type=RewardType.COSMETIC, category="community", icon="😎",
           requirement=BadgeGate(target="community-champion"), value={"cosmetic": "chat-emojis"}),
    # Templates
    Reward(id="premium-templates", name="Premium Template Pack", description="50 premium content templates",
           type=RewardType.TEMPLATE, category="templates", icon="📦",
           requirement=LevelGate(target=6),
           value={"templateCount": 50, "categories": ["viral", "educational", "entertainment"]}),
    Reward(id="ai-template-customizer", name="AI Template Customizer", description="Let the assistant tailor any template",
           type=RewardType.TEMPLATE, category="templates", icon="🪄",
           requirement=AchievementGate(target="template-master"), value={"categories": ["ai-customized"]}),
    # Perks
    Reward(id="priority-support", name="Priority Support", description="Jump the support queue",
           type=RewardType.PERK, category="support", icon="⚡",
           requirement=LevelGate(target=7), value={"perk": "priority-support"}),
    Reward(id="beta-features", name="Beta Features", description="Early access to new features",
           type=RewardType.PERK, category="features", icon="🧪",
           requirement=AchievementGate(target="early-adopter"), value={"perk": "betaAccess"}),
    Reward(id="monthly-coaching", name="Monthly Coaching Session", description="30 minutes with a creator coach every month",
           type=RewardType.PERK, category="coaching", icon="🎓",
           requirement=LevelGate(target=8), value={"coachingMinutes": 30, "frequency": "monthly"}),
    # Content
    Reward(id="exclusive-guides", name="Exclusive Creator Guides", description="In-depth growth guides",
           type=RewardType.CONTENT, category="education", icon="📖",
           requirement=XPGate(target=10000), value={"content": "exclusive-guides"}),
    Reward(id="masterclass-series", name="Masterclass Series", description="Video masterclasses from top creators",
           type=RewardType.CONTENT, category="education", icon="🎬",
           requirement=LevelGate(target=9), value={"content": "masterclass-series"}),
    # Discounts
    Reward(id="pro-discount-20", name="20% Off Pro", description="Lifetime 20% discount on the Pro plan",
           type=RewardType.DISCOUNT, category="billing", icon="💸",
           requirement=StreakGate(target=30), value={"percentage": 20, "planType": "pro", "lifetime": True}),
    Reward(id="studio-discount-25", name="25% Off Studio", description="Lifetime 25% discount on the Studio plan",
           type=RewardType.DISCOUNT, category="billing", icon="💎",
           requirement=LevelGate(target=10), value={"percentage": 25, "planType": "studio", "lifetime": True}),
)}


REWARD_TIERS: tuple[RewardTier, ...] = (
    RewardTier(tier=1, name="Starter", min_level=1, max_level=2, rewards=()),
    RewardTier(tier=2, name="Growth", min_level=3, max_level=5,
               rewards=("advanced-analytics", "ai-content-ideas", "collaboration-tools")),
    RewardTier(tier=3, name="Pro", min_level=6, max_level=8,
               rewards=("premium-templates", "priority-support", "monthly-coaching")),
    RewardTier(tier=4, name="Elite", min_level=9, max_level=None,
               rewards=("masterclass-series", "studio-discount-25")),
)

# Trigger types that name a requirement type differently
TRIGGER_REQUIREMENT_TYPES = {"level_up": "level"}

# Claiming pays out XP; perks and content are the types the user actively claims
CLAIMABLE_TYPES = {RewardType.PERK, RewardType.CONTENT}
CLAIM_XP = 100

MILESTONE_REWARD_DEFAULT: dict[str, Any] = {
    "name": "Milestone Bonus",
    "description": "A special reward for reaching an important milestone",
    "bonusXP": 500,
}


async def get_user_state(user_id: str) -> UserState:
    """Snapshot used for full requirement checks"""
    stats = await queries.get_user_stats(user_id)
    badge_ids = await queries.get_user_badge_ids(user_id)
    achievement_ids = await queries.get_user_achievement_ids(user_id)
    return UserState(
        user_id=user_id,
        total_xp=stats["total_xp"],
        level=max(stats["level"], calculate_level(stats["total_xp"]).level),
        streak_days=stats["streak_days"],
        badge_ids=frozenset(badge_ids),
        achievement_ids=frozenset(achievement_ids),
    )


async def check_and_unlock_rewards(
    user_id: str,
    trigger_type: str,
    trigger_value: Any,
    cascade: Optional[AwardCascade] = None
) -> list[Reward]:
    """
    Unlock every reward whose requirement is now met

    Args:
        user_id: User ID
        trigger_type: 'level_up', 'level', 'xp', 'streak', 'achievement', 'badge' or 'special'
        trigger_value: Level/XP/streak number, or the achievement/badge id
        cascade: Collects results when called from a drain

    Returns:
        Rewards newly unlocked
    """
    requirement_type = TRIGGER_REQUIREMENT_TYPES.get(trigger_type, trigger_type)
    unlocked_rows = await queries.get_unlocked_rewards(user_id)
    already = {row["reward_id"] for row in unlocked_rows}

    state: Optional[UserState] = None
    unlocked: list[Reward] = []
    for reward in REWARDS.values():
        if reward.id in already:
            continue
        try:
            if reward.requirement.type == requirement_type:
                eligible = matches_trigger(reward.requirement, trigger_value)
            else:
                if state is None:
                    state = await get_user_state(user_id)
                eligible = evaluate_reward_requirement(reward.requirement, state)
            if eligible and await unlock_reward(user_id, reward):
                unlocked.append(reward)
        except Exception as e:
            award_failures_total.labels(kind="reward").inc()
            logger.error(f"Failed to check/unlock reward {reward.id} for user {user_id}: {e}", exc_info=True)

    if cascade is not None:
        cascade.result.rewards.extend(unlocked)
    return unlocked


async def unlock_reward(user_id: str, reward: Reward) -> bool:
    """Persist, activate and announce one reward; False if it was already unlocked"""
    now = datetime_helpers.now_local()
    created = await queries.insert_unlocked_reward(user_id, reward.id, now)
    if not created:
        return False

    logger.info(f"User {user_id} unlocked reward {reward.id} ({reward.name})")
    awards_total.labels(kind="reward").inc()
    await activate_reward(user_id, reward)

    await notify(
        user_id,
        "reward_unlocked",
        f"{reward.icon or '🎁'} Reward unlocked: {reward.name}",
        reward.description,
        {
            "reward_id": reward.id,
            "reward_type": reward.type.value,
            "can_claim": reward.type in CLAIMABLE_TYPES,
        },
    )
    return True


async def activate_reward(user_id: str, reward: Reward) -> None:
    """Create the type-specific grant for an unlocked reward"""
    value = reward.value
    if reward.type == RewardType.FEATURE:
        await queries.insert_unlocked_feature(user_id, value.get("feature", reward.id), f"reward:{reward.id}")
    elif reward.type == RewardType.COSMETIC:
        await queries.insert_user_cosmetic(user_id, value.get("cosmetic", reward.id), reward.id)
    elif reward.type == RewardType.TEMPLATE:
        await queries.insert_template_access(
            user_id, reward.id, value.get("templateCount"), list(value.get("categories", []))
        )
    elif reward.type == RewardType.PERK:
        expires_at = None
        if value.get("frequency") == "monthly":
            expires_at = datetime_helpers.add_months(datetime_helpers.now_local(), 1)
        await queries.insert_user_perk(user_id, reward.id, value, expires_at)
    elif reward.type == RewardType.CONTENT:
        await queries.insert_content_access(user_id, reward.id, value)
    elif reward.type == RewardType.DISCOUNT:
        await queries.insert_user_discount(
            user_id, reward.id, int(value["percentage"]), value["planType"], bool(value.get("lifetime", False))
        )
    else:
        raise ValueError(f"Unknown reward type: {reward.type}")


async def claim_reward(user_id: str, reward_id: str) -> bool:
    """
    Claim an unlocked reward; only the first claim pays out XP

    Returns:
        True if this call performed the claim
    """
    if reward_id not in REWARDS:
        logger.warning(f"Unknown reward '{reward_id}' claimed by user {user_id}")
        return False

    claimed = await queries.mark_reward_claimed(user_id, reward_id, datetime_helpers.now_local())
    if not claimed:
        logger.debug(f"Reward {reward_id} not claimable for user {user_id} (locked or already claimed)")
        return False

    await award_xp(
        user_id, "complete-milestone",
        metadata={"reason": f"Claimed reward: {REWARDS[reward_id].name}", "reward_id": reward_id},
        xp_override=CLAIM_XP,
    )
    return True


async def get_user_active_rewards(user_id: str) -> list[dict[str, Any]]:
    """Active unlocked rewards with their catalog entries"""
    rows = await queries.get_unlocked_rewards(user_id)
    result = []
    for row in rows:
        unlocked = UnlockedReward(**row)
        reward = REWARDS.get(unlocked.reward_id)
        if reward is None or not unlocked.active:
            continue
        result.append({"reward": reward, "unlocked": unlocked})
    return result


async def get_reward_progress(user_id: str) -> list[dict[str, Any]]:
    """Progress toward every locked reward, highest first"""
    already = {row["reward_id"] for row in await queries.get_unlocked_rewards(user_id)}
    state = await get_user_state(user_id)
    progress = [
        {"reward": reward, "progress": reward_progress(reward.requirement, state)}
        for reward in REWARDS.values()
        if reward.id not in already
    ]
    progress.sort(key=lambda p: p["progress"], reverse=True)
    return progress


def get_reward_tier(level: int) -> RewardTier:
    """Tier a level belongs to"""
    for tier in REWARD_TIERS:
        if level >= tier.min_level and (tier.max_level is None or level <= tier.max_level):
            return tier
    return REWARD_TIERS[0]


def get_reward_tiers() -> tuple[RewardTier, ...]:
    return REWARD_TIERS


async def apply_active_discounts(user_id: str, plan_type: str, base_price: float) -> DiscountQuote:
    """Apply the single highest active discount for a plan; discounts do not stack"""
    discounts = await queries.get_active_discounts(user_id, plan_type)
    if not discounts:
        return DiscountQuote(original_price=base_price, final_price=base_price)

    best = max(discounts, key=lambda d: d["percentage"])
    final_price = round(base_price * (100 - best["percentage"]) / 100, 2)
    return DiscountQuote(
        original_price=base_price,
        final_price=final_price,
        discount_percentage=best["percentage"],
        reward_id=best["reward_id"],
    )


async def generate_milestone_reward(user_id: str, milestone: str, context: dict[str, Any], llm) -> dict[str, Any]:
    """
    Ask the text-generation collaborator for a one-off milestone reward

    A non-JSON answer falls back to MILESTONE_REWARD_DEFAULT; the bonus XP
    is awarded immediately either way.

    Returns:
        {'name', 'description', 'bonusXP', 'xp_gain'}
    """
    messages = [
        {
            "role": "system",
            "content": (
                "You design rewards for a content-creator platform. Reply with a JSON object "
                'with keys "name", "description" and "bonusXP" (integer between 100 and 1000).'
            ),
        },
        {"role": "user", "content": f"Milestone: {milestone}\nCreator context: {context}"},
    ]
    reward = await llm.complete_json(messages, fallback=MILESTONE_REWARD_DEFAULT, user_id=user_id)

    try:
        bonus = int(reward.get("bonusXP", MILESTONE_REWARD_DEFAULT["bonusXP"]))
    except (TypeError, ValueError):
        bonus = MILESTONE_REWARD_DEFAULT["bonusXP"]
    bonus = max(100, min(1000, bonus))

    gain = await award_xp(
        user_id, "complete-milestone",
        metadata={"reason": f"Milestone: {milestone}", "milestone": milestone},
        xp_override=bonus,
    )
    return {
        "name": str(reward.get("name") or MILESTONE_REWARD_DEFAULT["name"]),
        "description": str(reward.get("description") or MILESTONE_REWARD_DEFAULT["description"]),
        "bonusXP": bonus,
        "xp_gain": gain,
    }
