"""
XP Ledger and Leveling

Appends XP transactions, enforces per-action daily limits and cooldowns,
applies bonus multipliers and derives level from cumulative XP.

Bonus multipliers (additive, percentages of the base reward):
- Streak: 3+ days +5%, 7+ +10%, 14+ +20%, 30+ +30%
- Focus: 5+ same-category actions in the trailing 24h, +15%
- Time of day: 05:00-09:00 or 21:00-24:00 local, +10%
- Weekend: Saturday/Sunday, +20%

bonus = floor(base * (multiplier - 1))
"""

from datetime import timedelta
from typing import Any, Optional
import logging

from creator_engine.config import LEVEL_UP_ACTION_ID
from creator_engine.db import queries
from creator_engine.gamification.cascade import AwardCascade, BadgeCheck, RewardCheck
from creator_engine.gamification.notifications import notify
from creator_engine.models.gamification import (
    Level,
    UserLevel,
    XPAction,
    XPCategory,
    XPGain,
    XPTransaction,
)
from creator_engine.observability.metrics import awards_total, xp_award_skipped_total, xp_awarded_total
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)


def _action(id: str, name: str, category: XPCategory, xp: int, daily_limit: Optional[int] = None,
            cooldown_minutes: Optional[int] = None) -> XPAction:
    return XPAction(id=id, name=name, category=category, xp_reward=xp,
                    daily_limit=daily_limit, cooldown_minutes=cooldown_minutes)


XP_ACTIONS: dict[str, XPAction] = {a.id: a for a in (
    # Content
    _action("complete-task", "Complete a Task", XPCategory.CONTENT, 50),
    _action("publish-content", "Publish Content", XPCategory.CONTENT, 100, daily_limit=3),
    _action("schedule-content", "Schedule Content", XPCategory.CONTENT, 25),
    _action("create-template", "Create a Template", XPCategory.CONTENT, 75),
    # Engagement
    _action("daily-login", "Daily Login", XPCategory.ENGAGEMENT, 10, daily_limit=1),
    _action("weekly-review", "Weekly Review", XPCategory.ENGAGEMENT, 150, cooldown_minutes=7 * 24 * 60),
    _action("ai-interaction", "AI Assistant Interaction", XPCategory.ENGAGEMENT, 5, daily_limit=20),
    # Consistency
    _action("streak-bonus", "Streak Bonus", XPCategory.CONSISTENCY, 20, daily_limit=1),
    # Learning
    _action("complete-tutorial", "Complete a Tutorial", XPCategory.LEARNING, 100),
    _action("read-guide", "Read a Guide", XPCategory.LEARNING, 25, daily_limit=5),
    _action("watch-webinar", "Watch a Webinar", XPCategory.LEARNING, 200),
    _action("take-quiz", "Take a Quiz", XPCategory.LEARNING, 50),
    # Community
    _action("share-achievement", "Share an Achievement", XPCategory.COMMUNITY, 30, daily_limit=3),
    _action("help-creator", "Help Another Creator", XPCategory.COMMUNITY, 100),
    _action("join-challenge", "Join a Challenge", XPCategory.COMMUNITY, 50),
    # Achievement payouts (amount usually overridden by the award)
    _action("unlock-badge", "Unlock a Badge", XPCategory.ACHIEVEMENT, 200),
    _action("complete-milestone", "Complete a Milestone", XPCategory.ACHIEVEMENT, 500),
    _action("complete-challenge", "Complete a Challenge", XPCategory.ACHIEVEMENT, 100),
    _action("perfect-week", "Perfect Week", XPCategory.ACHIEVEMENT, 1000),
)}


LEVELS: tuple[Level, ...] = (
    Level(level=1, title="Aspiring Creator", required_xp=0, perks=("Basic Templates", "AI Assistant"), badge="🌱"),
    Level(level=2, title="Rising Star", required_xp=500, perks=("Custom Templates", "Advanced AI"), badge="⭐"),
    Level(level=3, title="Content Creator", required_xp=1500, perks=("Analytics Access", "Priority Support"), badge="🎬"),
    Level(level=4, title="Established Creator", required_xp=3000, perks=("Collaboration Tools", "Beta Features"), badge="🏆"),
    Level(level=5, title="Professional Creator", required_xp=5000, perks=("Advanced Analytics", "Custom Branding"), badge="💎"),
    Level(level=6, title="Influencer", required_xp=8000, perks=("VIP Support", "Exclusive Content"), badge="🌟"),
    Level(level=7, title="Content Expert", required_xp=12000, perks=("Mentorship Program", "Speaking Opportunities"), badge="🎯"),
    Level(level=8, title="Platform Leader", required_xp=17000, perks=("Advisory Board", "Revenue Share"), badge="👑"),
    Level(level=9, title="Industry Pioneer", required_xp=25000, perks=("Custom Features", "Partnership Opportunities"), badge="🚀"),
    Level(level=10, title="Creator Legend", required_xp=35000, perks=("Lifetime Benefits", "Legacy Badge"), badge="🌈"),
)

MAX_LEVEL = LEVELS[-1].level


# ==========================================
# Levels
# ==========================================

def calculate_level(total_xp: int) -> Level:
    """Highest level whose required XP is met"""
    for level in reversed(LEVELS):
        if total_xp >= level.required_xp:
            return level
    return LEVELS[0]


def level_progress(total_xp: int) -> UserLevel:
    """
    Level plus percentage progress toward the next one

    Returns:
        UserLevel with progress in [0, 100]; 100 at max level
    """
    level = calculate_level(total_xp)
    if level.level >= MAX_LEVEL:
        progress = 100.0
    else:
        next_level = LEVELS[level.level]
        span = next_level.required_xp - level.required_xp
        progress = round(max(0.0, min(100.0, (total_xp - level.required_xp) * 100.0 / span)), 1)
    return UserLevel(**level.model_dump(), current_xp=total_xp, progress=progress)


async def get_user_level(user_id: str) -> UserLevel:
    """User's current level with progress"""
    stats = await queries.get_user_stats(user_id)
    return level_progress(stats["total_xp"])


def perk_feature_id(level: int, perk: str) -> str:
    """Feature id for a level perk, e.g. level-3-analytics-access"""
    slug = "-".join(perk.lower().split())
    return f"level-{level}-{slug}"


# ==========================================
# Multipliers
# ==========================================

def streak_bonus_percent(streak_days: int) -> int:
    if streak_days >= 30:
        return 30
    if streak_days >= 14:
        return 20
    if streak_days >= 7:
        return 10
    if streak_days >= 3:
        return 5
    return 0


def time_of_day_bonus_percent(hour: int) -> int:
    """Early-morning (05-09) and late-evening (21-24) bonus"""
    return 10 if 5 <= hour < 9 or 21 <= hour < 24 else 0


async def calculate_bonus_percent(user_id: str, action: XPAction, streak_days: int) -> int:
    """Sum of every bonus that applies right now, as a whole percentage"""
    now = datetime_helpers.now_local()
    percent = streak_bonus_percent(streak_days)

    recent_same_category = await queries.count_xp_transactions(
        user_id, category=action.category.value, since=now - timedelta(hours=24)
    )
    if recent_same_category >= 5:
        percent += 15

    percent += time_of_day_bonus_percent(now.hour)
    if datetime_helpers.is_weekend(now):
        percent += 20
    return percent


# ==========================================
# Awards
# ==========================================

async def _limit_reached(user_id: str, action: XPAction) -> Optional[str]:
    """Reason string if the daily limit or cooldown blocks this award"""
    now = datetime_helpers.now_local()

    if action.daily_limit is not None:
        today_count = await queries.count_xp_transactions(
            user_id, action_id=action.id, since=datetime_helpers.start_of_day(now)
        )
        if today_count >= action.daily_limit:
            return "daily_limit"

    if action.cooldown_minutes is not None:
        last_at = await queries.get_last_xp_transaction_time(user_id, action.id)
        if last_at is not None and now - last_at < timedelta(minutes=action.cooldown_minutes):
            return "cooldown"

    return None


async def award_xp(
    user_id: str,
    action_id: str,
    metadata: Optional[dict[str, Any]] = None,
    xp_override: Optional[int] = None,
    cascade: Optional[AwardCascade] = None
) -> Optional[XPGain]:
    """
    Award XP for a catalog action

    Args:
        user_id: User ID
        action_id: XPAction id
        metadata: Stored on the transaction; 'reason' overrides the display reason
        xp_override: Base amount to use instead of the catalog reward
            (badge, achievement and challenge payouts)
        cascade: Queue for level-up follow-ups; a local one is drained if omitted

    Returns:
        XPGain, or None when the action is unknown or a limit/cooldown applies
    """
    action = XP_ACTIONS.get(action_id)
    if action is None:
        logger.error(f"Unknown XP action '{action_id}' for user {user_id}; no XP awarded")
        xp_award_skipped_total.labels(reason="unknown_action").inc()
        return None

    blocked = await _limit_reached(user_id, action)
    if blocked:
        logger.debug(f"XP for {action_id} blocked by {blocked} for user {user_id}")
        xp_award_skipped_total.labels(reason=blocked).inc()
        return None

    owns_cascade = cascade is None
    if owns_cascade:
        cascade = AwardCascade(user_id)

    stats = await queries.get_user_stats(user_id)
    base_xp = action.xp_reward if xp_override is None else xp_override
    bonus_percent = await calculate_bonus_percent(user_id, action, stats["streak_days"])
    bonus_xp = base_xp * bonus_percent // 100
    total = base_xp + bonus_xp
    now = datetime_helpers.now_local()

    old_level = calculate_level(stats["total_xp"]).level
    await queries.add_xp_transaction(
        user_id, action.id, base_xp, bonus_xp, action.category.value, now, metadata
    )
    new_total = await queries.increment_user_xp(user_id, total)
    new_level = calculate_level(new_total).level
    xp_awarded_total.labels(category=action.category.value).inc(total)

    logger.info(
        f"Awarded {total} XP ({base_xp} + {bonus_xp} bonus) to user {user_id} for {action.id}. "
        f"Total: {new_total} XP, Level: {new_level}"
    )

    gain = XPGain(
        action_id=action.id,
        xp_amount=total,
        bonus_xp=bonus_xp or None,
        reason=(metadata or {}).get("reason", action.name),
        timestamp=now,
        leveled_up_to=new_level if new_level > old_level else None,
    )
    cascade.result.xp_gains.append(gain)

    if new_level > old_level:
        await queries.update_user_level(user_id, new_level)
        for level_number in range(old_level + 1, new_level + 1):
            await handle_level_up(user_id, LEVELS[level_number - 1], cascade)

    if owns_cascade:
        await cascade.drain()
    return gain


async def handle_level_up(user_id: str, level: Level, cascade: AwardCascade) -> bool:
    """
    One-time effects of reaching a level

    The level-up record is insert-if-absent, so each threshold fires once
    even if several awards race past it.

    Returns:
        True if this call performed the level-up
    """
    now = datetime_helpers.now_local()
    created = await queries.insert_user_achievement(
        user_id, f"level-{level.level}", now, type="level_up", metadata={"title": level.title}
    )
    if not created:
        return False

    logger.info(f"User {user_id} reached level {level.level} ({level.title})")
    awards_total.labels(kind="level_up").inc()

    await award_xp(
        user_id, LEVEL_UP_ACTION_ID,
        metadata={"reason": f"Reached level {level.level}", "level": level.level},
        cascade=cascade,
    )

    await notify(
        user_id,
        "level_up",
        f"{level.badge} Level {level.level}: {level.title}",
        f"You reached {level.title}! New perks: {', '.join(level.perks)}",
        {"level": level.level, "title": level.title, "perks": list(level.perks)},
    )

    for perk in level.perks:
        try:
            await queries.insert_unlocked_feature(user_id, perk_feature_id(level.level, perk), "level_up")
        except Exception as e:
            logger.error(f"Failed to unlock perk '{perk}' for user {user_id}: {e}", exc_info=True)

    cascade.push(BadgeCheck(metric="user_level", value=level.level))
    cascade.push(RewardCheck(trigger_type="level_up", trigger_value=level.level))
    return True


# ==========================================
# History
# ==========================================

async def get_xp_history(user_id: str, days: int = 30) -> list[XPTransaction]:
    """Newest-first transactions from the last `days` days (max 100)"""
    since = datetime_helpers.now_local() - timedelta(days=days)
    rows = await queries.get_xp_transactions(user_id, since=since, limit=100)
    return [XPTransaction(**row) for row in rows]


async def get_daily_xp_progress(user_id: str) -> dict[str, Any]:
    """
    XP earned today and remaining allowance for limited actions

    Returns:
        {
            'xp_today': int,
            'limited_actions': [{'action_id', 'name', 'used', 'limit', 'remaining'}, ...]
        }
    """
    today = datetime_helpers.start_of_day(datetime_helpers.now_local())
    xp_today = await queries.sum_xp_since(user_id, today)

    limited = []
    for action in XP_ACTIONS.values():
        if action.daily_limit is None:
            continue
        used = await queries.count_xp_transactions(user_id, action_id=action.id, since=today)
        limited.append({
            "action_id": action.id,
            "name": action.name,
            "used": used,
            "limit": action.daily_limit,
            "remaining": max(0, action.daily_limit - used),
        })

    return {"xp_today": xp_today, "limited_actions": limited}
