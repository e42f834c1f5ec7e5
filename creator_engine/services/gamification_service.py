"""
GamificationService - Gamification Business Logic

One entry point per user action. Awards XP, updates the daily streak,
runs the badge and achievement checks the action triggers, advances
challenges, then drains the award cascade so every follow-up award
lands before the request returns.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from creator_engine.gamification import (
    award_xp,
    check_and_award_badges,
    check_and_award_achievements,
    update_challenge_progress,
    generate_daily_challenges,
    get_active_challenges,
    get_user_level,
    get_streak,
    record_activity_day,
)
from creator_engine.gamification.cascade import AwardCascade, BadgeCheck, RewardCheck
from creator_engine.models.gamification import Achievement, Badge, DailyChallenge, Reward, XPGain
from creator_engine.observability.metrics import award_failures_total

logger = logging.getLogger(__name__)

# Badge metric advanced by each action
ACTION_METRICS: dict[str, str] = {
    "publish-content": "content_published",
    "create-template": "templates_created",
    "ai-interaction": "ai_interactions",
    "help-creator": "creators_helped",
}


@dataclass
class ActionOutcome:
    """Everything one action produced, for "you just unlocked X" feedback"""
    action_id: str
    xp_gain: Optional[XPGain] = None
    xp_gains: list[XPGain] = field(default_factory=list)
    badges: list[Badge] = field(default_factory=list)
    achievements: list[Achievement] = field(default_factory=list)
    rewards: list[Reward] = field(default_factory=list)
    completed_challenges: list[DailyChallenge] = field(default_factory=list)
    streak: Optional[dict[str, Any]] = None

    @property
    def total_xp(self) -> int:
        return sum(gain.xp_amount for gain in self.xp_gains)

    @property
    def leveled_up_to(self) -> Optional[int]:
        levels = [gain.leveled_up_to for gain in self.xp_gains if gain.leveled_up_to]
        return max(levels) if levels else None

    def messages(self) -> list[str]:
        """Short user-facing lines describing the outcome"""
        lines = []
        if self.total_xp:
            lines.append(f"+{self.total_xp} XP")
        if self.leveled_up_to:
            lines.append(f"🎉 Level up! You reached level {self.leveled_up_to}")
        if self.streak and self.streak.get("extended"):
            lines.append(self.streak["message"])
        lines.extend(f"{badge.icon} Badge earned: {badge.name}" for badge in self.badges)
        lines.extend(f"🏆 Achievement unlocked: {a.name}" for a in self.achievements if not a.hidden)
        lines.extend(f"🎁 Reward unlocked: {reward.name}" for reward in self.rewards)
        lines.extend(f"✅ Challenge complete: {c.title}" for c in self.completed_challenges)
        return lines


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - Routing user actions through the XP ledger and award checks
    - Daily streak tracking
    - Challenge generation and progress
    - Dashboard summary
    """

    def __init__(self, llm=None):
        """
        Initialize GamificationService.

        Args:
            llm: LLMClient used to personalize challenge text; templates
                are used verbatim when omitted
        """
        self.llm = llm
        logger.debug("GamificationService initialized")

    async def record_action(
        self,
        user_id: str,
        action_id: str,
        metrics: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None
    ) -> ActionOutcome:
        """
        Process one user action end to end

        Args:
            user_id: User ID
            action_id: XPAction id (e.g. 'publish-content')
            metrics: Observed metric values for achievement checks
                (e.g. {'content_views': 12000})
            metadata: Stored on the XP transaction

        Returns:
            ActionOutcome with every award made, including cascaded ones
        """
        cascade = AwardCascade(user_id)
        outcome = ActionOutcome(action_id=action_id)

        outcome.xp_gain = await award_xp(user_id, action_id, metadata=metadata, cascade=cascade)

        # Side effects of the action are best-effort; one failing never loses the others
        if action_id == "daily-login":
            try:
                outcome.streak = await self._record_login_streak(user_id, cascade)
            except Exception as e:
                award_failures_total.labels(kind="streak").inc()
                logger.error(f"Streak update failed for user {user_id}: {e}", exc_info=True)

        metric = ACTION_METRICS.get(action_id)
        if metric:
            try:
                await check_and_award_badges(user_id, metric, cascade=cascade)
            except Exception as e:
                award_failures_total.labels(kind="badge").inc()
                logger.error(f"Badge check for {metric} failed for user {user_id}: {e}", exc_info=True)

        try:
            await check_and_award_achievements(user_id, metrics or {}, cascade=cascade)
        except Exception as e:
            award_failures_total.labels(kind="achievement").inc()
            logger.error(f"Achievement check failed for user {user_id}: {e}", exc_info=True)

        try:
            outcome.completed_challenges = await update_challenge_progress(user_id, action_type=action_id)
        except Exception as e:
            award_failures_total.labels(kind="challenge").inc()
            logger.error(f"Challenge progress update failed for user {user_id}: {e}", exc_info=True)

        result = await cascade.drain()
        outcome.xp_gains = list(result.xp_gains)
        outcome.badges = list(result.badges)
        outcome.achievements = list(result.achievements)
        outcome.rewards = list(result.rewards)

        logger.info(
            f"Action {action_id} for user {user_id}: +{outcome.total_xp} XP, "
            f"{len(outcome.badges)} badges, {len(outcome.achievements)} achievements, "
            f"{len(outcome.rewards)} rewards, {len(outcome.completed_challenges)} challenges"
        )
        return outcome

    async def _record_login_streak(self, user_id: str, cascade: AwardCascade) -> dict[str, Any]:
        streak = await record_activity_day(user_id)
        days = streak["current_streak"]

        if streak["extended"] and days > 1:
            await award_xp(
                user_id, "streak-bonus",
                metadata={"reason": f"{days}-day streak", "streak_days": days},
                cascade=cascade,
            )
        cascade.push(BadgeCheck(metric="perfect_days", value=days))
        cascade.push(RewardCheck(trigger_type="streak", trigger_value=days))
        return streak

    async def start_day(self, user_id: str) -> list[DailyChallenge]:
        """Today's challenges, generating them on first call"""
        active = await get_active_challenges(user_id)
        if active:
            return active
        return await generate_daily_challenges(user_id, llm=self.llm)

    async def get_dashboard(self, user_id: str) -> dict[str, Any]:
        """Level, streak and active challenges in one call"""
        level = await get_user_level(user_id)
        streak = await get_streak(user_id)
        challenges = await get_active_challenges(user_id)
        return {
            "level": level.model_dump(),
            "streak": streak,
            "challenges": [c.model_dump() for c in challenges],
        }
