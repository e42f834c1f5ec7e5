"""
Gamification engine for content creators

- XP ledger and levels
- Trigger-driven badges and achievements
- Reward unlocks and activation
- Daily challenges
- Leaderboards

Awards that cause further awards go through gamification.cascade.
"""

from creator_engine.gamification.xp_system import award_xp, get_user_level, get_xp_history, get_daily_xp_progress
from creator_engine.gamification.badge_system import check_and_award_badges, grant_badge, get_user_badges, get_badge_progress
from creator_engine.gamification.achievement_system import (
    check_and_award_achievements,
    get_user_achievements,
    get_achievement_progress,
)
from creator_engine.gamification.reward_system import (
    check_and_unlock_rewards,
    claim_reward,
    apply_active_discounts,
    get_user_active_rewards,
    get_reward_progress,
)
from creator_engine.gamification.challenges import (
    generate_daily_challenges,
    update_challenge_progress,
    claim_challenge_rewards,
    get_active_challenges,
)
from creator_engine.gamification.leaderboards import get_leaderboard, get_user_leaderboard_positions
from creator_engine.gamification.streaks import record_activity_day, get_streak

__all__ = [
    "award_xp",
    "get_user_level",
    "get_xp_history",
    "get_daily_xp_progress",
    "check_and_award_badges",
    "grant_badge",
    "get_user_badges",
    "get_badge_progress",
    "check_and_award_achievements",
    "get_user_achievements",
    "get_achievement_progress",
    "check_and_unlock_rewards",
    "claim_reward",
    "apply_active_discounts",
    "get_user_active_rewards",
    "get_reward_progress",
    "generate_daily_challenges",
    "update_challenge_progress",
    "claim_challenge_rewards",
    "get_active_challenges",
    "get_leaderboard",
    "get_user_leaderboard_positions",
    "record_activity_day",
    "get_streak",
]
