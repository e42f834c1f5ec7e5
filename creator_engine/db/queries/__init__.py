"""
Database queries - single import surface for the engine.

Callers do `from creator_engine.db import queries` and call `queries.<fn>`,
so the whole persistence collaborator can be swapped in one place.

Module organization:
- gamification.py: user stats, XP ledger, badges, achievements, unlock records, notifications
- rewards.py: unlocked rewards and their activation grants
- metrics.py: source-table aggregates for badges, achievements and challenges
- challenges.py: per-user challenge rows
- leaderboard.py: ranked aggregates and snapshots
- conversation.py: AI conversation records
- user.py: user profiles
"""

# Stats, ledger, badges, achievements
from creator_engine.db.queries.gamification import (
    get_user_stats,
    increment_user_xp,
    update_user_level,
    update_user_streak,
    add_xp_transaction,
    count_xp_transactions,
    get_last_xp_transaction_time,
    get_xp_transactions,
    sum_xp_since,
    get_user_badges,
    get_user_badge_ids,
    insert_user_badge,
    get_user_achievements,
    get_user_achievement_ids,
    insert_user_achievement,
    count_achievement_holders,
    insert_user_title,
    insert_unlocked_feature,
    insert_user_cosmetic,
    insert_notification,
)

# Rewards
from creator_engine.db.queries.rewards import (
    get_unlocked_rewards,
    insert_unlocked_reward,
    mark_reward_claimed,
    insert_template_access,
    insert_user_perk,
    insert_content_access,
    insert_user_discount,
    get_active_discounts,
)

# Metric sources
from creator_engine.db.queries.metrics import (
    count_published_content,
    count_distinct_content_days,
    count_templates,
    count_activity_events,
    count_completed_tasks,
    get_task_completion_rate,
    get_registration_rank,
)

# Challenges
from creator_engine.db.queries.challenges import (
    insert_challenge,
    get_recent_template_ids,
    get_challenges,
    get_challenge,
    update_challenge_progress,
    mark_challenge_claimed,
    set_challenge_status,
    expire_challenges,
)

# Leaderboards
from creator_engine.db.queries.leaderboard import (
    get_xp_totals,
    get_badge_counts,
    get_achievement_points,
    get_content_counts,
    get_activity_counts,
    get_leaderboard_snapshot,
    save_leaderboard_snapshot,
)

# Conversations
from creator_engine.db.queries.conversation import (
    get_conversation,
    upsert_conversation,
    delete_conversation,
    get_user_conversations,
)

# Users
from creator_engine.db.queries.user import (
    get_user,
    get_verified_user_ids,
    save_onboarding_profile,
)
