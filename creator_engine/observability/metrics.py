"""
Prometheus metrics for the progression engine and onboarding.

- Gamification: XP awarded, awards by kind, skipped awards
- Onboarding: step transitions, re-ask warnings
- Conversations: processed turns
"""

import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# =============================================================================
# Gamification Metrics
# =============================================================================

xp_awarded_total = Counter(
    "creator_xp_awarded_total",
    "Total XP awarded",
    ["category"],
)

awards_total = Counter(
    "creator_awards_total",
    "Catalog awards granted",
    ["kind"],  # kind: badge/achievement/reward/level_up/challenge
)

xp_award_skipped_total = Counter(
    "creator_xp_award_skipped_total",
    "XP awards skipped",
    ["reason"],  # reason: unknown_action/daily_limit/cooldown
)

award_failures_total = Counter(
    "creator_award_failures_total",
    "Per-entry award failures that were logged and skipped",
    ["kind"],
)

cascade_dropped_total = Counter(
    "creator_cascade_dropped_total",
    "Follow-up award checks dropped at the depth bound",
)

# =============================================================================
# Conversation Metrics
# =============================================================================

onboarding_transitions_total = Counter(
    "creator_onboarding_transitions_total",
    "Onboarding step transitions",
    ["from_step", "to_step"],
)

onboarding_reask_total = Counter(
    "creator_onboarding_reask_total",
    "Assistant replies that asked an already-answered onboarding step",
    ["step"],
)

conversation_turns_total = Counter(
    "creator_conversation_turns_total",
    "Processed chat turns",
    ["mode", "status"],  # mode: onboarding/assistant, status: success/error/cancelled
)
