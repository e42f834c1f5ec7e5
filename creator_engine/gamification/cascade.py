"""
Award cascade work queue

An award can cause further awards: a level-up may earn a level badge, an
achievement may grant a badge, any award may unlock a reward. Instead of
calling each other recursively, award paths push follow-up checks onto an
AwardCascade and the cascade drains them in FIFO order. Every follow-up is
one level deeper than the item that produced it; anything beyond
MAX_CASCADE_DEPTH is logged and dropped, so a catalog cycle cannot loop.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from creator_engine.config import MAX_CASCADE_DEPTH
from creator_engine.observability.metrics import award_failures_total, cascade_dropped_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BadgeCheck:
    """Evaluate badges whose requirement metric matches"""
    metric: str
    value: Optional[float] = None


@dataclass(frozen=True)
class BadgeGrant:
    """Award a specific badge (already-earned is still a no-op)"""
    badge_id: str
    source: str


@dataclass(frozen=True)
class AchievementCheck:
    metrics: tuple[tuple[str, float], ...]


@dataclass(frozen=True)
class RewardCheck:
    trigger_type: str
    trigger_value: Any


FollowUp = Union[BadgeCheck, BadgeGrant, AchievementCheck, RewardCheck]
FOLLOW_UP_TYPES = (BadgeCheck, BadgeGrant, AchievementCheck, RewardCheck)


@dataclass
class CascadeResult:
    """Everything awarded while draining one cascade"""
    xp_gains: list = field(default_factory=list)
    badges: list = field(default_factory=list)
    achievements: list = field(default_factory=list)
    rewards: list = field(default_factory=list)
    dropped: int = 0
    failed: int = 0


class AwardCascade:
    """Per-request queue of follow-up award checks for one user"""

    def __init__(self, user_id: str, max_depth: int = MAX_CASCADE_DEPTH):
        self.user_id = user_id
        self.max_depth = max_depth
        self.depth = 0
        self.result = CascadeResult()
        self._queue: deque[tuple[int, FollowUp]] = deque()

    def push(self, follow_up: FollowUp) -> bool:
        """
        Enqueue a follow-up one level below the item currently being processed

        Returns:
            False if the depth bound dropped it
        """
        if not isinstance(follow_up, FOLLOW_UP_TYPES):
            raise TypeError(f"Unknown follow-up: {follow_up!r}")
        depth = self.depth + 1
        if depth > self.max_depth:
            logger.warning(
                f"Cascade depth {depth} exceeds {self.max_depth} for user {self.user_id}; "
                f"dropping {follow_up}"
            )
            cascade_dropped_total.inc()
            self.result.dropped += 1
            return False
        self._queue.append((depth, follow_up))
        return True

    def __len__(self) -> int:
        return len(self._queue)

    async def drain(self) -> CascadeResult:
        """
        Process queued follow-ups (and any they enqueue) until the queue is empty

        A follow-up that fails is logged and skipped; the rest still run.
        """
        while self._queue:
            self.depth, item = self._queue.popleft()
            try:
                await self._dispatch(item)
            except Exception as e:
                award_failures_total.labels(kind="cascade").inc()
                self.result.failed += 1
                logger.error(f"Follow-up {item} failed for user {self.user_id}: {e}", exc_info=True)

        self.depth = 0
        return self.result

    async def _dispatch(self, item: FollowUp) -> None:
        # Handlers import this module, so resolve them at call time
        from creator_engine.gamification import achievement_system, badge_system, reward_system

        if isinstance(item, BadgeCheck):
            await badge_system.check_and_award_badges(self.user_id, item.metric, item.value, cascade=self)
        elif isinstance(item, BadgeGrant):
            await badge_system.grant_badge(self.user_id, item.badge_id, item.source, cascade=self)
        elif isinstance(item, AchievementCheck):
            await achievement_system.check_and_award_achievements(self.user_id, dict(item.metrics), cascade=self)
        else:
            await reward_system.check_and_unlock_rewards(
                self.user_id, item.trigger_type, item.trigger_value, cascade=self
            )
