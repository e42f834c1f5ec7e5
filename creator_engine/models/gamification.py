"""Gamification models: catalogs, requirement variants, per-user records"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ==========================================
# XP Ledger
# ==========================================

class XPCategory(str, Enum):
    """Action categories; the focus bonus counts actions per category"""
    CONTENT = "content"
    ENGAGEMENT = "engagement"
    LEARNING = "learning"
    CONSISTENCY = "consistency"
    COMMUNITY = "community"
    ACHIEVEMENT = "achievement"


class XPAction(BaseModel):
    """Catalog entry for an XP-earning action"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: XPCategory
    xp_reward: int
    daily_limit: Optional[int] = None
    cooldown_minutes: Optional[int] = None


class XPTransaction(BaseModel):
    """Append-only ledger row"""
    user_id: str
    action_id: str
    base_xp: int
    bonus_xp: int
    total_xp: int
    category: XPCategory
    created_at: datetime
    metadata: Optional[dict[str, Any]] = None


class XPGain(BaseModel):
    """Result of a successful award"""
    action_id: str
    xp_amount: int
    bonus_xp: Optional[int] = None
    reason: str
    timestamp: datetime
    leveled_up_to: Optional[int] = None


class Level(BaseModel):
    """Row of the static level table"""
    model_config = ConfigDict(frozen=True)

    level: int
    title: str
    required_xp: int
    perks: tuple[str, ...]
    badge: str


class UserLevel(Level):
    """Level plus the user's position inside it"""
    current_xp: int
    progress: float


# ==========================================
# Badge requirement variants
# ==========================================

class CountRequirement(BaseModel):
    type: Literal["count"] = "count"
    metric: str
    target: int


class StreakRequirement(BaseModel):
    type: Literal["streak"] = "streak"
    metric: str
    target: int


class LevelRequirement(BaseModel):
    type: Literal["level"] = "level"
    metric: str = "user_level"
    target: int


class AchievementFlagRequirement(BaseModel):
    """Binary flag such as 'youtube channel connected'"""
    type: Literal["achievement"] = "achievement"
    metric: str
    target: int = 1


class CustomRequirement(BaseModel):
    """Named predicate registered in gamification.requirements"""
    type: Literal["custom"] = "custom"
    metric: str
    target: int
    predicate: str


class GrantOnlyRequirement(BaseModel):
    """Badge that is only ever granted by another award, never by a metric trigger"""
    type: Literal["grant"] = "grant"
    metric: str = ""


BadgeRequirement = Annotated[
    Union[
        CountRequirement,
        StreakRequirement,
        LevelRequirement,
        AchievementFlagRequirement,
        CustomRequirement,
        GrantOnlyRequirement,
    ],
    Field(discriminator="type"),
]


class BadgeTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMOND = "diamond"


class Rarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class Badge(BaseModel):
    """Badge catalog entry"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    icon: str
    category: str
    tier: BadgeTier
    requirement: BadgeRequirement
    rarity: Rarity
    xp_reward: int


class UserBadge(BaseModel):
    """User's earned badge"""
    user_id: str
    badge_id: str
    earned_at: datetime
    metadata: Optional[dict] = None


# ==========================================
# Achievement requirement variants
# ==========================================

class ConditionOperator(str, Enum):
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class Condition(BaseModel):
    """One named comparison; `upper` is only used by BETWEEN (inclusive)"""
    metric: str
    operator: ConditionOperator
    value: float
    upper: Optional[float] = None
    timeframe: Optional[Literal["daily", "weekly", "monthly", "all-time"]] = None


class MilestoneRequirement(BaseModel):
    type: Literal["milestone"] = "milestone"
    conditions: list[Condition]


class CumulativeRequirement(BaseModel):
    """Conditions evaluated against time-windowed aggregates"""
    type: Literal["cumulative"] = "cumulative"
    conditions: list[Condition]


class UniqueRequirement(BaseModel):
    """Milestone that only the first user to reach it can hold"""
    type: Literal["unique"] = "unique"
    conditions: list[Condition]


class PerfectRequirement(BaseModel):
    """Every condition must match its target exactly"""
    type: Literal["perfect"] = "perfect"
    conditions: list[Condition]


class SpecialRequirement(BaseModel):
    """Conditions over values produced by a named resolver"""
    type: Literal["special"] = "special"
    resolver: str
    conditions: list[Condition]


AchievementRequirement = Annotated[
    Union[
        MilestoneRequirement,
        CumulativeRequirement,
        UniqueRequirement,
        PerfectRequirement,
        SpecialRequirement,
    ],
    Field(discriminator="type"),
]


class AchievementReward(BaseModel):
    type: Literal["xp", "badge", "title", "feature", "cosmetic"]
    value: Union[int, str]


class Achievement(BaseModel):
    """Achievement catalog entry"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    icon: str
    category: str
    points: int
    requirement: AchievementRequirement
    rewards: tuple[AchievementReward, ...]
    hidden: bool = False


class UserAchievement(BaseModel):
    """User's earned achievement (also used for level-up and challenge records)"""
    user_id: str
    achievement_id: str
    type: str = "achievement"
    earned_at: datetime
    metadata: Optional[dict] = None


# ==========================================
# Reward requirement variants
# ==========================================

class LevelGate(BaseModel):
    type: Literal["level"] = "level"
    target: int


class XPGate(BaseModel):
    type: Literal["xp"] = "xp"
    target: int


class StreakGate(BaseModel):
    type: Literal["streak"] = "streak"
    target: int


class AchievementGate(BaseModel):
    type: Literal["achievement"] = "achievement"
    target: str


class BadgeGate(BaseModel):
    type: Literal["badge"] = "badge"
    target: str


class SpecialGate(BaseModel):
    """Unlocked only by an explicit 'special' trigger carrying the same target"""
    type: Literal["special"] = "special"
    target: str


RewardRequirement = Annotated[
    Union[LevelGate, XPGate, StreakGate, AchievementGate, BadgeGate, SpecialGate],
    Field(discriminator="type"),
]


class RewardType(str, Enum):
    FEATURE = "feature"
    COSMETIC = "cosmetic"
    TEMPLATE = "template"
    PERK = "perk"
    CONTENT = "content"
    DISCOUNT = "discount"


class Reward(BaseModel):
    """Reward catalog entry; `value` is a type-specific payload"""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str
    type: RewardType
    category: str
    requirement: RewardRequirement
    value: dict[str, Any]
    icon: Optional[str] = None


class UnlockedReward(BaseModel):
    user_id: str
    reward_id: str
    unlocked_at: datetime
    claimed_at: Optional[datetime] = None
    active: bool = True


class RewardTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: int
    name: str
    min_level: int
    max_level: Optional[int] = None
    rewards: tuple[str, ...]


class DiscountQuote(BaseModel):
    """Price after the single best active discount"""
    original_price: float
    final_price: float
    discount_percentage: int = 0
    reward_id: Optional[str] = None


class UserState(BaseModel):
    """Snapshot of everything a reward requirement can depend on"""
    user_id: str
    total_xp: int = 0
    level: int = 1
    streak_days: int = 0
    badge_ids: frozenset[str] = frozenset()
    achievement_ids: frozenset[str] = frozenset()


# ==========================================
# Challenges
# ==========================================

class ChallengeRequirement(BaseModel):
    """
    task: completed tasks since the challenge was created
    action: XP transactions for the named action since creation
    metric: stats snapshot (e.g. 'streak')
    time: tasks completed before local hour HH, target 'before-HH'
    """
    type: Literal["task", "action", "metric", "time"]
    target: str
    count: int


class ChallengeReward(BaseModel):
    type: Literal["xp", "badge", "feature"]
    value: Union[int, str]


class ChallengeTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    type: Literal["daily", "weekly", "special"]
    category: str
    difficulty: Literal["easy", "medium", "hard"]
    requirements: tuple[ChallengeRequirement, ...]
    rewards: tuple[ChallengeReward, ...]


class ChallengeStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    ABANDONED = "abandoned"


class DailyChallenge(BaseModel):
    """Per-user challenge instance"""
    id: str
    user_id: str
    template_id: str
    title: str
    description: str
    type: str
    category: str
    difficulty: str
    requirements: list[ChallengeRequirement]
    rewards: list[ChallengeReward]
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    progress: int = 0
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None


# ==========================================
# Leaderboards
# ==========================================

class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    score: float
    level: int = 1
    badge_count: Optional[int] = None
    achievement_count: Optional[int] = None
    rank_change: Optional[int] = None


class Leaderboard(BaseModel):
    type: str
    timeframe: str
    name: str
    entries: list[LeaderboardEntry]
    total_participants: int = 0
    generated_at: datetime


class LeaderboardPosition(BaseModel):
    type: str
    timeframe: str
    name: str
    rank: int
    score: float
    total_participants: int
    percentile: float
