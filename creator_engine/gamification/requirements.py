"""
Requirement evaluation

Each requirement variant in models.gamification has exactly one pure
evaluator here. The registries are checked against the variant unions at
import time, so adding a variant without an evaluator fails immediately.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, get_args

from creator_engine.models.gamification import (
    AchievementFlagRequirement,
    AchievementGate,
    AchievementRequirement,
    BadgeGate,
    BadgeRequirement,
    Condition,
    ConditionOperator,
    CountRequirement,
    CumulativeRequirement,
    CustomRequirement,
    GrantOnlyRequirement,
    LevelGate,
    LevelRequirement,
    MilestoneRequirement,
    PerfectRequirement,
    RewardRequirement,
    SpecialGate,
    SpecialRequirement,
    StreakGate,
    StreakRequirement,
    UniqueRequirement,
    UserState,
    XPGate,
)


# ==========================================
# Conditions
# ==========================================

def compare(condition: Condition, value: float) -> bool:
    """Apply a condition's operator to an observed value"""
    if condition.operator == ConditionOperator.EQUALS:
        return value == condition.value
    if condition.operator == ConditionOperator.GREATER_THAN:
        return value > condition.value
    if condition.operator == ConditionOperator.LESS_THAN:
        return value < condition.value
    if condition.operator == ConditionOperator.BETWEEN:
        upper = condition.upper if condition.upper is not None else condition.value
        return condition.value <= value <= upper
    raise ValueError(f"Unhandled operator: {condition.operator}")


def condition_progress(condition: Condition, value: float) -> float:
    """Fraction (0-1) of the way toward satisfying a condition"""
    if compare(condition, value):
        return 1.0
    if condition.operator == ConditionOperator.LESS_THAN or condition.value <= 0:
        return 0.0
    return max(0.0, min(1.0, value / condition.value))


# ==========================================
# Badge requirements: (requirement, metric value) -> bool
# ==========================================

# Named predicates for CustomRequirement
CUSTOM_PREDICATES: dict[str, Callable[[float, int], bool]] = {
    "at_most": lambda value, target: 0 < value <= target,
    "at_least": lambda value, target: value >= target,
}


def _threshold(requirement: Any, value: float) -> bool:
    return value >= requirement.target


def _flag(requirement: AchievementFlagRequirement, value: float) -> bool:
    return value >= requirement.target


def _custom(requirement: CustomRequirement, value: float) -> bool:
    predicate = CUSTOM_PREDICATES.get(requirement.predicate)
    return bool(predicate and predicate(value, requirement.target))


def _never(requirement: Any, value: Any) -> bool:
    return False


BADGE_EVALUATORS: dict[type, Callable[[Any, float], bool]] = {
    CountRequirement: _threshold,
    StreakRequirement: _threshold,
    LevelRequirement: _threshold,
    AchievementFlagRequirement: _flag,
    CustomRequirement: _custom,
    GrantOnlyRequirement: _never,
}


def evaluate_badge_requirement(requirement: BadgeRequirement, value: float) -> bool:
    return BADGE_EVALUATORS[type(requirement)](requirement, value)


def badge_progress(requirement: BadgeRequirement, value: float) -> float:
    """Percentage toward a badge, 0-100"""
    if evaluate_badge_requirement(requirement, value):
        return 100.0
    target = getattr(requirement, "target", 0)
    if isinstance(requirement, (CustomRequirement, GrantOnlyRequirement)) or not target:
        return 0.0
    return round(max(0.0, min(100.0, value * 100.0 / target)), 1)


# ==========================================
# Achievement requirements: (requirement, facts) -> bool
# ==========================================

@dataclass(frozen=True)
class AchievementFacts:
    """
    Observed values for one achievement check

    values: metric name -> value (supplied metrics, windowed aggregates,
            or resolver output depending on the requirement type)
    holder_count: users already holding the achievement (unique only)
    """
    values: Mapping[str, float] = field(default_factory=dict)
    holder_count: int = 0

    def get(self, metric: str) -> float:
        return float(self.values.get(metric, 0) or 0)


def _all_conditions(requirement: Any, facts: AchievementFacts) -> bool:
    return all(compare(c, facts.get(c.metric)) for c in requirement.conditions)


def _unique(requirement: UniqueRequirement, facts: AchievementFacts) -> bool:
    return facts.holder_count == 0 and _all_conditions(requirement, facts)


def _perfect(requirement: PerfectRequirement, facts: AchievementFacts) -> bool:
    return all(facts.get(c.metric) == c.value for c in requirement.conditions)


ACHIEVEMENT_EVALUATORS: dict[type, Callable[[Any, AchievementFacts], bool]] = {
    MilestoneRequirement: _all_conditions,
    CumulativeRequirement: _all_conditions,
    UniqueRequirement: _unique,
    PerfectRequirement: _perfect,
    SpecialRequirement: _all_conditions,
}


def evaluate_achievement_requirement(requirement: AchievementRequirement, facts: AchievementFacts) -> bool:
    return ACHIEVEMENT_EVALUATORS[type(requirement)](requirement, facts)


def achievement_progress(requirement: AchievementRequirement, facts: AchievementFacts) -> float:
    """Mean per-condition progress, 0-100"""
    if evaluate_achievement_requirement(requirement, facts):
        return 100.0
    conditions = requirement.conditions
    if not conditions:
        return 0.0
    total = sum(condition_progress(c, facts.get(c.metric)) for c in conditions)
    return round(min(99.9, total * 100.0 / len(conditions)), 1)


# ==========================================
# Reward requirements
# ==========================================

def _level_met(requirement: LevelGate, state: UserState) -> bool:
    return state.level >= requirement.target


def _xp_met(requirement: XPGate, state: UserState) -> bool:
    return state.total_xp >= requirement.target


def _streak_met(requirement: StreakGate, state: UserState) -> bool:
    return state.streak_days >= requirement.target


def _achievement_met(requirement: AchievementGate, state: UserState) -> bool:
    return requirement.target in state.achievement_ids


def _badge_met(requirement: BadgeGate, state: UserState) -> bool:
    return requirement.target in state.badge_ids


REWARD_EVALUATORS: dict[type, Callable[[Any, UserState], bool]] = {
    LevelGate: _level_met,
    XPGate: _xp_met,
    StreakGate: _streak_met,
    AchievementGate: _achievement_met,
    BadgeGate: _badge_met,
    SpecialGate: _never,
}


def evaluate_reward_requirement(requirement: RewardRequirement, state: UserState) -> bool:
    """Full requirement check against a user snapshot"""
    return REWARD_EVALUATORS[type(requirement)](requirement, state)


def matches_trigger(requirement: RewardRequirement, trigger_value: Any) -> bool:
    """Direct comparison used when the trigger type equals the requirement type"""
    if isinstance(requirement, (LevelGate, XPGate, StreakGate)):
        try:
            return float(trigger_value) >= requirement.target
        except (TypeError, ValueError):
            return False
    return trigger_value == requirement.target


def reward_progress(requirement: RewardRequirement, state: UserState) -> float:
    """Percentage toward a reward, 0-100"""
    if evaluate_reward_requirement(requirement, state):
        return 100.0
    current = {LevelGate: state.level, XPGate: state.total_xp, StreakGate: state.streak_days}.get(type(requirement))
    if current is None or not requirement.target:
        return 0.0
    return round(min(99.9, current * 100.0 / requirement.target), 1)


# ==========================================
# Exhaustiveness
# ==========================================

def _variants(annotated_union: Any) -> set[type]:
    union = get_args(annotated_union)[0]
    return set(get_args(union))


def _check_exhaustive() -> None:
    for name, registry, union in (
        ("badge", BADGE_EVALUATORS, BadgeRequirement),
        ("achievement", ACHIEVEMENT_EVALUATORS, AchievementRequirement),
        ("reward", REWARD_EVALUATORS, RewardRequirement),
    ):
        missing = _variants(union) - set(registry)
        if missing:
            names = ", ".join(sorted(t.__name__ for t in missing))
            raise RuntimeError(f"No {name} evaluator registered for: {names}")


_check_exhaustive()
