"""
Daily Challenge System

Generates time-boxed per-user challenges from a template library, tracks
their progress and pays out their rewards.

Progress is never incremented from events. Each update recomputes every
requirement's count from source data since the challenge was created, so
missed events heal themselves on the next update. Progress is kept
monotonic and rewards are claimed exactly once (the conditional claimed_at
update is what makes a claim count).
"""

import logging
import random
import uuid
from datetime import timedelta
from typing import Any, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from creator_engine.db import queries
from creator_engine.exceptions import UpstreamUnavailableError
from creator_engine.gamification import user_metrics
from creator_engine.gamification.notifications import notify
from creator_engine.gamification.xp_system import calculate_level, award_xp
from creator_engine.models.gamification import (
    ChallengeRequirement,
    ChallengeReward,
    ChallengeStatus,
    ChallengeTemplate,
    DailyChallenge,
)
from creator_engine.observability.metrics import award_failures_total, awards_total
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)

RECENT_TEMPLATE_DAYS = 7
SPECIAL_CHALLENGE_HOURS = 48


def derive_category(requirements: tuple[ChallengeRequirement, ...]) -> str:
    """Category from requirement targets: content, learning, community, else engagement"""
    targets = " ".join(r.target for r in requirements)
    if "content" in targets or "publish" in targets:
        return "content"
    if "ai" in targets or "guide" in targets:
        return "learning"
    if "help" in targets or "share" in targets:
        return "community"
    return "engagement"


def _req(type: str, target: str, count: int) -> ChallengeRequirement:
    return ChallengeRequirement(type=type, target=target, count=count)


def _template(id: str, title: str, description: str, type: str, difficulty: str,
              requirements: tuple[ChallengeRequirement, ...], rewards: tuple[ChallengeReward, ...]) -> ChallengeTemplate:
    return ChallengeTemplate(
        id=id, title=title, description=description, type=type, difficulty=difficulty,
        category=derive_category(requirements), requirements=requirements, rewards=rewards,
    )


def _xp(amount: int) -> ChallengeReward:
    return ChallengeReward(type="xp", value=amount)


# ============================================
# Template library
# ============================================

CHALLENGE_TEMPLATES: dict[str, ChallengeTemplate] = {t.id: t for t in (
    # Daily / easy
    _template("morning-motivation", "Morning Motivation", "Complete 3 tasks to kick off your day",
              "daily", "easy", (_req("task", "complete", 3),), (_xp(100),)),
    _template("content-creator", "Content Creator", "Schedule a piece of content",
              "daily", "easy", (_req("action", "schedule-content", 1),), (_xp(150),)),
    _template("ai-explorer", "AI Explorer", "Have 5 conversations with your AI assistant",
              "daily", "easy", (_req("action", "ai-interaction", 5),), (_xp(75),)),
    _template("early-bird", "Early Bird", "Finish 2 tasks before 10am",
              "daily", "easy", (_req("time", "before-10", 2),), (_xp(120),)),
    # Daily / medium
    _template("productivity-burst", "Productivity Burst", "Complete 5 tasks and create 2 templates",
              "daily", "medium",
              (_req("task", "complete", 5), _req("action", "create-template", 2)),
              (_xp(300), ChallengeReward(type="badge", value="productive-day"))),
    _template("learning-journey", "Learning Journey", "Read 2 guides and finish a tutorial",
              "daily", "medium",
              (_req("action", "read-guide", 2), _req("action", "complete-tutorial", 1)),
              (_xp(250),)),
    # Daily / hard
    _template("content-marathon", "Content Marathon", "Draft 3, schedule 3 and publish 1 piece of content",
              "daily", "hard",
              (_req("action", "complete-task", 3), _req("action", "schedule-content", 3),
               _req("action", "publish-content", 1)),
              (_xp(500), ChallengeReward(type="feature", value="premium-template"))),
    # Weekly
    _template("consistency-champion", "Consistency Champion", "Keep a 7-day streak",
              "weekly", "medium", (_req("metric", "streak", 7),),
              (_xp(1000), ChallengeReward(type="badge", value="week-warrior"))),
    _template("community-builder", "Community Builder", "Help 3 creators and share 5 achievements",
              "weekly", "medium",
              (_req("action", "help-creator", 3), _req("action", "share-achievement", 5)),
              (_xp(750), ChallengeReward(type="badge", value="community-hero"))),
)}


def difficulties_for_level(level: int) -> list[str]:
    """Easy always, medium from level 2, hard from level 5"""
    difficulties = ["easy"]
    if level >= 2:
        difficulties.append("medium")
    if level >= 5:
        difficulties.append("hard")
    return difficulties


def pick_template(
    pool: list[ChallengeTemplate],
    recent_ids: set[str],
    rng: random.Random
) -> Optional[ChallengeTemplate]:
    """Random template not used recently; the whole pool if every one was"""
    if not pool:
        return None
    fresh = [t for t in pool if t.id not in recent_ids]
    return rng.choice(fresh or pool)


class _Personalization(BaseModel):
    title: str
    description: str


async def personalize(template: ChallengeTemplate, profile: Optional[dict[str, Any]], llm, user_id: str) -> tuple[str, str]:
    """
    Title and description tailored to the creator's platforms and niche

    Requirements and rewards are never touched. Any failure returns the
    template text unchanged.
    """
    if llm is None or not profile:
        return template.title, template.description

    platforms = profile.get("preferred_platforms") or []
    niche = profile.get("content_niche") or "general content"
    messages = [
        {
            "role": "system",
            "content": (
                "Rewrite a daily challenge for a content creator. Keep the same goal and numbers. "
                'Reply with a JSON object with keys "title" and "description".'
            ),
        },
        {
            "role": "user",
            "content": (
                f"Challenge: {template.title} - {template.description}\n"
                f"Platforms: {', '.join(platforms) or 'any'}\nNiche: {niche}"
            ),
        },
    ]
    fallback = {"title": template.title, "description": template.description}
    try:
        parsed = _Personalization(**await llm.complete_json(messages, fallback=fallback, user_id=user_id))
    except (UpstreamUnavailableError, PydanticValidationError) as e:
        logger.warning(f"Challenge personalization failed for user {user_id}, using template: {e}")
        return template.title, template.description

    if not parsed.title.strip() or not parsed.description.strip():
        return template.title, template.description
    return parsed.title.strip(), parsed.description.strip()


def _instance(user_id: str, template: ChallengeTemplate, title: str, description: str,
              created_at, expires_at, type: Optional[str] = None) -> DailyChallenge:
    return DailyChallenge(
        id=str(uuid.uuid4()),
        user_id=user_id,
        template_id=template.id,
        title=title,
        description=description,
        type=type or template.type,
        category=template.category,
        difficulty=template.difficulty,
        requirements=list(template.requirements),
        rewards=list(template.rewards),
        created_at=created_at,
        expires_at=expires_at,
    )


async def _persist(challenge: DailyChallenge) -> None:
    await queries.insert_challenge(challenge.model_dump(mode="json") | {
        "created_at": challenge.created_at,
        "expires_at": challenge.expires_at,
    })


async def generate_daily_challenges(
    user_id: str,
    llm=None,
    rng: Optional[random.Random] = None
) -> list[DailyChallenge]:
    """
    Create today's challenges for a user

    One easy challenge always, plus medium at level 2+ and hard at level 5+.
    All share an expiry of the next local midnight.

    Args:
        user_id: User ID
        llm: Text-generation collaborator for personalization (optional)
        rng: Random source (tests pass a seeded one)
    """
    rng = rng or random.Random()
    now = datetime_helpers.now_local()
    expires_at = datetime_helpers.next_midnight(now)

    stats = await queries.get_user_stats(user_id)
    level = max(stats["level"], calculate_level(stats["total_xp"]).level)
    recent_ids = await queries.get_recent_template_ids(user_id, now - timedelta(days=RECENT_TEMPLATE_DAYS))
    profile = await queries.get_user(user_id)

    challenges = []
    for difficulty in difficulties_for_level(level):
        pool = [t for t in CHALLENGE_TEMPLATES.values() if t.type == "daily" and t.difficulty == difficulty]
        template = pick_template(pool, recent_ids, rng)
        if template is None:
            continue
        title, description = await personalize(template, profile, llm, user_id)
        challenge = _instance(user_id, template, title, description, now, expires_at)
        await _persist(challenge)
        challenges.append(challenge)

    logger.info(f"Generated {len(challenges)} daily challenges for user {user_id}: {[c.template_id for c in challenges]}")
    return challenges


async def generate_weekly_challenge(user_id: str, rng: Optional[random.Random] = None) -> Optional[DailyChallenge]:
    """One weekly challenge expiring at local midnight seven days from now"""
    rng = rng or random.Random()
    now = datetime_helpers.now_local()
    recent_ids = await queries.get_recent_template_ids(user_id, now - timedelta(days=RECENT_TEMPLATE_DAYS))
    pool = [t for t in CHALLENGE_TEMPLATES.values() if t.type == "weekly"]
    template = pick_template(pool, recent_ids, rng)
    if template is None:
        return None

    expires_at = datetime_helpers.next_midnight(now + timedelta(days=6))
    challenge = _instance(user_id, template, template.title, template.description, now, expires_at)
    await _persist(challenge)
    return challenge


async def create_special_challenge(
    title: str,
    description: str,
    requirements: list[ChallengeRequirement],
    rewards: list[ChallengeReward],
    user_ids: Optional[list[str]] = None,
    expires_in_hours: int = SPECIAL_CHALLENGE_HOURS
) -> list[DailyChallenge]:
    """
    Push a special challenge to many users (all verified users by default)

    Returns:
        Created challenge rows
    """
    if user_ids is None:
        user_ids = await queries.get_verified_user_ids()

    template = _template(
        f"special-{uuid.uuid4().hex[:8]}", title, description, "special", "medium",
        tuple(requirements), tuple(rewards),
    )
    now = datetime_helpers.now_local()
    expires_at = now + timedelta(hours=expires_in_hours)

    created = []
    for user_id in user_ids:
        challenge = _instance(user_id, template, title, description, now, expires_at)
        try:
            await _persist(challenge)
            created.append(challenge)
        except Exception as e:
            logger.error(f"Failed to create special challenge for user {user_id}: {e}", exc_info=True)

    logger.info(f"Created special challenge '{title}' for {len(created)} users")
    return created


# ============================================
# Progress
# ============================================

async def requirement_count(user_id: str, requirement: ChallengeRequirement, since) -> int:
    """How many times a requirement has been satisfied since `since`"""
    if requirement.type == "task":
        return await queries.count_completed_tasks(user_id, since=since)
    if requirement.type == "action":
        return await queries.count_xp_transactions(user_id, action_id=requirement.target, since=since)
    if requirement.type == "metric":
        if requirement.target == "streak":
            stats = await queries.get_user_stats(user_id)
            return stats["streak_days"]
        value = await user_metrics.get_metric_value(user_id, requirement.target)
        return int(value or 0)
    if requirement.type == "time":
        _, _, hour = requirement.target.partition("before-")
        return await queries.count_completed_tasks(user_id, since=since, before_hour=int(hour))
    raise ValueError(f"Unknown challenge requirement type: {requirement.type}")


def compute_progress(requirements: list[ChallengeRequirement], counts: list[int]) -> int:
    """Mean per-requirement completion as a whole percentage"""
    if not requirements:
        return 100
    fractions = [min(1.0, count / r.count) if r.count else 1.0 for r, count in zip(requirements, counts)]
    return int(sum(fractions) * 100 / len(fractions))


async def update_challenge_progress(
    user_id: str,
    action_type: Optional[str] = None,
    increment: int = 1
) -> list[DailyChallenge]:
    """
    Recompute progress for every active, unexpired challenge

    `action_type` and `increment` describe the event that prompted the
    update; they are logged only, since counts come from source data.

    Returns:
        Challenges completed by this update
    """
    now = datetime_helpers.now_local()
    rows = await queries.get_challenges(user_id, [ChallengeStatus.ACTIVE.value], not_expired_at=now)
    logger.debug(f"Updating {len(rows)} challenges for user {user_id} after {action_type} (+{increment})")

    completed = []
    for row in rows:
        challenge = DailyChallenge(**row)
        try:
            counts = [await requirement_count(user_id, r, challenge.created_at) for r in challenge.requirements]
            progress = max(challenge.progress, compute_progress(challenge.requirements, counts))
            is_done = all(count >= r.count for r, count in zip(challenge.requirements, counts))

            if is_done:
                await queries.update_challenge_progress(challenge.id, 100, completed_at=now)
                logger.info(f"User {user_id} completed challenge {challenge.id} ({challenge.title})")
                challenge = challenge.model_copy(update={
                    "progress": 100, "status": ChallengeStatus.COMPLETED, "completed_at": now,
                })
                completed.append(challenge)
                await claim_challenge_rewards(user_id, challenge.id)
            elif progress > challenge.progress:
                await queries.update_challenge_progress(challenge.id, progress)
        except Exception as e:
            award_failures_total.labels(kind="challenge").inc()
            logger.error(f"Failed to update challenge {challenge.id} for user {user_id}: {e}", exc_info=True)

    return completed


async def claim_challenge_rewards(user_id: str, challenge_id: str) -> bool:
    """
    Pay out a completed challenge exactly once

    Returns:
        True if this call claimed the rewards; False if the challenge is
        missing, not completed, or already claimed
    """
    row = await queries.get_challenge(user_id, challenge_id)
    if row is None:
        logger.warning(f"Challenge {challenge_id} not found for user {user_id}")
        return False
    challenge = DailyChallenge(**row)
    if challenge.status != ChallengeStatus.COMPLETED or challenge.claimed_at is not None:
        return False

    if not await queries.mark_challenge_claimed(challenge.id, datetime_helpers.now_local()):
        return False

    awards_total.labels(kind="challenge").inc()
    for reward in challenge.rewards:
        try:
            await _apply_challenge_reward(user_id, challenge, reward)
        except Exception as e:
            award_failures_total.labels(kind="challenge_reward").inc()
            logger.error(
                f"Failed to apply {reward.type} reward of challenge {challenge.id} for user {user_id}: {e}",
                exc_info=True
            )

    await notify(
        user_id,
        "challenge_completed",
        f"🏁 Challenge complete: {challenge.title}",
        "Your challenge rewards have been added to your account.",
        {"challenge_id": challenge.id, "rewards": [r.model_dump() for r in challenge.rewards]},
    )
    return True


async def _apply_challenge_reward(user_id: str, challenge: DailyChallenge, reward: ChallengeReward) -> None:
    if reward.type == "xp":
        await award_xp(
            user_id, "complete-challenge",
            metadata={"reason": f"Challenge: {challenge.title}", "challenge_id": challenge.id},
            xp_override=int(reward.value),
        )
    elif reward.type == "badge":
        await queries.insert_user_achievement(
            user_id, f"challenge-{reward.value}", datetime_helpers.now_local(),
            type="challenge", metadata={"challenge_id": challenge.id},
        )
    elif reward.type == "feature":
        await queries.insert_unlocked_feature(user_id, f"challenge-unlock-{reward.value}", "challenge")
    else:
        raise ValueError(f"Unknown challenge reward type: {reward.type}")


# ============================================
# Listing & housekeeping
# ============================================

async def get_active_challenges(user_id: str) -> list[DailyChallenge]:
    """Active and completed challenges that have not expired"""
    now = datetime_helpers.now_local()
    rows = await queries.get_challenges(
        user_id, [ChallengeStatus.ACTIVE.value, ChallengeStatus.COMPLETED.value], not_expired_at=now
    )
    return [DailyChallenge(**row) for row in rows]


async def expire_stale_challenges(user_id: str) -> int:
    """Mark active challenges past their expiry as expired"""
    count = await queries.expire_challenges(user_id, datetime_helpers.now_local())
    if count:
        logger.info(f"Expired {count} challenges for user {user_id}")
    return count


async def abandon_challenge(user_id: str, challenge_id: str) -> bool:
    """Give up an active challenge"""
    row = await queries.get_challenge(user_id, challenge_id)
    if row is None:
        return False
    return await queries.set_challenge_status(challenge_id, ChallengeStatus.ABANDONED.value)
