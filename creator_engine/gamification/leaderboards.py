"""
Leaderboard Aggregator

Standings are recomputed from source tables on every request, never stored.
Ranks are 1-based by descending score. Equal scores rank the
earlier-registered user first, then by user id, so ranks are always
distinct and stable.

Valid (type, timeframe) pairs come from LEADERBOARD_CONFIGS; anything else
raises ValidationError.
"""

import logging
from typing import Any, Optional

from creator_engine.db import queries
from creator_engine.exceptions import ValidationError
from creator_engine.models.gamification import Leaderboard, LeaderboardEntry, LeaderboardPosition
from creator_engine.utils import datetime_helpers

logger = logging.getLogger(__name__)

LEADERBOARD_CONFIGS: dict[tuple[str, str], str] = {
    ("xp", "daily"): "Daily XP Leaders",
    ("xp", "weekly"): "Weekly XP Champions",
    ("xp", "monthly"): "Monthly XP Masters",
    ("xp", "all-time"): "All-Time XP Legends",
    ("badges", "all-time"): "Badge Collectors",
    ("achievements", "all-time"): "Achievement Hunters",
    ("content", "weekly"): "Weekly Content Creators",
    ("content", "monthly"): "Monthly Publishing Stars",
    ("engagement", "daily"): "Daily Engagement Leaders",
    ("engagement", "weekly"): "Weekly Community Heroes",
}

# Engagement blend: activity kind -> weight
ENGAGEMENT_WEIGHTS: dict[str, int] = {
    "ai_interaction": 1,
    "help_given": 3,
    "share": 2,
}


def _config_name(type: str, timeframe: str) -> str:
    name = LEADERBOARD_CONFIGS.get((type, timeframe))
    if name is None:
        raise ValidationError(
            f"No {timeframe} leaderboard for {type}",
            field="leaderboard",
            value=f"{type}/{timeframe}",
        )
    return name


def _sort_key(row: dict[str, Any]) -> tuple:
    return (-row["score"], row["created_at"], row["user_id"])


async def _engagement_scores(since) -> list[dict[str, Any]]:
    """Weighted blend across activity kinds, combined and sorted in memory"""
    combined: dict[str, dict[str, Any]] = {}
    for kind, weight in ENGAGEMENT_WEIGHTS.items():
        for row in await queries.get_activity_counts(kind, since):
            entry = combined.setdefault(row["user_id"], {**row, "score": 0})
            entry["score"] += row["score"] * weight
    return sorted(combined.values(), key=_sort_key)


async def compute_standings(type: str, timeframe: str) -> list[dict[str, Any]]:
    """
    Full ranked list for a leaderboard

    Returns:
        Rows with user_id, display_name, created_at, level, score (and
        achievement_count for achievements), in rank order
    """
    _config_name(type, timeframe)
    since = datetime_helpers.window_start(timeframe)

    if type == "xp":
        rows = await queries.get_xp_totals(since)
    elif type == "badges":
        rows = await queries.get_badge_counts()
    elif type == "achievements":
        rows = await queries.get_achievement_points()
    elif type == "content":
        rows = await queries.get_content_counts(since)
    elif type == "engagement":
        return await _engagement_scores(since)
    else:
        raise ValidationError(f"Unknown leaderboard type {type}", field="type", value=type)

    # Source order already uses the same key; sorting again keeps ties stable for any backend
    return sorted(rows, key=_sort_key)


def _entry(rank: int, row: dict[str, Any], type: str, previous: dict[str, int]) -> LeaderboardEntry:
    previous_rank = previous.get(row["user_id"])
    return LeaderboardEntry(
        rank=rank,
        user_id=row["user_id"],
        display_name=row.get("display_name") or "Anonymous Creator",
        score=float(row["score"]),
        level=row.get("level") or 1,
        badge_count=int(row["score"]) if type == "badges" else None,
        achievement_count=row.get("achievement_count") if type == "achievements" else None,
        rank_change=(previous_rank - rank) if previous_rank is not None else None,
    )


async def get_leaderboard(
    type: str,
    timeframe: str,
    limit: int = 10,
    user_id: Optional[str] = None
) -> Leaderboard:
    """
    Ranked standings

    Args:
        type: 'xp', 'badges', 'achievements', 'content' or 'engagement'
        timeframe: 'daily', 'weekly', 'monthly' or 'all-time'
        limit: Number of top entries
        user_id: When given and outside the top `limit`, the user's own entry
            is appended as one extra entry

    Raises:
        ValidationError: Unknown type/timeframe combination
    """
    name = _config_name(type, timeframe)
    standings = await compute_standings(type, timeframe)
    previous = await _previous_ranks(type, timeframe)

    entries = [_entry(rank, row, type, previous) for rank, row in enumerate(standings[:limit], start=1)]

    if user_id is not None and all(e.user_id != user_id for e in entries):
        for rank, row in enumerate(standings, start=1):
            if row["user_id"] == user_id:
                entries.append(_entry(rank, row, type, previous))
                break

    return Leaderboard(
        type=type,
        timeframe=timeframe,
        name=name,
        entries=entries,
        total_participants=len(standings),
        generated_at=datetime_helpers.now_local(),
    )


async def _previous_ranks(type: str, timeframe: str) -> dict[str, int]:
    """Ranks from the last snapshot; no snapshot means no rank-change data"""
    try:
        return await queries.get_leaderboard_snapshot(type, timeframe)
    except Exception as e:
        logger.warning(f"Previous rankings unavailable for {type}/{timeframe}: {e}")
        return {}


async def snapshot_leaderboard(type: str, timeframe: str) -> int:
    """Store current ranks as the previous period for rank-change deltas"""
    standings = await compute_standings(type, timeframe)
    ranks = {row["user_id"]: rank for rank, row in enumerate(standings, start=1)}
    await queries.save_leaderboard_snapshot(type, timeframe, ranks, datetime_helpers.now_local())
    logger.info(f"Saved {type}/{timeframe} leaderboard snapshot with {len(ranks)} users")
    return len(ranks)


async def get_user_leaderboard_positions(user_id: str) -> list[LeaderboardPosition]:
    """The user's rank and percentile on every leaderboard they appear on"""
    positions = []
    for (type, timeframe), name in LEADERBOARD_CONFIGS.items():
        standings = await compute_standings(type, timeframe)
        for rank, row in enumerate(standings, start=1):
            if row["user_id"] != user_id:
                continue
            total = len(standings)
            positions.append(LeaderboardPosition(
                type=type,
                timeframe=timeframe,
                name=name,
                rank=rank,
                score=float(row["score"]),
                total_participants=total,
                percentile=round((total - rank + 1) * 100.0 / total, 1),
            ))
            break
    return positions


async def create_custom_leaderboard(
    name: str,
    user_ids: list[str],
    type: str = "xp",
    timeframe: str = "weekly"
) -> Leaderboard:
    """Standings restricted to a group of users (e.g. a collaboration circle), re-ranked from 1"""
    _config_name(type, timeframe)
    members = set(user_ids)
    standings = [row for row in await compute_standings(type, timeframe) if row["user_id"] in members]
    entries = [_entry(rank, row, type, {}) for rank, row in enumerate(standings, start=1)]
    return Leaderboard(
        type=type,
        timeframe=timeframe,
        name=name,
        entries=entries,
        total_participants=len(entries),
        generated_at=datetime_helpers.now_local(),
    )


def generate_leaderboard_insights(positions: list[LeaderboardPosition]) -> list[str]:
    """Short human-readable highlights from a user's positions"""
    insights = []
    for position in sorted(positions, key=lambda p: p.rank):
        if position.rank == 1:
            insights.append(f"🥇 You're #1 on {position.name}!")
        elif position.rank <= 3:
            insights.append(f"🏆 You're in the top 3 on {position.name} (#{position.rank}).")
        elif position.percentile >= 90:
            insights.append(f"⭐ Top 10% on {position.name}.")
    if not insights and positions:
        best = max(positions, key=lambda p: p.percentile)
        insights.append(f"Your best standing is #{best.rank} on {best.name}. Keep going!")
    return insights
