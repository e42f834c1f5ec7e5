"""
In-memory stand-ins for the persistence and text-generation collaborators

FakeStore exposes one coroutine per function in creator_engine.db.queries,
with the same arguments and return shapes, backed by plain dicts and lists.
Insert-if-absent, GREATEST and conditional-update semantics follow the SQL.
"""
import copy
import itertools
from datetime import datetime, timezone
from typing import Any, Optional

from prometheus_client import REGISTRY

from creator_engine.models.conversation import StreamFragment
from creator_engine.utils import datetime_helpers


class StoreFailure(Exception):
    """Raised by a FakeStore method registered in `failing`"""


def _sort_key(row: dict) -> tuple:
    return (-row["score"], row["created_at"], row["user_id"])


class FakeStore:
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.stats: dict[str, dict] = {}
        self.xp_rows: list[dict] = []
        self.badges: dict[tuple[str, str], dict] = {}
        self.achievements: dict[tuple[str, str], dict] = {}
        self.titles: dict[tuple[str, str], str] = {}
        self.features: dict[tuple[str, str], dict] = {}
        self.cosmetics: dict[tuple[str, str], str] = {}
        self.notifications: list[dict] = []
        self.unlocked_rewards: dict[tuple[str, str], dict] = {}
        self.template_access: dict[tuple[str, str], dict] = {}
        self.perks: dict[tuple[str, str], dict] = {}
        self.content_access: dict[tuple[str, str], dict] = {}
        self.discounts: dict[tuple[str, str], dict] = {}
        self.content_items: list[dict] = []
        self.templates: list[dict] = []
        self.tasks: list[dict] = []
        self.events: list[dict] = []
        self.challenges: dict[str, dict] = {}
        self.snapshots: list[dict] = []
        self.conversations: dict[str, dict] = {}
        self.profiles: dict[str, dict] = {}
        self.failing: dict[str, Exception] = {}
        self._seq = itertools.count(1)

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise self.failing[name]

    # ==========================================
    # Seeding helpers
    # ==========================================

    def add_user(self, user_id: str, created_at: datetime, display_name: Optional[str] = None,
                 email_verified: bool = True) -> None:
        self.users[user_id] = {
            "id": user_id,
            "display_name": display_name or user_id,
            "email_verified": email_verified,
            "created_at": created_at,
            "creator_level": None,
            "preferred_platforms": None,
            "content_niche": None,
            "equipment": None,
            "goals": None,
            "challenges": None,
            "onboarding_completed_at": None,
        }

    def set_stats(self, user_id: str, **values) -> None:
        self._stats_row(user_id).update(values)

    def publish(self, user_id: str, published_at: datetime) -> None:
        self.content_items.append({"user_id": user_id, "status": "published", "published_at": published_at})

    def add_task(self, user_id: str, created_at: datetime, completed_at: Optional[datetime] = None) -> None:
        self.tasks.append({"user_id": user_id, "created_at": created_at, "completed_at": completed_at})

    def add_event(self, user_id: str, kind: str, created_at: datetime) -> None:
        self.events.append({"user_id": user_id, "kind": kind, "created_at": created_at})

    def badge_ids(self, user_id: str) -> set[str]:
        return {badge_id for (uid, badge_id) in self.badges if uid == user_id}

    def xp_for(self, user_id: str, action_id: Optional[str] = None) -> list[dict]:
        return [r for r in self.xp_rows if r["user_id"] == user_id and (action_id is None or r["action_id"] == action_id)]

    # ==========================================
    # Stats & ledger
    # ==========================================

    def _stats_row(self, user_id: str) -> dict:
        return self.stats.setdefault(user_id, {
            "user_id": user_id,
            "total_xp": 0,
            "level": 1,
            "streak_days": 0,
            "best_streak": 0,
            "last_active_date": None,
        })

    async def get_user_stats(self, user_id):
        self._check("get_user_stats")
        return dict(self._stats_row(user_id))

    async def increment_user_xp(self, user_id, amount):
        row = self._stats_row(user_id)
        row["total_xp"] += amount
        return row["total_xp"]

    async def update_user_level(self, user_id, level):
        row = self._stats_row(user_id)
        row["level"] = max(row["level"], level)

    async def update_user_streak(self, user_id, streak_days, best_streak, last_active_date):
        row = self._stats_row(user_id)
        row.update(streak_days=streak_days, best_streak=best_streak, last_active_date=last_active_date)

    async def add_xp_transaction(self, user_id, action_id, base_xp, bonus_xp, category, created_at, metadata=None):
        self._check("add_xp_transaction")
        self.xp_rows.append({
            "id": next(self._seq),
            "user_id": user_id,
            "action_id": action_id,
            "base_xp": base_xp,
            "bonus_xp": bonus_xp,
            "total_xp": base_xp + bonus_xp,
            "category": category,
            "metadata": metadata,
            "created_at": created_at,
        })

    async def count_xp_transactions(self, user_id, action_id=None, since=None, category=None):
        return sum(
            1 for r in self.xp_rows
            if r["user_id"] == user_id
            and (action_id is None or r["action_id"] == action_id)
            and (category is None or r["category"] == category)
            and (since is None or r["created_at"] >= since)
        )

    async def get_last_xp_transaction_time(self, user_id, action_id):
        times = [r["created_at"] for r in self.xp_for(user_id, action_id)]
        return max(times) if times else None

    async def get_xp_transactions(self, user_id, since=None, limit=100):
        rows = [r for r in self.xp_for(user_id) if since is None or r["created_at"] >= since]
        rows.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [{k: v for k, v in r.items() if k != "id"} for r in rows[:limit]]

    async def sum_xp_since(self, user_id, since):
        return sum(r["total_xp"] for r in self.xp_for(user_id) if r["created_at"] >= since)

    # ==========================================
    # Badges & achievements
    # ==========================================

    async def get_user_badges(self, user_id):
        rows = [dict(r) for (uid, _), r in self.badges.items() if uid == user_id]
        return sorted(rows, key=lambda r: r["earned_at"])

    async def get_user_badge_ids(self, user_id):
        self._check("get_user_badge_ids")
        return self.badge_ids(user_id)

    async def insert_user_badge(self, user_id, badge_id, earned_at, metadata=None):
        self._check("insert_user_badge")
        if (user_id, badge_id) in self.badges:
            return False
        self.badges[(user_id, badge_id)] = {
            "user_id": user_id, "badge_id": badge_id, "earned_at": earned_at, "metadata": metadata,
        }
        return True

    async def get_user_achievements(self, user_id, include_level_ups=False):
        rows = [
            dict(r) for (uid, _), r in self.achievements.items()
            if uid == user_id and (include_level_ups or r["type"] != "level_up")
        ]
        return sorted(rows, key=lambda r: r["earned_at"])

    async def get_user_achievement_ids(self, user_id):
        return {aid for (uid, aid) in self.achievements if uid == user_id}

    async def insert_user_achievement(self, user_id, achievement_id, earned_at, type="achievement", points=0, metadata=None):
        self._check("insert_user_achievement")
        if (user_id, achievement_id) in self.achievements:
            return False
        self.achievements[(user_id, achievement_id)] = {
            "user_id": user_id, "achievement_id": achievement_id, "type": type,
            "points": points, "earned_at": earned_at, "metadata": metadata,
        }
        return True

    async def count_achievement_holders(self, achievement_id):
        return sum(1 for (_, aid) in self.achievements if aid == achievement_id)

    async def insert_user_title(self, user_id, title, source_id):
        if (user_id, title) in self.titles:
            return False
        self.titles[(user_id, title)] = source_id
        return True

    async def insert_unlocked_feature(self, user_id, feature_id, unlocked_by):
        if (user_id, feature_id) in self.features:
            return False
        self.features[(user_id, feature_id)] = {"feature_id": feature_id, "unlocked_by": unlocked_by}
        return True

    async def insert_user_cosmetic(self, user_id, cosmetic_id, source_id):
        if (user_id, cosmetic_id) in self.cosmetics:
            return False
        self.cosmetics[(user_id, cosmetic_id)] = source_id
        return True

    async def insert_notification(self, user_id, type, title, message, data=None):
        self._check("insert_notification")
        self.notifications.append({"user_id": user_id, "type": type, "title": title, "message": message, "data": data})

    # ==========================================
    # Rewards
    # ==========================================

    async def get_unlocked_rewards(self, user_id):
        self._check("get_unlocked_rewards")
        rows = [dict(r) for (uid, _), r in self.unlocked_rewards.items() if uid == user_id]
        return sorted(rows, key=lambda r: r["unlocked_at"])

    async def insert_unlocked_reward(self, user_id, reward_id, unlocked_at):
        if (user_id, reward_id) in self.unlocked_rewards:
            return False
        self.unlocked_rewards[(user_id, reward_id)] = {
            "user_id": user_id, "reward_id": reward_id, "unlocked_at": unlocked_at,
            "claimed_at": None, "active": True,
        }
        return True

    async def mark_reward_claimed(self, user_id, reward_id, claimed_at):
        row = self.unlocked_rewards.get((user_id, reward_id))
        if row is None or row["claimed_at"] is not None:
            return False
        row["claimed_at"] = claimed_at
        return True

    async def insert_template_access(self, user_id, reward_id, template_count, categories):
        self.template_access.setdefault((user_id, reward_id), {"template_count": template_count, "categories": categories})

    async def insert_user_perk(self, user_id, reward_id, value, expires_at):
        self.perks.setdefault((user_id, reward_id), {"value": value, "expires_at": expires_at})

    async def insert_content_access(self, user_id, reward_id, value):
        self.content_access.setdefault((user_id, reward_id), value)

    async def insert_user_discount(self, user_id, reward_id, percentage, plan_type, lifetime):
        self.discounts.setdefault((user_id, reward_id), {
            "reward_id": reward_id, "percentage": percentage, "plan_type": plan_type,
            "lifetime": lifetime, "active": True,
        })

    async def get_active_discounts(self, user_id, plan_type):
        return [
            {k: v for k, v in row.items() if k != "active"}
            for (uid, _), row in self.discounts.items()
            if uid == user_id and row["plan_type"] == plan_type and row["active"]
        ]

    # ==========================================
    # Metric sources
    # ==========================================

    async def count_published_content(self, user_id, since=None):
        return sum(
            1 for c in self.content_items
            if c["user_id"] == user_id and c["status"] == "published"
            and (since is None or c["published_at"] >= since)
        )

    async def count_distinct_content_days(self, user_id, since):
        return len({
            c["published_at"].astimezone(datetime_helpers.local_timezone()).date() for c in self.content_items
            if c["user_id"] == user_id and c["status"] == "published" and c["published_at"] >= since
        })

    async def count_templates(self, user_id):
        return sum(1 for t in self.templates if t["user_id"] == user_id)

    async def count_activity_events(self, user_id, kind, since=None):
        return sum(
            1 for e in self.events
            if e["user_id"] == user_id and e["kind"] == kind and (since is None or e["created_at"] >= since)
        )

    async def count_completed_tasks(self, user_id, since=None, before_hour=None, hour_range=None):
        count = 0
        for t in self.tasks:
            done = t["completed_at"]
            if t["user_id"] != user_id or done is None:
                continue
            if since is not None and done < since:
                continue
            hour = done.astimezone(datetime_helpers.local_timezone()).hour
            if before_hour is not None and hour >= before_hour:
                continue
            if hour_range is not None and not (hour_range[0] <= hour < hour_range[1]):
                continue
            count += 1
        return count

    async def get_task_completion_rate(self, user_id, since):
        due = [t for t in self.tasks if t["user_id"] == user_id and t["created_at"] >= since]
        if not due:
            return 0.0
        done = sum(1 for t in due if t["completed_at"] is not None)
        return round(done * 100.0 / len(due), 2)

    async def get_registration_rank(self, user_id):
        me = self.users.get(user_id)
        if me is None:
            return None
        key = (me["created_at"], user_id)
        return sum(1 for u in self.users.values() if (u["created_at"], u["id"]) <= key)

    # ==========================================
    # Challenges
    # ==========================================

    async def insert_challenge(self, challenge):
        self._check("insert_challenge")
        row = copy.deepcopy(challenge)
        row.setdefault("completed_at", None)
        row.setdefault("claimed_at", None)
        self.challenges[row["id"]] = row

    async def get_recent_template_ids(self, user_id, since):
        return {
            c["template_id"] for c in self.challenges.values()
            if c["user_id"] == user_id and c["created_at"] >= since
        }

    async def get_challenges(self, user_id, statuses, not_expired_at=None):
        rows = [
            copy.deepcopy(c) for c in self.challenges.values()
            if c["user_id"] == user_id and c["status"] in statuses
            and (not_expired_at is None or c["expires_at"] > not_expired_at)
        ]
        return sorted(rows, key=lambda c: c["created_at"])

    async def get_challenge(self, user_id, challenge_id):
        row = self.challenges.get(challenge_id)
        if row is None or row["user_id"] != user_id:
            return None
        return copy.deepcopy(row)

    async def update_challenge_progress(self, challenge_id, progress, completed_at=None):
        row = self.challenges.get(challenge_id)
        if row is None or row["status"] != "active":
            return
        row["progress"] = max(row["progress"], progress)
        if completed_at is not None:
            row["status"] = "completed"
            row["completed_at"] = row["completed_at"] or completed_at

    async def mark_challenge_claimed(self, challenge_id, claimed_at):
        row = self.challenges.get(challenge_id)
        if row is None or row["status"] != "completed" or row["claimed_at"] is not None:
            return False
        row["claimed_at"] = claimed_at
        return True

    async def set_challenge_status(self, challenge_id, status, from_status="active"):
        row = self.challenges.get(challenge_id)
        if row is None or row["status"] != from_status:
            return False
        row["status"] = status
        return True

    async def expire_challenges(self, user_id, now):
        count = 0
        for row in self.challenges.values():
            if row["user_id"] == user_id and row["status"] == "active" and row["expires_at"] <= now:
                row["status"] = "expired"
                count += 1
        return count

    # ==========================================
    # Leaderboards
    # ==========================================

    def _ranked(self, scores: dict[str, float], extra: Optional[dict[str, dict]] = None) -> list[dict]:
        rows = []
        for user_id, score in scores.items():
            user = self.users.get(user_id)
            if user is None:
                continue
            row = {
                "user_id": user_id,
                "display_name": user["display_name"],
                "created_at": user["created_at"],
                "level": self.stats.get(user_id, {}).get("level", 1),
                "score": score,
            }
            row.update((extra or {}).get(user_id, {}))
            rows.append(row)
        return sorted(rows, key=_sort_key)

    async def get_xp_totals(self, since):
        if since is None:
            return self._ranked({uid: s["total_xp"] for uid, s in self.stats.items() if s["total_xp"] > 0})
        scores: dict[str, int] = {}
        for r in self.xp_rows:
            if r["created_at"] >= since:
                scores[r["user_id"]] = scores.get(r["user_id"], 0) + r["total_xp"]
        return self._ranked(scores)

    async def get_badge_counts(self):
        scores: dict[str, int] = {}
        for (uid, _) in self.badges:
            scores[uid] = scores.get(uid, 0) + 1
        return self._ranked(scores)

    async def get_achievement_points(self):
        scores: dict[str, int] = {}
        counts: dict[str, dict] = {}
        for (uid, _), row in self.achievements.items():
            if row["type"] != "achievement":
                continue
            scores[uid] = scores.get(uid, 0) + row["points"]
            counts.setdefault(uid, {"achievement_count": 0})["achievement_count"] += 1
        return self._ranked(scores, counts)

    async def get_content_counts(self, since):
        scores: dict[str, int] = {}
        for c in self.content_items:
            if c["status"] == "published" and (since is None or c["published_at"] >= since):
                scores[c["user_id"]] = scores.get(c["user_id"], 0) + 1
        return self._ranked(scores)

    async def get_activity_counts(self, kind, since):
        scores: dict[str, int] = {}
        for e in self.events:
            if e["kind"] == kind and (since is None or e["created_at"] >= since):
                scores[e["user_id"]] = scores.get(e["user_id"], 0) + 1
        return self._ranked(scores)

    async def get_leaderboard_snapshot(self, type, timeframe):
        self._check("get_leaderboard_snapshot")
        matching = [s for s in self.snapshots if s["type"] == type and s["timeframe"] == timeframe]
        if not matching:
            return {}
        return dict(max(matching, key=lambda s: s["taken_at"])["ranks"])

    async def save_leaderboard_snapshot(self, type, timeframe, ranks, taken_at):
        self.snapshots.append({"type": type, "timeframe": timeframe, "ranks": dict(ranks), "taken_at": taken_at})

    # ==========================================
    # Conversations
    # ==========================================

    async def get_conversation(self, conversation_id):
        row = self.conversations.get(conversation_id)
        return copy.deepcopy(row) if row else None

    async def upsert_conversation(self, conversation_id, user_id, messages, context, created_at, updated_at):
        self._check("upsert_conversation")
        existing = self.conversations.get(conversation_id)
        self.conversations[conversation_id] = {
            "id": conversation_id,
            "user_id": user_id,
            "messages": copy.deepcopy(messages),
            "context": copy.deepcopy(context),
            "created_at": existing["created_at"] if existing else created_at,
            "updated_at": updated_at,
        }

    async def delete_conversation(self, conversation_id):
        self._check("delete_conversation")
        self.conversations.pop(conversation_id, None)

    async def get_user_conversations(self, user_id, limit=50):
        self._check("get_user_conversations")
        rows = [copy.deepcopy(c) for c in self.conversations.values() if c["user_id"] == user_id]
        rows.sort(key=lambda c: c["updated_at"], reverse=True)
        return rows[:limit]

    # ==========================================
    # Users
    # ==========================================

    async def get_user(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    async def get_verified_user_ids(self):
        users = sorted(self.users.values(), key=lambda u: u["created_at"])
        return [u["id"] for u in users if u["email_verified"]]

    async def save_onboarding_profile(self, user_id, profile):
        self._check("save_onboarding_profile")
        self.profiles[user_id] = dict(profile)
        if user_id in self.users:
            self.users[user_id].update(
                creator_level=profile["creator_level"],
                preferred_platforms=list(profile["preferred_platforms"]),
                content_niche=profile["content_niche"],
                onboarding_completed_at=datetime.now(timezone.utc),
            )


def metric_value(name: str, **labels) -> float:
    """Current value of a Prometheus sample, 0 if it was never touched"""
    return REGISTRY.get_sample_value(name, labels) or 0.0


class FakeLLM:
    """
    Scripted text-generation collaborator

    `replies` are consumed in order. A streamed reply is split into
    `chunk_size` fragments; set `fail_after` to raise after that many
    fragments.
    """

    def __init__(self, replies: Optional[list[str]] = None, chunk_size: int = 8,
                 fail_after: Optional[int] = None, error: Optional[Exception] = None):
        self.replies = list(replies or ["Sounds great!"])
        self.chunk_size = chunk_size
        self.fail_after = fail_after
        self.error = error or RuntimeError("stream broke")
        self.calls: list[list[dict]] = []
        self.json_payload: Any = None

    def _next_reply(self) -> str:
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

    async def chat_completion(self, messages, temperature=None, max_tokens=None, user_id=None, response_format=None):
        self.calls.append(list(messages))
        if self.fail_after == 0:
            raise self.error
        return self._next_reply()

    async def chat_completion_stream(self, messages, temperature=None, max_tokens=None, user_id=None):
        self.calls.append(list(messages))
        reply = self._next_reply()
        chunks = [reply[i:i + self.chunk_size] for i in range(0, len(reply), self.chunk_size)]
        for index, chunk in enumerate(chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise self.error
            yield StreamFragment(content=chunk)
        yield StreamFragment(content="", done=True)

    async def complete_json(self, messages, fallback, user_id=None, temperature=None):
        self.calls.append(list(messages))
        if isinstance(self.json_payload, Exception):
            raise self.json_payload
        if self.json_payload is None:
            return dict(fallback)
        return self.json_payload
