"""Leaderboards: all-time, weekly and per group."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any

import structlog

from kalimat.utils.clock import parse_iso, utc_now

logger = structlog.get_logger(__name__)

GLOBAL_SIZE = 50
WEEKLY_SIZE = 50
GROUP_COUNT = 5
GROUP_SIZE = 10
WEEKLY_SESSION_WINDOW = 1000


@dataclass
class LeaderboardEntry:
    """One ranked learner."""

    rank: int
    email: str
    name: str
    total_xp: int = 0
    level: int = 1
    words_learned: int = 0
    quiz_streak: int = 0
    weekly_xp: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _names_by_email(profiles: list[dict[str, Any]]) -> dict[str, str]:
    return {p["email"]: p.get("full_name") or p["email"] for p in profiles if p.get("email")}


def _by_xp(progress_rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # sorted() is stable, so ties keep store order
    return sorted(progress_rows, key=lambda p: p.get("total_xp") or 0, reverse=True)


def _entry(rank: int, row: dict[str, Any], names: dict[str, str]) -> LeaderboardEntry:
    email = row.get("created_by") or row.get("user_email") or ""
    return LeaderboardEntry(
        rank=rank,
        email=email,
        name=names.get(email, email),
        total_xp=row.get("total_xp") or 0,
        level=row.get("current_level") or 1,
        words_learned=row.get("words_learned") or 0,
        quiz_streak=row.get("quiz_streak") or 0,
    )


def global_leaderboard(
    progress_rows: list[dict[str, Any]],
    profiles: list[dict[str, Any]],
    size: int = GLOBAL_SIZE,
) -> list[LeaderboardEntry]:
    """Top learners by total XP."""
    names = _names_by_email(profiles)
    return [_entry(i + 1, row, names) for i, row in enumerate(_by_xp(progress_rows)[:size])]


def weekly_leaderboard(
    sessions: list[dict[str, Any]],
    profiles: list[dict[str, Any]],
    now: datetime | None = None,
    size: int = WEEKLY_SIZE,
) -> list[LeaderboardEntry]:
    """Top learners by XP earned in quizzes over the last 7 days."""
    now = now or utc_now()
    since = now - timedelta(days=7)
    names = _names_by_email(profiles)

    weekly: dict[str, int] = {}
    for session in sessions:
        created = parse_iso(session.get("created_date"))
        if created is None or created < since:
            continue
        email = session.get("created_by") or session.get("user_email")
        if not email:
            continue
        weekly[email] = weekly.get(email, 0) + (session.get("xp_earned") or 0)

    ranked = sorted(weekly.items(), key=lambda item: item[1], reverse=True)[:size]
    return [
        LeaderboardEntry(rank=i + 1, email=email, name=names.get(email, email), weekly_xp=xp)
        for i, (email, xp) in enumerate(ranked)
    ]


def group_leaderboards(
    groups: list[dict[str, Any]],
    progress_rows: list[dict[str, Any]],
    profiles: list[dict[str, Any]],
    group_count: int = GROUP_COUNT,
    size: int = GROUP_SIZE,
) -> list[dict[str, Any]]:
    """Per-group rankings for the first few groups."""
    names = _names_by_email(profiles)
    boards = []
    for group in groups[:group_count]:
        members = set(group.get("members") or [])
        rows = [p for p in progress_rows if p.get("created_by") in members]
        ranked = [_entry(i + 1, row, names) for i, row in enumerate(_by_xp(rows)[:size])]
        boards.append({"group": group, "members": ranked})
    return boards


def load_leaderboards(client: Any, now: datetime | None = None) -> dict[str, Any]:
    """Build all three boards from the store.

    Args:
        client: EntityClient (reads across users, so typically elevated)

    Returns:
        Dict with keys: global, weekly, groups
    """
    progress_rows = client.UserProgress.list()
    profiles = client.User.list()
    sessions = client.QuizSession.list("-created_date", WEEKLY_SESSION_WINDOW)
    groups = client.Group.list()

    result = {
        "global": global_leaderboard(progress_rows, profiles),
        "weekly": weekly_leaderboard(sessions, profiles, now),
        "groups": group_leaderboards(groups, progress_rows, profiles),
    }
    logger.debug(
        "leaderboards_loaded",
        learners=len(progress_rows),
        weekly=len(result["weekly"]),
        groups=len(result["groups"]),
    )
    return result
