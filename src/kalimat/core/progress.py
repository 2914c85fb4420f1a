"""Learner progress: XP, levels, quiz scoring, streaks.

Rules:
- level = total_xp // 100 + 1
- learning a new word: +10 XP
- quiz: 15 XP per correct answer + 5 XP per remaining heart
- quiz streak grows when at least 70% of answers are correct, else resets
- login streak grows on consecutive days, resets after a missed day
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog

from kalimat.core.srs import DEFAULT_EFACTOR, update_card
from kalimat.utils.clock import today_str, utc_now

logger = structlog.get_logger(__name__)

XP_PER_LEVEL = 100
XP_PER_WORD = 10
XP_PER_CORRECT = 15
XP_PER_HEART = 5
STREAK_THRESHOLD = 0.7


@dataclass
class QuizAnswer:
    """One answered question."""

    word_id: int | None
    is_correct: bool
    selected: str | None = None
    srs_quality: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"word_id": self.word_id, "is_correct": self.is_correct}
        if self.selected is not None:
            result["selected"] = self.selected
        if self.srs_quality is not None:
            result["srs_quality"] = self.srs_quality
        return result


@dataclass
class QuizOutcome:
    """Result of finishing a quiz."""

    session: dict[str, Any]
    score: int
    correct: int
    total: int
    xp_earned: int
    new_total_xp: int
    new_level: int
    leveled_up: bool
    quiz_streak: int
    perfect: bool
    warnings: list[str] = field(default_factory=list)


def level_for_xp(total_xp: int) -> int:
    """Level reached with the given XP."""
    return max(total_xp, 0) // XP_PER_LEVEL + 1


def quiz_score(correct: int, total: int) -> int:
    """Percentage score, rounded half up; 0 for an empty quiz."""
    if total <= 0:
        return 0
    return int(correct * 100 / total + 0.5)


def quiz_xp(correct: int, hearts: int) -> int:
    """XP earned by a quiz."""
    return correct * XP_PER_CORRECT + max(hearts, 0) * XP_PER_HEART


def next_quiz_streak(current: int, correct: int, total: int) -> int:
    """Quiz streak after a quiz."""
    if total > 0 and correct >= total * STREAK_THRESHOLD:
        return current + 1
    return 0


def get_or_create_progress(client: Any, user: Any) -> dict[str, Any]:
    """The user's progress row, created with defaults on first use."""
    progress = client.UserProgress.first(client.UserProgress.owned_by(user.email))
    if progress is None:
        progress = client.UserProgress.create(
            {
                "created_by": user.email,
                "total_xp": 0,
                "current_level": 1,
                "words_learned": 0,
                "learned_words": [],
                "quiz_streak": 0,
                "consecutive_login_days": 1,
                "last_login_date": today_str(),
            }
        )
        logger.info("progress.created", user=user.email)
    return progress


def finish_quiz(
    client: Any,
    user: Any,
    answers: list[QuizAnswer],
    hearts: int = 0,
    completion_time: int = 0,
    quiz_type: str = "meaning",
    now: datetime | None = None,
) -> QuizOutcome:
    """Record a finished quiz and credit the learner.

    Args:
        client: EntityClient acting as the user
        user: Authenticated user
        answers: Answered questions in order
        hearts: Hearts left at the end of the quiz
        completion_time: Seconds spent
        quiz_type: Quiz variant label

    Returns:
        QuizOutcome with the stored session and progress changes
    """
    now = now or utc_now()
    total = len(answers)
    correct = sum(1 for a in answers if a.is_correct)
    xp_earned = quiz_xp(correct, hearts)

    session = client.QuizSession.create(
        {
            "score": quiz_score(correct, total),
            "total_questions": total,
            "correct_answers": correct,
            "xp_earned": xp_earned,
            "questions_data": [a.to_dict() for a in answers],
            "completion_time": completion_time,
            "quiz_type": quiz_type,
        }
    )

    progress = get_or_create_progress(client, user)
    previous_level = progress.get("current_level") or 1
    new_total = (progress.get("total_xp") or 0) + xp_earned
    new_level = level_for_xp(new_total)
    streak = next_quiz_streak(progress.get("quiz_streak") or 0, correct, total)

    client.UserProgress.update(
        progress["id"],
        {
            "total_xp": new_total,
            "current_level": new_level,
            "quiz_streak": streak,
            "last_quiz_date": today_str(now),
        },
    )

    logger.info(
        "quiz_finished",
        user=user.email,
        correct=correct,
        total=total,
        xp_earned=xp_earned,
        level=new_level,
    )

    return QuizOutcome(
        session=session,
        score=session.get("score", quiz_score(correct, total)),
        correct=correct,
        total=total,
        xp_earned=xp_earned,
        new_total_xp=new_total,
        new_level=new_level,
        leveled_up=new_level > previous_level,
        quiz_streak=streak,
        perfect=total > 0 and correct == total,
    )


def learn_word(client: Any, user: Any, word_id: int, now: datetime | None = None) -> dict[str, Any]:
    """Mark a word as learned.

    A word already in the learner's deck earns nothing. Otherwise a
    flashcard is created and reviewed as perfect, XP is credited and a
    ``word_learned`` activity is logged.

    Returns:
        Dict with keys: is_new, xp_gained, total_xp, level, leveled_up
    """
    now = now or utc_now()
    cards = client.FlashCard
    existing = cards.first({"word_id": word_id, **cards.owned_by(user.email)})
    progress = get_or_create_progress(client, user)
    old_xp = progress.get("total_xp") or 0

    if existing is not None:
        return {
            "is_new": False,
            "xp_gained": 0,
            "total_xp": old_xp,
            "level": level_for_xp(old_xp),
            "leveled_up": False,
        }

    card = cards.create(
        {
            "word_id": word_id,
            "is_new": True,
            "interval": 0,
            "efactor": DEFAULT_EFACTOR,
            "repetitions": 0,
            "next_review": now.isoformat(),
        }
    )
    reviewed = update_card(card, 5, now)
    cards.update(card["id"], {k: v for k, v in reviewed.items() if k not in ("id", "created_date")})

    learned = list(dict.fromkeys([*(progress.get("learned_words") or []), word_id]))
    new_xp = old_xp + XP_PER_WORD
    client.UserProgress.update(
        progress["id"],
        {
            "learned_words": learned,
            "words_learned": len(learned),
            "total_xp": new_xp,
            "current_level": level_for_xp(new_xp),
        },
    )
    client.ActivityLog.create({"activity_type": "word_learned", "details": {"word_id": word_id}})

    logger.info("word_learned", user=user.email, word_id=word_id, total_xp=new_xp)
    return {
        "is_new": True,
        "xp_gained": XP_PER_WORD,
        "total_xp": new_xp,
        "level": level_for_xp(new_xp),
        "leveled_up": level_for_xp(new_xp) > level_for_xp(old_xp),
    }


def record_login(client: Any, user: Any, now: datetime | None = None) -> dict[str, Any]:
    """Update the login streak and log a ``login`` activity.

    Returns:
        The updated progress row
    """
    now = now or utc_now()
    today = today_str(now)
    yesterday = today_str(now - timedelta(days=1))

    progress = get_or_create_progress(client, user)
    last = progress.get("last_login_date")
    streak = progress.get("consecutive_login_days") or 0

    if last == today:
        new_streak = max(streak, 1)
    elif last == yesterday:
        new_streak = streak + 1
    else:
        new_streak = 1

    updated = client.UserProgress.update(
        progress["id"],
        {"consecutive_login_days": new_streak, "last_login_date": today},
    )
    client.ActivityLog.create({"activity_type": "login", "details": {}})

    logger.debug("login_recorded", user=user.email, streak=new_streak)
    return updated
