"""Spaced repetition (SM-2).

Each flashcard carries an easiness factor, an interval in days and a
repetition count. A review graded 0-5 moves the card:

- quality < 3: repetitions reset to 0, interval back to 1 day
- otherwise: interval 1, then 6, then previous interval * efactor
  (rounded), and the efactor is adjusted by
  EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)), never below 1.3

Quality scale:
    5 perfect, 4 correct after hesitation, 3 correct with difficulty,
    2 wrong but easy once seen, 1 wrong but remembered, 0 blackout
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from kalimat.utils.clock import iso, parse_iso, utc_now

logger = structlog.get_logger(__name__)

DEFAULT_EFACTOR = 2.5
MIN_EFACTOR = 1.3
MAX_QUALITY = 5

ARABIC_WEEKDAYS = ["الاثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت", "الأحد"]
ARABIC_MONTHS = [
    "يناير", "فبراير", "مارس", "أبريل", "مايو", "يونيو",
    "يوليو", "أغسطس", "سبتمبر", "أكتوبر", "نوفمبر", "ديسمبر",
]


@dataclass(frozen=True)
class StatusLabel:
    """Display status of a card by interval."""

    key: str
    label: str


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_quality(quality: int) -> int:
    """Clamp a review grade into [0, 5]."""
    return max(0, min(int(quality), MAX_QUALITY))


def update_card(card: dict[str, Any], quality: int, now: datetime | None = None) -> dict[str, Any]:
    """Apply one SM-2 review to a flashcard.

    Args:
        card: Current card fields (efactor, interval, repetitions, ...)
        quality: Review grade; values outside 0-5 are clamped
        now: Review time (default: current UTC time)

    Returns:
        A new dict with the card's fields updated; the input is not mutated
    """
    now = now or utc_now()
    quality = clamp_quality(quality)

    efactor = card.get("efactor") or DEFAULT_EFACTOR
    interval = card.get("interval") or 1
    repetitions = card.get("repetitions") or 0

    if quality < 3:
        repetitions = 0
        interval = 1
    else:
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            interval = _round_half_up(interval * efactor)

        efactor = efactor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
        efactor = max(efactor, MIN_EFACTOR)
        repetitions += 1

    next_review = now + timedelta(days=interval)

    updated = dict(card)
    updated.update(
        {
            "efactor": _round_half_up(efactor * 100) / 100,
            "interval": interval,
            "repetitions": repetitions,
            "next_review": iso(next_review),
            "next_review_message": next_review_message(next_review, interval, quality),
            "last_review": iso(now),
            "is_new": False,
            "last_quality": quality,
            "total_reviews": (card.get("total_reviews") or 0) + 1,
        }
    )
    return updated


def due_cards(cards: list[dict[str, Any]], now: datetime | None = None) -> list[dict[str, Any]]:
    """Cards due for review.

    New cards and cards without a next review date are always due.
    """
    now = now or utc_now()
    due = []
    for card in cards:
        if card.get("is_new"):
            due.append(card)
            continue
        next_review = parse_iso(card.get("next_review"))
        if next_review is None or next_review <= now:
            due.append(card)

    logger.debug("srs.due_cards", total=len(cards), due=len(due))
    return due


def prioritize(cards: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order cards oldest-due first, then hardest (lowest efactor) first."""
    floor = datetime.min.replace(tzinfo=timezone.utc)

    def key(card: dict[str, Any]) -> tuple[datetime, float]:
        return (
            parse_iso(card.get("next_review")) or floor,
            card.get("efactor") or DEFAULT_EFACTOR,
        )

    return sorted(cards, key=key)


def status_label(interval: int | None) -> StatusLabel:
    """Learning status by interval: new, due soon, or mastered."""
    interval = interval or 0
    if interval <= 1:
        return StatusLabel("new", "تعلم جديد")
    if interval < 21:
        return StatusLabel("soon", "مراجعة قريبة")
    return StatusLabel("mastered", "متقن")


def format_date_arabic(moment: datetime) -> str:
    """Long Arabic date, e.g. "الجمعة، 3 مايو 2024"."""
    weekday = ARABIC_WEEKDAYS[moment.weekday()]
    month = ARABIC_MONTHS[moment.month - 1]
    return f"{weekday}، {moment.day} {month} {moment.year}"


def next_review_message(next_review: datetime, interval: int, quality: int) -> str:
    """Reminder text for the next review, tuned to the answer quality."""
    formatted = format_date_arabic(next_review)

    if interval == 0:
        day_text = "اليوم"
    elif interval == 1:
        day_text = "غدًا"
    else:
        day_text = f"بعد {interval} {'يومين' if interval == 2 else 'أيام'}"

    if quality <= 2:
        return f"🔁 لا تقلق، ستراجعها {day_text} إن شاء الله لتثبيتها بإذن الله ❤️ (يوم {formatted})"
    if quality == 3:
        return f"💪 إن شاء الله المراجعة قريبًا {day_text}، يوم {formatted}"
    return f"🕓 مراجعتك القادمة ستكون {day_text}، يوم {formatted}"


def review_word(client: Any, user: Any, word_id: int, quality: int, now: datetime | None = None) -> dict[str, Any]:
    """Record a review of a word for a user.

    Creates the user's flashcard for the word on first review.

    Args:
        client: EntityClient acting as the user
        user: Authenticated user
        word_id: Reviewed word
        quality: Review grade (0-5)

    Returns:
        The stored flashcard
    """
    cards = client.FlashCard
    conditions = {"word_id": word_id, **cards.owned_by(user.email)}
    card = cards.first(conditions)
    if card is None:
        card = cards.create({"word_id": word_id, "is_new": True, "efactor": DEFAULT_EFACTOR})

    updated = update_card(card, quality, now)
    fields = {
        k: updated[k]
        for k in (
            "efactor",
            "interval",
            "repetitions",
            "next_review",
            "next_review_message",
            "last_review",
            "is_new",
            "last_quality",
            "total_reviews",
        )
    }
    stored = cards.update(card["id"], fields)
    logger.info(
        "srs.reviewed",
        word_id=word_id,
        quality=updated["last_quality"],
        interval=updated["interval"],
    )
    return stored
