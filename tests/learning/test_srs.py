"""Tests for SM-2 scheduling and review recording."""

from datetime import datetime, timedelta, timezone

import pytest

from kalimat.core.srs import (
    clamp_quality,
    due_cards,
    format_date_arabic,
    next_review_message,
    prioritize,
    review_word,
    status_label,
    update_card,
)

NOW = datetime(2024, 5, 3, 10, 0, tzinfo=timezone.utc)  # a Friday


def _card(**fields):
    card = {"id": 1, "word_id": 7, "efactor": 2.5, "interval": 0, "repetitions": 0, "is_new": True}
    card.update(fields)
    return card


class TestUpdateCard:
    """Tests for update_card."""

    def test_first_success_is_one_day(self):
        """First correct answer schedules tomorrow and raises the efactor."""
        updated = update_card(_card(), 5, NOW)
        assert updated["interval"] == 1
        assert updated["repetitions"] == 1
        assert updated["efactor"] == 2.6
        assert updated["next_review"] == (NOW + timedelta(days=1)).isoformat()
        assert updated["is_new"] is False
        assert updated["last_quality"] == 5
        assert updated["total_reviews"] == 1

    def test_second_success_is_six_days(self):
        updated = update_card(_card(efactor=2.6, interval=1, repetitions=1), 4, NOW)
        assert updated["interval"] == 6
        assert updated["efactor"] == 2.6

    def test_later_success_multiplies_interval(self):
        """Interval grows by the efactor, rounded."""
        updated = update_card(_card(efactor=2.6, interval=6, repetitions=2), 5, NOW)
        assert updated["interval"] == 16
        assert updated["efactor"] == 2.7
        assert updated["repetitions"] == 3

    def test_hard_answer_lowers_efactor(self):
        updated = update_card(_card(), 3, NOW)
        assert updated["efactor"] == 2.36

    def test_failure_resets(self):
        """A grade below 3 resets repetitions and interval but keeps the efactor."""
        updated = update_card(_card(efactor=2.2, interval=16, repetitions=4), 1, NOW)
        assert updated["interval"] == 1
        assert updated["repetitions"] == 0
        assert updated["efactor"] == 2.2

    def test_efactor_floor(self):
        updated = update_card(_card(efactor=1.3, interval=6, repetitions=2), 3, NOW)
        assert updated["efactor"] == 1.3

    def test_input_not_mutated(self):
        card = _card()
        update_card(card, 5, NOW)
        assert card["interval"] == 0

    @pytest.mark.parametrize("raw,clamped", [(-2, 0), (0, 0), (3, 3), (9, 5)])
    def test_quality_clamped(self, raw, clamped):
        assert clamp_quality(raw) == clamped


class TestMessages:
    """Tests for Arabic review reminders."""

    def test_format_date(self):
        assert format_date_arabic(NOW) == "الجمعة، 3 مايو 2024"

    def test_tomorrow_after_good_answer(self):
        message = next_review_message(NOW + timedelta(days=1), 1, 5)
        assert message == "🕓 مراجعتك القادمة ستكون غدًا، يوم السبت، 4 مايو 2024"

    def test_two_days_uses_dual(self):
        message = next_review_message(NOW + timedelta(days=2), 2, 3)
        assert "بعد 2 يومين" in message
        assert message.startswith("💪")

    def test_failure_encourages(self):
        message = next_review_message(NOW + timedelta(days=6), 6, 1)
        assert message.startswith("🔁")
        assert "بعد 6 أيام" in message


class TestScheduling:
    """Tests for due_cards, prioritize and status_label."""

    def test_due_cards(self):
        cards = [
            {"id": 1, "is_new": True, "next_review": (NOW + timedelta(days=3)).isoformat()},
            {"id": 2, "is_new": False, "next_review": None},
            {"id": 3, "is_new": False, "next_review": (NOW - timedelta(hours=1)).isoformat()},
            {"id": 4, "is_new": False, "next_review": (NOW + timedelta(days=1)).isoformat()},
        ]
        assert [c["id"] for c in due_cards(cards, NOW)] == [1, 2, 3]

    def test_prioritize_oldest_then_hardest(self):
        cards = [
            {"id": 1, "next_review": "2024-05-02T00:00:00+00:00", "efactor": 2.5},
            {"id": 2, "next_review": "2024-05-01T00:00:00+00:00", "efactor": 2.5},
            {"id": 3, "next_review": "2024-05-02T00:00:00+00:00", "efactor": 1.8},
            {"id": 4, "next_review": None, "efactor": 2.5},
        ]
        assert [c["id"] for c in prioritize(cards)] == [4, 2, 3, 1]

    @pytest.mark.parametrize(
        "interval,key",
        [(None, "new"), (0, "new"), (1, "new"), (6, "soon"), (20, "soon"), (21, "mastered")],
    )
    def test_status_label(self, interval, key):
        assert status_label(interval).key == key


class TestReviewWord:
    """Tests for review_word against the store."""

    def test_first_review_creates_card(self, as_alice, alice):
        stored = review_word(as_alice, alice, word_id=7, quality=5, now=NOW)
        assert stored["word_id"] == 7
        assert stored["created_by"] == alice.email
        assert stored["interval"] == 1
        assert stored["is_new"] is False

    def test_second_review_reuses_card(self, as_alice, alice):
        review_word(as_alice, alice, 7, 5, NOW)
        stored = review_word(as_alice, alice, 7, 4, NOW + timedelta(days=1))
        assert stored["interval"] == 6
        assert stored["total_reviews"] == 2
        assert len(as_alice.FlashCard.list()) == 1

    def test_cards_are_per_user(self, as_alice, as_bob, alice, bob):
        review_word(as_alice, alice, 7, 5, NOW)
        review_word(as_bob, bob, 7, 0, NOW)
        assert len(as_alice.FlashCard.filter(as_alice.FlashCard.owned_by(alice.email))) == 1
        bobs = as_bob.FlashCard.filter(as_bob.FlashCard.owned_by(bob.email))
        assert bobs[0]["last_quality"] == 0
