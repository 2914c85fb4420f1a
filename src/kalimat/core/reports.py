"""Learner reports and behaviour analysis."""

from __future__ import annotations

from typing import Any

import structlog

from kalimat.utils.clock import parse_iso

logger = structlog.get_logger(__name__)

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

HISTORY_WINDOW = 500
AVERAGE_SAMPLE = 50
SYSTEM_QUIZ_AVG = 75
QUIZ_AVG_TARGET = 70
STREAK_TIP_BELOW = 3

LOGIN_WINDOW = 50
DEFAULT_BEST_HOUR = 20
WEAK_INTERVAL = 3
WEAK_WORD_LIMIT = 5
SUGGESTED_SURAH = "النبأ"

DEFAULT_PROGRESS = {"words_learned": 0, "total_xp": 0, "current_level": 1}


def quiz_average(sessions: list[dict[str, Any]]) -> int:
    """Mean percentage over sessions with at least one question, rounded."""
    percentages = [
        (s.get("correct_answers") or 0) / s["total_questions"] * 100
        for s in sessions
        if (s.get("total_questions") or 0) > 0
    ]
    if not percentages:
        return 0
    return int(sum(percentages) / len(percentages) + 0.5)


def monthly_history(logs: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Count activity logs per "Mon YYYY", in first-seen order."""
    counts: dict[str, int] = {}
    for log in logs:
        created = parse_iso(log.get("created_date"))
        if created is None:
            continue
        key = f"{MONTHS[created.month - 1]} {created.year}"
        counts[key] = counts.get(key, 0) + 1
    return [{"name": name, "words": words} for name, words in counts.items()]


def system_averages(progress_rows: list[dict[str, Any]]) -> dict[str, int]:
    """Floor of mean words and XP over a sample of learners."""
    count = len(progress_rows)
    if count == 0:
        return {"words": 0, "xp": 0}
    words = sum(p.get("words_learned") or 0 for p in progress_rows)
    xp = sum(p.get("total_xp") or 0 for p in progress_rows)
    return {"words": words // count, "xp": xp // count}


def build_suggestions(words_learned: int, avg_words: int, quiz_avg: int, streak: int) -> list[dict[str, Any]]:
    """Coaching suggestions for the report page."""
    suggestions: list[dict[str, Any]] = []

    if words_learned < avg_words:
        suggestions.append(
            {
                "id": 1,
                "title": "زد من حصيلتك اللغوية",
                "description": f"أنت أقل من متوسط المستخدمين بـ {avg_words - words_learned} كلمة. حاول تعلم 5 كلمات جديدة اليوم!",
                "actionLabel": "تعلم الآن",
                "actionLink": "/Learn",
                "type": "warning",
            }
        )
    else:
        suggestions.append(
            {
                "id": 1,
                "title": "أداء ممتاز!",
                "description": f"أنت متقدم على المتوسط بـ {words_learned - avg_words} كلمة. حافظ على هذا الزخم!",
                "actionLabel": "تابع التعلم",
                "actionLink": "/Learn",
                "type": "success",
            }
        )

    if quiz_avg < QUIZ_AVG_TARGET:
        suggestions.append(
            {
                "id": 2,
                "title": "تحسين دقة الإجابات",
                "description": f"معدل درجاتك في الاختبارات ({quiz_avg}%) يمكن أن يكون أفضل. جرب مراجعة الكلمات التي أخطأت فيها.",
                "actionLabel": "المراجعة الذكية",
                "actionLink": "/SmartReview",
                "type": "info",
            }
        )
    else:
        suggestions.append(
            {
                "id": 2,
                "title": "دقة عالية!",
                "description": f"معدل إجاباتك الصحيحة {quiz_avg}%، وهذا رائع. هل أنت مستعد لتحدي أصعب؟",
                "actionLabel": "تحدي جديد",
                "actionLink": "/QuizTypes",
                "type": "success",
            }
        )

    if streak < STREAK_TIP_BELOW:
        suggestions.append(
            {
                "id": 3,
                "title": "الاستمرارية هي السر",
                "description": "حاول استخدام التطبيق يومياً لمدة 7 أيام متتالية لمضاعفة سرعة تعلمك.",
                "actionLabel": None,
                "actionLink": None,
                "type": "tip",
            }
        )

    return suggestions


def get_reports_data(client: Any, user: Any) -> dict[str, Any]:
    """Build the report payload for a learner.

    Args:
        client: Elevated EntityClient (reads other learners for averages)
        user: Authenticated user

    Returns:
        Dict with keys: stats, averages, history, suggestions
    """
    email = user.email
    progress = client.UserProgress.first(client.UserProgress.owned_by(email)) or dict(DEFAULT_PROGRESS)

    sessions = client.QuizSession.filter(client.QuizSession.owned_by(email))
    quiz_avg = quiz_average(sessions)

    logs = client.ActivityLog.filter(
        {"user_email": email, "activity_type": "word_learned"},
        "-created_date",
        HISTORY_WINDOW,
    )
    history = monthly_history(logs)

    sample = client.UserProgress.list("-updated_date", AVERAGE_SAMPLE)
    averages = system_averages(sample)

    words_learned = progress.get("words_learned") or 0
    streak = progress.get("consecutive_login_days") or 1

    logger.info("report_generated", user=email, quiz_avg=quiz_avg, months=len(history))
    return {
        "stats": {
            "wordsLearned": words_learned,
            "totalXP": progress.get("total_xp") or 0,
            "level": progress.get("current_level") or 1,
            "quizAvg": quiz_avg,
            "streak": streak,
        },
        "averages": {
            "words": averages["words"],
            "xp": averages["xp"],
            "quizAvg": SYSTEM_QUIZ_AVG,
        },
        "history": history,
        "suggestions": build_suggestions(words_learned, averages["words"], quiz_avg, streak),
    }


def best_review_hour(login_logs: list[dict[str, Any]]) -> int:
    """Most frequent login hour (UTC); ties go to the later hour."""
    hours: dict[int, int] = {}
    for log in login_logs:
        created = parse_iso(log.get("created_date"))
        if created is not None:
            hours[created.hour] = hours.get(created.hour, 0) + 1
    if not hours:
        return DEFAULT_BEST_HOUR
    return max(sorted(hours), key=lambda h: (hours[h], h))


def analyze_user_behavior(client: Any, user: Any) -> dict[str, Any]:
    """Best review time, weak words and a suggested surah.

    Returns:
        Dict with keys: bestReviewTime, weakWords, suggestedSurah, smartAlerts
    """
    email = user.email
    logins = client.ActivityLog.filter(
        {"user_email": email, "activity_type": "login"}, "-created_date", LOGIN_WINDOW
    )
    hour = best_review_hour(logins)

    weak_cards = client.FlashCard.filter(
        {**client.FlashCard.owned_by(email), "interval": {"$lt": WEAK_INTERVAL}},
        limit=WEAK_WORD_LIMIT,
    )
    word_ids = [c["word_id"] for c in weak_cards if c.get("word_id") is not None]
    weak_words = client.QuranicWord.filter({"id": {"$in": word_ids}}) if word_ids else []

    alerts = [
        f"أفضل وقت للمراجعة هو {hour}:00 بناءً على نشاطك.",
        f"لديك {len(weak_words)} كلمات تحتاج لتركيز إضافي." if weak_words else "مستواك ممتاز في الكلمات الحالية!",
        f"نقترح عليك البدء بتعلم سورة {SUGGESTED_SURAH}.",
    ]

    logger.info("behavior_analyzed", user=email, best_hour=hour, weak_words=len(weak_words))
    return {
        "bestReviewTime": f"{hour}:00",
        "weakWords": [w.get("word") for w in weak_words],
        "suggestedSurah": SUGGESTED_SURAH,
        "smartAlerts": alerts,
    }
