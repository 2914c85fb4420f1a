"""Daily notification batch.

Four kinds of notification are produced in one pass over all users:
review reminders, streak warnings, group challenge invites and streak
milestone congratulations. Each kind can be switched off per user in
``notification_settings`` (missing means enabled).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from kalimat.utils.clock import parse_iso, today_str, utc_now

logger = structlog.get_logger(__name__)

STREAK_MILESTONES = (7, 14, 30, 60, 100)


def _enabled(profile: dict[str, Any] | None, setting: str) -> bool:
    settings = (profile or {}).get("notification_settings") or {}
    return settings.get(setting) is not False


def _notification(email: str, kind: str, title: str, message: str, icon: str, action_url: str) -> dict[str, Any]:
    return {
        "user_email": email,
        "notification_type": kind,
        "title": title,
        "message": message,
        "icon": icon,
        "action_url": action_url,
        "is_read": False,
    }


def _is_due(card: dict[str, Any], now: datetime) -> bool:
    next_review = parse_iso(card.get("next_review"))
    return next_review is None or next_review <= now


def build_daily_notifications(
    profiles: list[dict[str, Any]],
    progress_rows: list[dict[str, Any]],
    flashcards: list[dict[str, Any]],
    groups: list[dict[str, Any]],
    challenges: list[dict[str, Any]],
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Compute the notifications to send today, without storing them."""
    now = now or utc_now()
    today = today_str(now)
    progress_by_email = {p.get("created_by"): p for p in progress_rows}
    profile_by_email = {p.get("email"): p for p in profiles}
    notifications: list[dict[str, Any]] = []

    for profile in profiles:
        email = profile.get("email")
        due = [c for c in flashcards if c.get("created_by") == email and _is_due(c, now)]
        if due and _enabled(profile, "daily_review_enabled"):
            notifications.append(
                _notification(
                    email,
                    "review_reminder",
                    "🔔 لديك كلمات للمراجعة",
                    f"لديك {len(due)} كلمة مستحقة للمراجعة اليوم",
                    "📚",
                    "/SmartReview",
                )
            )

    for profile in profiles:
        email = profile.get("email")
        last_login = (progress_by_email.get(email) or {}).get("last_login_date")
        if last_login and last_login != today and _enabled(profile, "streak_warning_enabled"):
            notifications.append(
                _notification(
                    email,
                    "streak_warning",
                    "⚠️ انتبه! سلسلتك في خطر",
                    "لم تسجل دخول اليوم، سجل الآن للحفاظ على سلسلتك",
                    "🔥",
                    "/Dashboard",
                )
            )

    groups_by_id = {g.get("id"): g for g in groups}
    for challenge in challenges:
        start = parse_iso(challenge.get("start_date"))
        if start is None or today_str(start) != today or not challenge.get("is_active"):
            continue
        group = groups_by_id.get(challenge.get("group_id"))
        if group is None:
            continue
        for member in group.get("members") or []:
            if _enabled(profile_by_email.get(member), "group_challenge_enabled"):
                notifications.append(
                    _notification(
                        member,
                        "challenge_invite",
                        f"🎯 تحدي جديد في {group.get('name')}",
                        challenge.get("title") or "",
                        "🏆",
                        f"/GroupDetail?id={group.get('id')}",
                    )
                )

    for profile in profiles:
        email = profile.get("email")
        streak = (progress_by_email.get(email) or {}).get("consecutive_login_days") or 0
        if streak in STREAK_MILESTONES:
            notifications.append(
                _notification(
                    email,
                    "achievement_earned",
                    f"🎉 مبروك! {streak} يوم متواصل",
                    f"أنت رائع! حافظت على سلسلة {streak} يوم متتالي",
                    "🔥",
                    "/Dashboard",
                )
            )

    return notifications


def send_daily_notifications(client: Any, now: datetime | None = None) -> dict[str, Any]:
    """Compute and store today's notifications for every user.

    Args:
        client: Elevated EntityClient with no bound user

    Returns:
        Dict with keys: success, notificationsSent, message
    """
    notifications = build_daily_notifications(
        profiles=client.User.list(),
        progress_rows=client.UserProgress.list(),
        flashcards=client.FlashCard.list(),
        groups=client.Group.list(),
        challenges=client.GroupChallenge.list(),
        now=now,
    )
    client.Notification.bulk_create(notifications)

    sent = len(notifications)
    logger.info("notifications.sent", count=sent)
    return {
        "success": True,
        "notificationsSent": sent,
        "message": f"تم إرسال {sent} إشعار بنجاح",
    }
