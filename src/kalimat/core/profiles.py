"""User profile bootstrap, admin settings and client error ingestion."""

from __future__ import annotations

import json
from typing import Any

import structlog

from kalimat.core.auth import user_role
from kalimat.errors import PermissionDeniedError, StoreError, ValidationError
from kalimat.utils.clock import iso, today_str

logger = structlog.get_logger(__name__)

DEFAULT_PREFERENCES = {
    "theme": "light",
    "learning_level": "all",
    "source_type": "all",
    "sound_effects_enabled": True,
    "confetti_enabled": True,
    "animations_enabled": True,
    "quiz_time_limit": 60,
}


def create_user_profile(client: Any, user: Any) -> dict[str, Any]:
    """Create the caller's profile and progress rows if missing.

    Calling it again is harmless: an existing profile is returned as is.

    Returns:
        Dict with keys: profile, message, and success for new profiles
    """
    existing = client.User.first({"email": user.email})
    if existing is not None:
        return {"message": "Profile already exists", "profile": existing}

    profile = client.User.create(
        {
            "user_id": user.id,
            "email": user.email,
            "full_name": user.full_name or user.email.split("@")[0],
            "role": "user",
            "preferences": dict(DEFAULT_PREFERENCES),
        }
    )

    if client.UserProgress.first(client.UserProgress.owned_by(user.email)) is None:
        client.UserProgress.create(
            {
                "created_by": user.email,
                "total_xp": 0,
                "current_level": 1,
                "words_learned": 0,
                "learned_words": [],
                "consecutive_login_days": 1,
                "last_login_date": today_str(),
            }
        )

    logger.info("profile.created", user=user.email)
    return {
        "success": True,
        "profile": profile,
        "message": "User profile and progress created successfully",
    }


def save_admin_setting(
    client: Any, user: Any, key: str | None, value: Any, description: str | None = None
) -> dict[str, Any]:
    """Insert or update an application setting.

    Raises:
        PermissionDeniedError: Caller is not an admin
        ValidationError: Missing key
    """
    if user_role(client, user) != "admin":
        raise PermissionDeniedError("غير مصرح - أدمن فقط")
    if not key:
        raise ValidationError("Setting key required")

    row = client.AppSettings.upsert(
        {"key": key, "value": value, "description": description}, "key"
    )
    logger.info("settings.saved", key=key, by=user.email)
    return row


def log_app_error(client: Any, payload: dict[str, Any]) -> dict[str, Any]:
    """Store an error reported by a client app.

    Only missing fields are reported back. A failed insert is logged and the
    report is still acknowledged, so the reporting app is never broken.

    Raises:
        ValidationError: error_message or context missing
    """
    error_message = payload.get("error_message")
    context = payload.get("context")
    if not error_message or not context:
        raise ValidationError("Missing required fields")

    details = payload.get("error_details")
    logger.error("app_error_reported", context=context, message=error_message, details=details)

    try:
        client.ErrorLog.create(
            {
                "error_message": error_message,
                "error_details": json.dumps(details, ensure_ascii=False) if details else "",
                "context": context,
                "user_email": payload.get("user_email") or "anonymous",
                "timestamp": iso(),
                "additional_data": payload.get("additional_data") or {},
            }
        )
    except StoreError as e:
        logger.error("app_error_store_failed", error=str(e))

    return {"success": True}
