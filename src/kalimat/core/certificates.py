"""Course completion certificates."""

from __future__ import annotations

import secrets
import string
import time
from typing import Any

import structlog

from kalimat.errors import EntityNotFoundError, ValidationError
from kalimat.utils.clock import iso

logger = structlog.get_logger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def certificate_code(now_ms: int | None = None) -> str:
    """Certificate code like ``CERT-1718000000000-K3F9QZ``."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"CERT-{now_ms}-{suffix}"


def issue_certificate(client: Any, user: Any, course_id: Any) -> dict[str, Any]:
    """Issue (or return the already issued) certificate for a course.

    Args:
        client: Elevated EntityClient bound to the caller
        user: Authenticated user
        course_id: Completed course

    Returns:
        Dict with keys: certificate, message, and success for new certificates

    Raises:
        ValidationError: Missing course id or course not completed
        EntityNotFoundError: Unknown course
    """
    if not course_id:
        raise ValidationError("Course ID required")

    course = client.Course.first({"id": course_id})
    if course is None:
        raise EntityNotFoundError("Course", course_id)

    progress = client.UserCourseProgress.first({"user_email": user.email, "course_id": course_id})
    if progress is None or not progress.get("is_completed"):
        raise ValidationError("يجب إكمال الدورة أولاً للحصول على الشهادة")

    existing = client.Certificate.first({"user_email": user.email, "course_id": course_id})
    if existing is not None:
        return {"certificate": existing, "message": "Certificate already issued"}

    profile = client.User.first({"email": user.email})
    user_name = (profile or {}).get("full_name") or user.email.split("@")[0]

    certificate = client.Certificate.create(
        {
            "user_name": user_name,
            "course_id": course_id,
            "course_title": course.get("title"),
            "code": certificate_code(),
            "issue_date": iso(),
        }
    )
    logger.info("certificate.issued", user=user.email, course_id=course_id, code=certificate["code"])
    return {"success": True, "certificate": certificate, "message": "تم إصدار الشهادة بنجاح"}
