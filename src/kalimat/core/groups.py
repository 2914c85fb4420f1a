"""Study groups: joining by code."""

from __future__ import annotations

from typing import Any

import structlog

from kalimat.errors import ConflictError, EntityNotFoundError, PermissionDeniedError, ValidationError

logger = structlog.get_logger(__name__)


def find_group_by_code(client: Any, join_code: str) -> dict[str, Any] | None:
    """Group whose join code matches, ignoring case and surrounding spaces."""
    return client.Group.first({"join_code": {"$ilike": join_code.strip()}})


def join_group(client: Any, user: Any, join_code: str | None) -> dict[str, Any]:
    """Add the caller to the group with this join code.

    Args:
        client: Elevated EntityClient (groups are not writable by members)
        user: Authenticated user
        join_code: Code entered by the user

    Returns:
        The group as it was found, before the caller was added

    Raises:
        ValidationError: Missing code
        EntityNotFoundError: No group has this code
        PermissionDeniedError: Caller is banned from the group
        ConflictError: Caller is already a member (payload carries the group)
    """
    if not join_code or not join_code.strip():
        raise ValidationError("كود الانضمام مطلوب")

    group = find_group_by_code(client, join_code)
    if group is None:
        logger.info("group.join_unknown_code", user=user.email)
        raise EntityNotFoundError("Group", join_code.strip())

    if user.email in (group.get("banned_members") or []):
        logger.info("group.join_banned", user=user.email, group_id=group["id"])
        raise PermissionDeniedError("محظور")

    members = group.get("members") or []
    if user.email in members:
        raise ConflictError("عضو مسبقاً", payload={"group": group})

    client.Group.update(group["id"], {"members": [*members, user.email]})
    logger.info("group.joined", user=user.email, group_id=group["id"])
    return group
