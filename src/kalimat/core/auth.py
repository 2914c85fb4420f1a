"""Bearer-token authentication.

Resolves an ``Authorization: Bearer <token>`` header to the calling user.
Two verifiers exist: one backed by the local auth_tokens table, one asking
the hosted auth service (``GET {url}/auth/v1/user``).
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from kalimat.db.database import get_db
from kalimat.errors import AuthError

logger = structlog.get_logger(__name__)


@dataclass
class AuthUser:
    """Authenticated caller, merged with its profile when available."""

    id: str
    email: str
    full_name: str = ""
    role: str = "user"
    preferences: dict[str, Any] = field(default_factory=dict)
    notification_settings: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email.split("@")[0]


class TokenVerifier(Protocol):
    """Maps an access token to (user_id, email)."""

    def verify(self, token: str) -> AuthUser | None: ...


class LocalTokenVerifier:
    """Tokens stored in the local SQLite auth_tokens table."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def verify(self, token: str) -> AuthUser | None:
        with get_db(self.db_path) as conn:
            row = conn.execute(
                "SELECT user_id, email FROM auth_tokens WHERE token = ?", (token,)
            ).fetchone()
        if row is None:
            return None
        return AuthUser(id=row["user_id"], email=row["email"])

    def issue(self, user_id: str, email: str) -> str:
        """Issue a new token for a local user."""
        token = secrets.token_urlsafe(32)
        with get_db(self.db_path) as conn:
            conn.execute(
                "INSERT INTO auth_tokens (token, user_id, email) VALUES (?, ?, ?)",
                (token, user_id, email),
            )
        logger.info("auth.token_issued", user_id=user_id)
        return token


class SupabaseTokenVerifier:
    """Tokens verified by the hosted auth service."""

    def __init__(
        self,
        url: str,
        api_key: str,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.transport = transport
        self.timeout = timeout

    def verify(self, token: str) -> AuthUser | None:
        try:
            with httpx.Client(transport=self.transport, timeout=self.timeout) as client:
                response = client.get(
                    f"{self.url}/auth/v1/user",
                    headers={"apikey": self.api_key, "Authorization": f"Bearer {token}"},
                )
        except httpx.RequestError as e:
            logger.error("auth.request_error", error=str(e))
            raise AuthError("Authentication service unreachable") from e

        if response.status_code != 200:
            logger.info("auth.rejected", status=response.status_code)
            return None

        data = response.json()
        if not data.get("id") or not data.get("email"):
            return None
        metadata = data.get("user_metadata") or {}
        return AuthUser(
            id=data["id"],
            email=data["email"],
            full_name=metadata.get("full_name", ""),
        )


def extract_bearer(header: str | None) -> str:
    """Strip the Bearer prefix from an Authorization header.

    Raises:
        AuthError: If the header is missing or empty
    """
    if not header:
        raise AuthError("Unauthorized")
    token = header[len("Bearer "):] if header.startswith("Bearer ") else header
    token = token.strip()
    if not token:
        raise AuthError("Unauthorized")
    return token


def resolve_bearer(header: str | None, verifier: TokenVerifier) -> AuthUser:
    """Resolve an Authorization header to the calling user.

    Raises:
        AuthError: If the header is missing or the token is not valid
    """
    token = extract_bearer(header)
    user = verifier.verify(token)
    if user is None:
        raise AuthError("Unauthorized")
    return user


def load_profile(client: Any, user: AuthUser) -> AuthUser:
    """Merge the user_profiles row into the user (full name, role, prefs).

    Args:
        client: EntityClient on an elevated backend
        user: Authenticated user

    Returns:
        The same user object, enriched in place
    """
    profile = client.User.first({"email": user.email})
    if profile is None and user.id:
        profile = client.User.first({"user_id": user.id})
    if profile is not None:
        user.full_name = profile.get("full_name") or user.full_name or user.email
        user.role = profile.get("role") or "user"
        user.preferences = profile.get("preferences") or {}
        user.notification_settings = profile.get("notification_settings") or {}
    return user


def update_me(client: Any, user: AuthUser, data: dict[str, Any]) -> dict[str, Any]:
    """Update the caller's own profile row.

    Raises:
        AuthError: If the caller has no profile
    """
    profile = client.User.first({"email": user.email})
    if profile is None:
        raise AuthError("Not authenticated")
    readonly = client.User.schema.caller_readonly()
    safe = {k: v for k, v in data.items() if k not in readonly}
    return client.User.update(profile["id"], safe)


def user_role(client: Any, user: AuthUser) -> str:
    """Role from user_roles, falling back to the profile role."""
    row = client.UserRole.first({"user_id": user.id})
    if row is not None:
        return row.get("role") or "user"
    return user.role
