"""FastAPI dependencies: services, caller identity and error mapping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Depends, Header, HTTPException, Request, status

from kalimat.config.app_config import AppConfig
from kalimat.core.auth import AuthUser, TokenVerifier, extract_bearer, load_profile, resolve_bearer, user_role
from kalimat.db.backends import Backend
from kalimat.db.repository import EntityClient
from kalimat.errors import (
    AuthError,
    ConflictError,
    EntityNotFoundError,
    FilterError,
    KalimatError,
    PermissionDeniedError,
    QuranApiError,
    ValidationError,
)
from kalimat.quran.client import QuranApiClient

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Process-wide collaborators, built once by create_app."""

    config: AppConfig
    backend: Backend
    verifier: TokenVerifier
    quran_api: QuranApiClient


_STATUS_BY_ERROR: list[tuple[type[KalimatError], int]] = [
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (EntityNotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (FilterError, status.HTTP_400_BAD_REQUEST),
    (QuranApiError, status.HTTP_502_BAD_GATEWAY),
]


def http_error(error: KalimatError) -> HTTPException:
    """Translate a domain error to the HTTP status the clients expect."""
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, error_status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            code = error_status
            break

    if code >= 500:
        logger.error("request_failed", error=str(error), error_type=type(error).__name__)

    detail: Any = str(error)
    if isinstance(error, ConflictError) and error.payload:
        detail = {"message": str(error), **error.payload}
    return HTTPException(status_code=code, detail=detail)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_elevated_client(services: Services = Depends(get_services)) -> EntityClient:
    """Client with no bound user on the service-role backend."""
    return EntityClient(services.backend, page_size=services.config.store.page_size)


def get_current_user(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> AuthUser:
    """Resolve the bearer token and merge the caller's profile. 401 otherwise."""
    try:
        user = resolve_bearer(authorization, services.verifier)
        return load_profile(EntityClient(services.backend), user)
    except KalimatError as e:
        raise http_error(e) from e


def get_user_client(
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> EntityClient:
    """Client acting as the caller (stamps ownership on create)."""
    return EntityClient(services.backend, user, services.config.store.page_size)


def require_batch_caller(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> None:
    """Allow the service-role key itself, or an admin user."""
    service_key = services.config.store.get_service_key()
    try:
        token = extract_bearer(authorization)
        if service_key and token == service_key:
            return
        client = EntityClient(services.backend)
        user = load_profile(client, resolve_bearer(authorization, services.verifier))
        if user_role(client, user) != "admin":
            raise PermissionDeniedError("غير مصرح - أدمن فقط")
    except KalimatError as e:
        raise http_error(e) from e
