"""Generic entity endpoints.

Expose the repository of any exposed entity to authenticated callers:

    GET    /api/entities/{entity}?sort=-created_date&limit=50
    POST   /api/entities/{entity}/filter    {"where": {...}, "sort": ..., "limit": ...}
    GET    /api/entities/{entity}/{id}
    POST   /api/entities/{entity}
    PATCH  /api/entities/{entity}/{id}
    DELETE /api/entities/{entity}/{id}

Write rules, on every store:
- Entities declared with ``exposed=False`` are not served at all.
- Ownership columns and ``readonly`` columns are dropped from request data.
- Records of user-owned entities can only be changed by their owner.
- Entities without an owner (reference content) are writable by admins only.

On the hosted store the caller's own token is forwarded, so row-level
security applies on top of these rules.
"""

from typing import Any, Iterator

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from kalimat.db.backends import PostgrestBackend, open_backend
from kalimat.db.entities import ENTITIES
from kalimat.db.repository import EntityClient, EntityRepository
from kalimat.core.auth import AuthUser, extract_bearer, user_role
from kalimat.errors import KalimatError, PermissionDeniedError
from kalimat.web.deps import Services, get_current_user, get_services, http_error
from kalimat.web.schemas import DeleteResponse, EntityQuery

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/entities", tags=["entities"])


def get_caller_client(
    authorization: str | None = Header(default=None),
    user: AuthUser = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> Iterator[EntityClient]:
    """Client acting as the caller, on a row-level-security backend when hosted."""
    store = services.config.store
    if store.kind == "sqlite":
        yield EntityClient(services.backend, user, store.page_size)
        return

    try:
        backend = open_backend(store, elevated=False, access_token=extract_bearer(authorization))
    except KalimatError as e:
        raise http_error(e) from e
    try:
        yield EntityClient(backend, user, store.page_size)
    finally:
        if isinstance(backend, PostgrestBackend):
            backend.close()


def _repository(client: EntityClient, entity: str) -> EntityRepository:
    schema = ENTITIES.get(entity)
    if schema is None or not schema.exposed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown entity '{entity}'",
        )
    return client.repository(entity)


def _writable(repo: EntityRepository, data: dict[str, Any]) -> dict[str, Any]:
    readonly = repo.schema.caller_readonly()
    return {k: v for k, v in data.items() if k not in readonly}


def _check_write(
    repo: EntityRepository,
    user: AuthUser,
    services: Services,
    record_id: int | None = None,
) -> None:
    """Raise PermissionDeniedError unless the caller may write this record.

    Raises:
        PermissionDeniedError: Caller is neither the owner nor an admin
        EntityNotFoundError: record_id does not exist
    """
    if user_role(EntityClient(services.backend), user) == "admin":
        return

    owner_field = repo.schema.owner_field
    if owner_field is None:
        raise PermissionDeniedError(f"Only admins can modify {repo.schema.name} records")
    if record_id is not None and repo.get(record_id).get(owner_field) != user.email:
        logger.warning(
            "entities.foreign_write_refused",
            entity=repo.schema.name,
            id=record_id,
            user=user.email,
        )
        raise PermissionDeniedError(f"{repo.schema.name} '{record_id}' belongs to another user")


@router.get("/{entity}")
async def list_records(
    entity: str,
    sort: str | None = Query(default=None),
    limit: int = Query(default=10000, ge=1),
    client: EntityClient = Depends(get_caller_client),
) -> list[dict[str, Any]]:
    """List records of an entity."""
    repo = _repository(client, entity)
    try:
        return repo.list(sort, limit)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/{entity}/filter")
async def filter_records(
    entity: str,
    query: EntityQuery,
    client: EntityClient = Depends(get_caller_client),
) -> list[dict[str, Any]]:
    """Filter records with Mongo-style conditions."""
    repo = _repository(client, entity)
    try:
        return repo.filter(query.where, query.sort, query.limit)
    except KalimatError as e:
        raise http_error(e) from e


@router.get("/{entity}/{record_id}")
async def get_record(
    entity: str,
    record_id: int,
    client: EntityClient = Depends(get_caller_client),
) -> dict[str, Any]:
    """Get a record by id."""
    repo = _repository(client, entity)
    try:
        return repo.get(record_id)
    except KalimatError as e:
        raise http_error(e) from e


@router.post("/{entity}", status_code=status.HTTP_201_CREATED)
async def create_record(
    entity: str,
    data: dict[str, Any],
    client: EntityClient = Depends(get_caller_client),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Create a record owned by the caller."""
    repo = _repository(client, entity)
    user = client.user
    try:
        _check_write(repo, user, services)
        payload = _writable(repo, data)
        if repo.schema.owner_field and not repo.schema.stamp_user:
            # profile rows are keyed by the caller, not stamped
            payload[repo.schema.owner_field] = user.email
            payload["user_id"] = user.id
        return repo.create(payload)
    except KalimatError as e:
        raise http_error(e) from e


@router.patch("/{entity}/{record_id}")
async def update_record(
    entity: str,
    record_id: int,
    data: dict[str, Any],
    client: EntityClient = Depends(get_caller_client),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Update fields of a record the caller owns."""
    repo = _repository(client, entity)
    try:
        _check_write(repo, client.user, services, record_id)
        return repo.update(record_id, _writable(repo, data))
    except KalimatError as e:
        raise http_error(e) from e


@router.delete("/{entity}/{record_id}", response_model=DeleteResponse)
async def delete_record(
    entity: str,
    record_id: int,
    client: EntityClient = Depends(get_caller_client),
    services: Services = Depends(get_services),
) -> DeleteResponse:
    """Delete a record the caller owns."""
    repo = _repository(client, entity)
    try:
        _check_write(repo, client.user, services, record_id)
        return DeleteResponse(**repo.delete(record_id))
    except KalimatError as e:
        raise http_error(e) from e
