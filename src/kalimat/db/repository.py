"""Generic entity repository.

One repository class serves every table declared in kalimat.db.entities.
It translates Mongo-style conditions, pages through large reads, stamps
timestamps and, for user-owned tables, the identity of the creating user.

Usage:
    client = EntityClient(backend, user)
    progress = client.UserProgress.first(client.UserProgress.owned_by(user.email))
    client.FlashCard.update(card["id"], {"interval": 6})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from kalimat.db.backends import Backend
from kalimat.db.entities import ENTITIES, EntitySchema
from kalimat.db.filters import Predicate, parse_conditions, parse_sort
from kalimat.errors import EntityNotFoundError, FilterError, ValidationError
from kalimat.utils.clock import iso

if TYPE_CHECKING:
    from kalimat.core.auth import AuthUser

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 10000
DEFAULT_PAGE_SIZE = 1000


class EntityRepository:
    """CRUD over a single entity table."""

    def __init__(
        self,
        schema: EntitySchema,
        backend: Backend,
        user: AuthUser | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.schema = schema
        self.backend = backend
        self.user = user
        self.page_size = page_size

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list(self, sort: str | None = None, limit: int = DEFAULT_LIMIT) -> list[dict[str, Any]]:
        """List records, newest first by default.

        Limits above the page size are fetched page by page.
        """
        return self._fetch([], sort, limit)

    def filter(
        self,
        conditions: dict[str, Any] | None = None,
        sort: str | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        """List records matching Mongo-style conditions.

        Raises:
            FilterError: If a condition cannot be translated or names an unknown column
        """
        predicates = parse_conditions(conditions)
        columns = self.schema.all_columns
        for predicate in predicates:
            if predicate.column not in columns:
                raise FilterError(predicate.column, f"{self.schema.name} has no such column")
        return self._fetch(predicates, sort, limit)

    def first(
        self, conditions: dict[str, Any] | None = None, sort: str | None = None
    ) -> dict[str, Any] | None:
        """First matching record or None."""
        rows = self.filter(conditions, sort, limit=1)
        return rows[0] if rows else None

    def get(self, record_id: Any) -> dict[str, Any]:
        """Get record by id.

        Raises:
            EntityNotFoundError: If no record has this id
        """
        rows = self.backend.select(
            self.schema.table, [Predicate("id", "eq", record_id)], limit=1
        )
        if not rows:
            raise EntityNotFoundError(self.schema.name, record_id)
        return rows[0]

    def owned_by(self, email: str) -> dict[str, str]:
        """Condition selecting records owned by ``email``."""
        return self.schema.owned_by(email)

    def _fetch(
        self, predicates: list[Predicate], sort: str | None, limit: int
    ) -> list[dict[str, Any]]:
        order = parse_sort(sort, self.schema.date_column)
        if order.column not in self.schema.all_columns:
            raise FilterError(order.column, f"{self.schema.name} has no such column")

        if limit <= self.page_size:
            return self.backend.select(self.schema.table, predicates, order, limit=limit)

        rows: list[dict[str, Any]] = []
        offset = 0
        while offset < limit:
            page = self.backend.select(
                self.schema.table,
                predicates,
                order,
                limit=min(self.page_size, limit - offset),
                offset=offset,
            )
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size
        return rows

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a record, stamping owner and creation date."""
        rows = self.backend.insert(self.schema.table, [self._enrich(data)])
        record = rows[0]
        logger.debug("entities.created", entity=self.schema.name, id=record.get("id"))
        return record

    def bulk_create(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Create several records in one call."""
        if not items:
            return []
        rows = self.backend.insert(self.schema.table, [self._enrich(item) for item in items])
        logger.debug("entities.bulk_created", entity=self.schema.name, count=len(rows))
        return rows

    def update(self, record_id: Any, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by id, stamping the update column.

        Raises:
            EntityNotFoundError: If no record has this id
        """
        self._check_columns(data)
        payload = {k: v for k, v in data.items() if k != "id"}
        payload[self.schema.update_column] = iso()
        rows = self.backend.update(
            self.schema.table, [Predicate("id", "eq", record_id)], payload
        )
        if not rows:
            raise EntityNotFoundError(self.schema.name, record_id)
        logger.debug("entities.updated", entity=self.schema.name, id=record_id)
        return rows[0]

    def upsert(self, data: dict[str, Any], conflict_column: str) -> dict[str, Any]:
        """Insert, or update the row that has the same ``conflict_column`` value."""
        payload = self._enrich(data)
        payload[self.schema.update_column] = payload[self.schema.date_column]
        record = self.backend.upsert(self.schema.table, payload, conflict_column)
        logger.debug("entities.upserted", entity=self.schema.name, id=record.get("id"))
        return record

    def delete(self, record_id: Any) -> dict[str, bool]:
        """Delete a record by id."""
        self.backend.delete(self.schema.table, [Predicate("id", "eq", record_id)])
        logger.debug("entities.deleted", entity=self.schema.name, id=record_id)
        return {"success": True}

    def _check_columns(self, data: dict[str, Any]) -> None:
        unknown = sorted(set(data) - set(self.schema.all_columns))
        if unknown:
            raise ValidationError(f"{self.schema.name} has no column(s): {', '.join(unknown)}")

    def _enrich(self, data: dict[str, Any]) -> dict[str, Any]:
        self._check_columns(data)
        enriched = {k: v for k, v in data.items() if k != "id"}

        if self.schema.stamp_user and self.user is not None:
            enriched["user_id"] = self.user.id
            enriched["user_email"] = self.user.email
            if self.schema.owner_field and self.schema.owner_field != "user_email":
                enriched[self.schema.owner_field] = self.user.email

        enriched[self.schema.date_column] = iso()
        return enriched


class EntityClient:
    """Repositories for every entity, bound to one backend and user.

    Access repositories as attributes named after the entity:
    ``client.QuizSession``, ``client.Group``.
    """

    def __init__(self, backend: Backend, user: AuthUser | None = None, page_size: int = DEFAULT_PAGE_SIZE):
        self.backend = backend
        self.user = user
        self.page_size = page_size
        self._repos: dict[str, EntityRepository] = {}

    def repository(self, name: str) -> EntityRepository:
        """Repository for an entity name.

        Raises:
            KeyError: If the entity is not declared
        """
        if name not in self._repos:
            schema = ENTITIES[name]
            self._repos[name] = EntityRepository(schema, self.backend, self.user, self.page_size)
        return self._repos[name]

    def __getattr__(self, name: str) -> EntityRepository:
        if name.startswith("_") or name not in ENTITIES:
            raise AttributeError(name)
        return self.repository(name)

    def as_user(self, user: AuthUser | None) -> EntityClient:
        """Client on the same backend acting as another user."""
        return EntityClient(self.backend, user, self.page_size)
