"""Store backends.

A backend exposes table-level select / insert / update / delete / upsert
with predicates produced by kalimat.db.filters. Two implementations:

- SQLiteBackend: local database file, schema from kalimat.db.entities
- PostgrestBackend: hosted Supabase REST endpoint over httpx

Both raise StoreError on failure so callers handle one exception type.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from kalimat.config.app_config import StoreConfig
from kalimat.db.database import get_db
from kalimat.db.entities import TABLES, EntitySchema
from kalimat.db.filters import (
    Order,
    Predicate,
    order_to_postgrest,
    to_postgrest,
    to_sql,
    validate_column,
)
from kalimat.errors import StoreError

logger = structlog.get_logger(__name__)


class Backend(Protocol):
    """Table-level operations shared by all stores."""

    def select(
        self,
        table: str,
        predicates: list[Predicate] | None = None,
        order: Order | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...

    def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    def update(
        self, table: str, predicates: list[Predicate], data: dict[str, Any]
    ) -> list[dict[str, Any]]: ...

    def delete(self, table: str, predicates: list[Predicate]) -> int: ...

    def upsert(
        self, table: str, row: dict[str, Any], conflict_column: str
    ) -> dict[str, Any]: ...


# =============================================================================
# SQLITE
# =============================================================================


class SQLiteBackend:
    """Backend over a local SQLite file."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def _schema(self, table: str, operation: str) -> EntitySchema:
        schema = TABLES.get(table)
        if schema is None:
            raise StoreError(table, operation, "unknown table")
        return schema

    def _encode(self, schema: EntitySchema, data: dict[str, Any], operation: str) -> dict[str, Any]:
        columns = schema.all_columns
        encoded: dict[str, Any] = {}
        for key, value in data.items():
            if key not in columns:
                raise StoreError(schema.table, operation, f"unknown column '{key}'")
            if columns[key] == "json" and value is not None:
                value = json.dumps(value, ensure_ascii=False)
            elif columns[key] == "bool" and value is not None:
                value = 1 if value else 0
            encoded[key] = value
        return encoded

    def _decode(self, schema: EntitySchema, row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        for column in schema.json_columns():
            raw = record.get(column)
            if isinstance(raw, str):
                try:
                    record[column] = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning("store.bad_json", table=schema.table, column=column)
        for column in schema.bool_columns():
            if record.get(column) is not None:
                record[column] = bool(record[column])
        return record

    def _select_sql(
        self,
        table: str,
        predicates: list[Predicate] | None,
        order: Order | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[str, list[Any]]:
        where, params = to_sql(predicates or [])
        sql = f"SELECT * FROM {table} {where}"
        if order is not None:
            direction = "ASC" if order.ascending else "DESC"
            sql += f" ORDER BY {validate_column(order.column)} {direction}, id {direction}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params = [*params, int(limit), int(offset)]
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params = [*params, int(offset)]
        return sql, params

    def select(
        self,
        table: str,
        predicates: list[Predicate] | None = None,
        order: Order | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        schema = self._schema(table, "select")
        sql, params = self._select_sql(table, predicates, order, limit, offset)
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(table, "select", str(e)) from e
        return [self._decode(schema, row) for row in rows]

    def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        schema = self._schema(table, "insert")
        encoded_rows = [self._encode(schema, row, "insert") for row in rows]
        ids: list[int] = []
        try:
            with get_db(self.db_path) as conn:
                for row in encoded_rows:
                    if row:
                        columns = ", ".join(row)
                        placeholders = ", ".join("?" for _ in row)
                        cursor = conn.execute(
                            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                            list(row.values()),
                        )
                    else:
                        cursor = conn.execute(f"INSERT INTO {table} DEFAULT VALUES")
                    ids.append(cursor.lastrowid)
                result = self._fetch_ids(conn, schema, ids)
        except sqlite3.Error as e:
            raise StoreError(table, "insert", str(e)) from e

        logger.debug("store.inserted", table=table, count=len(ids))
        return result

    def update(
        self, table: str, predicates: list[Predicate], data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        schema = self._schema(table, "update")
        encoded = self._encode(schema, data, "update")
        where, params = to_sql(predicates)
        try:
            with get_db(self.db_path) as conn:
                ids = [r["id"] for r in conn.execute(f"SELECT id FROM {table} {where}", params)]
                if ids and encoded:
                    assignments = ", ".join(f"{c} = ?" for c in encoded)
                    placeholders = ", ".join("?" for _ in ids)
                    conn.execute(
                        f"UPDATE {table} SET {assignments} WHERE id IN ({placeholders})",
                        [*encoded.values(), *ids],
                    )
                result = self._fetch_ids(conn, schema, ids)
        except sqlite3.Error as e:
            raise StoreError(table, "update", str(e)) from e
        return result

    def delete(self, table: str, predicates: list[Predicate]) -> int:
        self._schema(table, "delete")
        where, params = to_sql(predicates)
        try:
            with get_db(self.db_path) as conn:
                cursor = conn.execute(f"DELETE FROM {table} {where}", params)
        except sqlite3.Error as e:
            raise StoreError(table, "delete", str(e)) from e
        return cursor.rowcount

    def upsert(self, table: str, row: dict[str, Any], conflict_column: str) -> dict[str, Any]:
        schema = self._schema(table, "upsert")
        encoded = self._encode(schema, row, "upsert")
        if conflict_column not in encoded:
            raise StoreError(table, "upsert", f"row lacks conflict column '{conflict_column}'")

        columns = ", ".join(encoded)
        placeholders = ", ".join("?" for _ in encoded)
        updates = ", ".join(
            f"{c} = excluded.{c}" for c in encoded if c != conflict_column
        ) or f"{conflict_column} = excluded.{conflict_column}"
        try:
            with get_db(self.db_path) as conn:
                conn.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) "
                    f"ON CONFLICT({conflict_column}) DO UPDATE SET {updates}",
                    list(encoded.values()),
                )
                stored = conn.execute(
                    f"SELECT * FROM {table} WHERE {conflict_column} = ?",
                    (encoded[conflict_column],),
                ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(table, "upsert", str(e)) from e
        return self._decode(schema, stored)

    def _fetch_ids(
        self, conn: sqlite3.Connection, schema: EntitySchema, ids: list[int]
    ) -> list[dict[str, Any]]:
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT * FROM {schema.table} WHERE id IN ({placeholders}) ORDER BY id",
            ids,
        ).fetchall()
        return [self._decode(schema, row) for row in rows]


# =============================================================================
# POSTGREST (SUPABASE)
# =============================================================================


class PostgrestBackend:
    """Backend over the Supabase REST interface.

    Row-level security applies according to the key: the anon key acts as
    the public client, the service-role key bypasses RLS.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ):
        self.url = url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {access_token or api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        table: str,
        operation: str,
        params: list[tuple[str, str]] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = self._client.request(
                method, f"/{table}", params=params, json=json_body, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error(
                "postgrest.error",
                table=table,
                operation=operation,
                status=e.response.status_code,
                detail=detail,
            )
            raise StoreError(table, operation, detail) from e
        except httpx.RequestError as e:
            logger.error("postgrest.request_error", table=table, operation=operation, error=str(e))
            raise StoreError(table, operation, str(e)) from e
        return response

    def select(
        self,
        table: str,
        predicates: list[Predicate] | None = None,
        order: Order | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        params = [("select", "*"), *to_postgrest(predicates or [])]
        if order is not None:
            params.append(("order", order_to_postgrest(order)))
        if limit is not None:
            params.append(("limit", str(int(limit))))
        if offset:
            params.append(("offset", str(int(offset))))
        response = self._request("GET", table, "select", params=params)
        return response.json() or []

    def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        response = self._request(
            "POST",
            table,
            "insert",
            json_body=rows,
            headers={"Prefer": "return=representation"},
        )
        return response.json() or []

    def update(
        self, table: str, predicates: list[Predicate], data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        response = self._request(
            "PATCH",
            table,
            "update",
            params=to_postgrest(predicates),
            json_body=data,
            headers={"Prefer": "return=representation"},
        )
        return response.json() or []

    def delete(self, table: str, predicates: list[Predicate]) -> int:
        response = self._request(
            "DELETE",
            table,
            "delete",
            params=to_postgrest(predicates),
            headers={"Prefer": "return=representation"},
        )
        return len(response.json() or [])

    def upsert(self, table: str, row: dict[str, Any], conflict_column: str) -> dict[str, Any]:
        response = self._request(
            "POST",
            table,
            "upsert",
            params=[("on_conflict", conflict_column)],
            json_body=row,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        rows = response.json() or []
        if not rows:
            raise StoreError(table, "upsert", "no row returned")
        return rows[0]


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or json.dumps(body)
    return str(body)


def open_backend(
    store_config: StoreConfig,
    elevated: bool = True,
    access_token: str | None = None,
) -> Backend:
    """Build the backend described by the store config.

    Args:
        store_config: Store section of the app config
        elevated: Use the service-role key (bypasses row-level security)
        access_token: End-user JWT to act as, for non-elevated access

    Raises:
        StoreError: If the hosted store is selected but not configured
    """
    if store_config.kind == "sqlite":
        return SQLiteBackend(store_config.db_path)

    if store_config.kind != "supabase":
        raise StoreError("*", "connect", f"unknown store kind '{store_config.kind}'")

    key = store_config.get_service_key() if elevated else store_config.get_anon_key()
    if not store_config.url or not key:
        raise StoreError("*", "connect", "SUPABASE_URL and key environment variables are required")

    logger.debug("store.connect", url=store_config.url, elevated=elevated)
    return PostgrestBackend(store_config.url, key, access_token=None if elevated else access_token)
