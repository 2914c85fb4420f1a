"""Filter translation for entity queries.

Callers describe conditions with a MongoDB-like convention:

    {"surah_number": 2}                      -> surah_number = 2
    {"word_id": [1, 2, 3]}                   -> word_id IN (1, 2, 3)
    {"interval": {"$lt": 3}}                 -> interval < 3
    {"created_date": {"$gte": a, "$lte": b}} -> both bounds apply
    {"join_code": {"$ilike": "ab12"}}        -> case-insensitive equality
    {"next_review": None}                    -> next_review IS NULL

Conditions are parsed once into Predicate objects, which each backend
renders in its own dialect (SQL for SQLite, query params for PostgREST).
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from kalimat.errors import FilterError

# Mongo-style operator -> predicate op
OPERATORS = {
    "$in": "in",
    "$gte": "gte",
    "$lte": "lte",
    "$gt": "gt",
    "$lt": "lt",
    "$ne": "neq",
    "$ilike": "ilike",
}

SQL_COMPARATORS = {
    "eq": "=",
    "gte": ">=",
    "lte": "<=",
    "gt": ">",
    "lt": "<",
    "neq": "!=",
}

_COLUMN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Predicate:
    """A single column condition."""

    column: str
    op: str
    value: Any = None


@dataclass(frozen=True)
class Order:
    """Sort order for a query."""

    column: str
    ascending: bool = False


def validate_column(column: str) -> str:
    """Reject anything that is not a plain identifier."""
    if not isinstance(column, str) or not _COLUMN_RE.match(column):
        raise FilterError(str(column), "column names must be plain identifiers")
    return column


def parse_conditions(conditions: dict[str, Any] | None) -> list[Predicate]:
    """Translate Mongo-style conditions into predicates.

    Args:
        conditions: Mapping of column -> value or operator dict

    Returns:
        List of predicates, all of which must hold

    Raises:
        FilterError: On unknown operators or malformed operands
    """
    predicates: list[Predicate] = []

    for column, value in (conditions or {}).items():
        validate_column(column)

        if value is None:
            predicates.append(Predicate(column, "is", None))
        elif isinstance(value, (list, tuple, set)):
            predicates.append(Predicate(column, "in", list(value)))
        elif isinstance(value, dict):
            if not value:
                raise FilterError(column, "empty operator object")
            for key, operand in value.items():
                op = OPERATORS.get(key)
                if op is None:
                    raise FilterError(column, f"unsupported operator '{key}'")
                if op == "in" and not isinstance(operand, (list, tuple, set)):
                    raise FilterError(column, "$in expects a list")
                if op == "in":
                    operand = list(operand)
                predicates.append(Predicate(column, op, operand))
        else:
            predicates.append(Predicate(column, "eq", value))

    return predicates


def parse_sort(sort_field: str | None, default_column: str) -> Order:
    """Parse a sort string such as "-created_date" or "ayah_number".

    A leading "-" means descending. An empty string sorts by the default
    column, newest first.
    """
    if not sort_field:
        return Order(default_column, ascending=False)

    if sort_field.startswith("-"):
        column = sort_field[1:] or default_column
        return Order(validate_column(column), ascending=False)

    return Order(validate_column(sort_field), ascending=True)


# =============================================================================
# SQL RENDERING
# =============================================================================


def to_sql(predicates: list[Predicate]) -> tuple[str, list[Any]]:
    """Render predicates as a WHERE clause with ? placeholders.

    Returns:
        (clause, params); clause is empty when there are no predicates
    """
    parts: list[str] = []
    params: list[Any] = []

    for p in predicates:
        if p.op == "is":
            parts.append(f"{p.column} IS NULL")
        elif p.op == "in":
            if not p.value:
                # Empty IN never matches
                parts.append("0")
                continue
            placeholders = ", ".join("?" for _ in p.value)
            parts.append(f"{p.column} IN ({placeholders})")
            params.extend(_sql_value(v) for v in p.value)
        elif p.op == "ilike":
            parts.append(f"{p.column} LIKE ? ESCAPE '\\'")
            params.append(escape_like(str(p.value)))
        else:
            parts.append(f"{p.column} {SQL_COMPARATORS[p.op]} ?")
            params.append(_sql_value(p.value))

    if not parts:
        return "", []

    return "WHERE " + " AND ".join(parts), params


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the operand matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _sql_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


# =============================================================================
# POSTGREST RENDERING
# =============================================================================


def to_postgrest(predicates: list[Predicate]) -> list[tuple[str, str]]:
    """Render predicates as PostgREST query parameters.

    A list of pairs is returned because one column may carry several
    conditions (e.g. a date range).
    """
    params: list[tuple[str, str]] = []

    for p in predicates:
        if p.op == "is":
            params.append((p.column, "is.null"))
        elif p.op == "in":
            values = ",".join(_postgrest_in_value(v) for v in p.value)
            params.append((p.column, f"in.({values})"))
        elif p.op == "ilike":
            text = str(p.value)
            # PostgREST turns '*' into '%' and offers no escape for it
            if "*" in text:
                raise FilterError(p.column, "'*' cannot be matched by $ilike")
            params.append((p.column, f"ilike.{escape_like(text)}"))
        else:
            params.append((p.column, f"{p.op}.{_postgrest_value(p.value)}"))

    return params


def order_to_postgrest(order: Order) -> str:
    """Render an Order as the PostgREST ``order`` parameter value."""
    direction = "asc" if order.ascending else "desc"
    return f"{order.column}.{direction}"


def _postgrest_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _postgrest_in_value(value: Any) -> str:
    text = _postgrest_value(value)
    # Reserved characters need quoting inside in.(...)
    if any(ch in text for ch in ',()" '):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text
