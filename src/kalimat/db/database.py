"""SQLite database connection and schema management.

Provides connection management and schema initialization for the local
store. The schema is generated from the entity declarations in
kalimat.db.entities, plus the auth token table used for bearer tokens.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from kalimat.db.entities import TABLES, EntitySchema

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/kalimat.db")

# Current database path (module-level for simplicity in CLI context)
_db_path: Path | None = None

_SQL_TYPES = {
    "text": "TEXT",
    "integer": "INTEGER",
    "real": "REAL",
    "bool": "INTEGER",
    "json": "TEXT",
}


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to db/kalimat.db

    Returns:
        The path of the initialized database
    """
    global _db_path
    _db_path = Path(db_path) if db_path else DEFAULT_DB_PATH

    with get_db(_db_path) as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))
    return _db_path


@contextmanager
def get_db(db_path: Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM quran_ayahs").fetchall()
    """
    path = Path(db_path or _db_path or DEFAULT_DB_PATH)

    # Ensure directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def table_ddl(schema: EntitySchema) -> str:
    """CREATE TABLE statement for an entity."""
    lines = ["id INTEGER PRIMARY KEY AUTOINCREMENT"]
    for column, col_type in schema.all_columns.items():
        if column == "id":
            continue
        lines.append(f"{column} {_SQL_TYPES[col_type]}")
    for column in schema.unique:
        lines.append(f"UNIQUE({column})")
    body = ",\n    ".join(lines)
    return f"CREATE TABLE IF NOT EXISTS {schema.table} (\n    {body}\n);"


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    statements = [table_ddl(schema) for schema in TABLES.values()]
    conn.executescript("\n".join(statements))

    conn.executescript(
        """
        -- Bearer tokens issued to local users
        CREATE TABLE IF NOT EXISTS auth_tokens (
            token TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            email TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE INDEX IF NOT EXISTS idx_progress_owner ON user_progress(created_by);
        CREATE INDEX IF NOT EXISTS idx_flash_cards_owner ON flash_cards(created_by);
        CREATE INDEX IF NOT EXISTS idx_ayahs_surah ON quran_ayahs(surah_number, ayah_number);
        CREATE INDEX IF NOT EXISTS idx_words_surah ON quranic_words(surah_name);
        CREATE INDEX IF NOT EXISTS idx_activity_owner ON activity_logs(user_email, activity_type);
        """
    )
