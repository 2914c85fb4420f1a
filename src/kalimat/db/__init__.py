"""Data access layer.

Provides:
- Entity schema declarations (entities)
- Mongo-style filter translation (filters)
- SQLite and Supabase REST backends (backends)
- Generic entity repository (repository)
"""

from kalimat.db.backends import Backend, PostgrestBackend, SQLiteBackend, open_backend
from kalimat.db.database import get_db, init_db
from kalimat.db.repository import EntityClient, EntityRepository

__all__ = [
    "Backend",
    "EntityClient",
    "EntityRepository",
    "PostgrestBackend",
    "SQLiteBackend",
    "get_db",
    "init_db",
    "open_backend",
]
