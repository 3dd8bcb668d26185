"""Backend adapters.

Modules:
    postgresql: asyncpg-based PostgreSQL adapter
    sqlite: aiosqlite-based SQLite adapter
"""

from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter

__all__ = ["PostgreSQLAdapter", "SQLiteAdapter"]
