"""Database access for dbsage.

Modules:
    models: Backend-independent entity dataclasses
    base: Adapter contract
    connectors: PostgreSQL and SQLite adapters
    factory: Adapter construction by backend kind
    executor: Query execution helpers
    registry: Named connection registry

Example:
    >>> from dbsage.database import ConnectionRegistry, QueryExecutor
    >>> adapter, name = await registry.current()
    >>> result = await QueryExecutor(adapter).execute("SELECT 1")
"""

from .base import DatabaseAdapter
from .connectors import PostgreSQLAdapter, SQLiteAdapter
from .executor import QueryExecutor, build_find_duplicates_sql, decode_cell, normalize_rows
from .factory import create_adapter, get_adapter_class, get_supported_kinds
from .models import (
    ActiveConnection,
    ColumnInfo,
    ConnectionInfo,
    ConnectionStatus,
    DatabaseSize,
    IndexInfo,
    QueryResult,
    SlowQuery,
    TableInfo,
    TableSize,
    TableStats,
    to_jsonable,
)
from .registry import ConnectionRegistry

__all__ = [
    "DatabaseAdapter",
    "PostgreSQLAdapter",
    "SQLiteAdapter",
    "QueryExecutor",
    "build_find_duplicates_sql",
    "decode_cell",
    "normalize_rows",
    "create_adapter",
    "get_adapter_class",
    "get_supported_kinds",
    "ActiveConnection",
    "ColumnInfo",
    "ConnectionInfo",
    "ConnectionStatus",
    "DatabaseSize",
    "IndexInfo",
    "QueryResult",
    "SlowQuery",
    "TableInfo",
    "TableSize",
    "TableStats",
    "to_jsonable",
    "ConnectionRegistry",
]
