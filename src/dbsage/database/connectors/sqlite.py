"""SQLite adapter built on aiosqlite."""

import asyncio
import os
import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from ...config.models import ConnectionConfig
from ...config.urls import build_sqlite_dsn
from ...core.exceptions import DatabaseConnectionError, ErrorCodes, MetadataError, QueryError
from ...core.utils import validate_identifier
from ..base import DatabaseAdapter, Rows
from ..models import (
    ActiveConnection,
    ColumnInfo,
    DatabaseSize,
    IndexInfo,
    SlowQuery,
    TableInfo,
    TableSize,
    TableStats,
)

_TYPE_PATTERN = re.compile(r"^\s*([^(]+?)\s*\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")
_TEXT_TYPES = ("CHAR", "TEXT", "CLOB")

TABLES_QUERY = """
    SELECT name, type FROM sqlite_master
    WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%'
    ORDER BY name
"""

USER_TABLES_QUERY = """
    SELECT name FROM sqlite_master
    WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
    ORDER BY name
"""


def parse_declared_type(declared: str) -> Tuple[Optional[int], Optional[int], Optional[int]]:
    """Split ``VARCHAR(255)`` or ``DECIMAL(10,2)`` into (length, precision, scale)."""
    match = _TYPE_PATTERN.match(declared or "")
    if not match:
        return None, None, None

    base = match.group(1).upper()
    first = int(match.group(2))
    second = int(match.group(3)) if match.group(3) is not None else None
    if any(marker in base for marker in _TEXT_TYPES):
        return first, None, None
    return None, first, second


def format_megabytes(size_bytes: int) -> str:
    return f"{size_bytes / (1024 * 1024):.2f} MB"


class SQLiteAdapter(DatabaseAdapter):
    """SQLite adapter.

    One aiosqlite connection per adapter. Statements are serialized with a
    lock so a statement and the fetch of its rows never interleave with
    another caller's.
    """

    component_name = "SQLiteAdapter"
    platform = "sqlite"
    explain_prefix = "EXPLAIN QUERY PLAN "
    allows_schema_names = False

    def __init__(self, config: ConnectionConfig) -> None:
        super().__init__(config)
        self._connection: Optional[aiosqlite.Connection] = None
        self._statement_lock = asyncio.Lock()
        self._sqlite_version: Optional[str] = None

    def validate_config(self) -> bool:
        return self._config.kind == "sqlite"

    @property
    def dsn(self) -> str:
        return build_sqlite_dsn(
            self.config.database or ":memory:",
            mode=self.config.mode,
            cache=self.config.cache,
            timeout=self.config.timeout,
        )

    async def _async_initialize(self) -> None:
        self.logger.info("Opening SQLite database", database=self.config.endpoint)

        try:
            self._connection = await aiosqlite.connect(self.dsn, uri=True, timeout=self.config.timeout)

            await self._connection.execute("PRAGMA foreign_keys = ON")
            await self._connection.execute("PRAGMA synchronous = NORMAL")
            if not self.config.is_memory and self.config.mode != "ro":
                await self._connection.execute("PRAGMA journal_mode = WAL")

            async with self._connection.execute("SELECT sqlite_version()") as cursor:
                result = await cursor.fetchone()
                self._sqlite_version = result[0] if result else "unknown"

        except sqlite3.Error as e:
            if self._connection is not None:
                await self._connection.close()
                self._connection = None
            raise DatabaseConnectionError(
                f"Failed to open SQLite database: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context={"connection": self.name, "database": self.config.endpoint},
            ) from e

        self.logger.info("SQLite database opened", sqlite_version=self._sqlite_version)

    async def _async_cleanup(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            self.logger.info("SQLite connection closed")

    async def _ping(self) -> None:
        async with self._statement_lock:
            async with self._connection.execute("SELECT 1") as cursor:
                await cursor.fetchone()

    async def _fetch_rows(self, sql: str, *params: Any) -> Rows:
        async with self._statement_lock:
            try:
                async with self._connection.execute(sql, params) as cursor:
                    rows = await cursor.fetchall()
                    columns = [desc[0] for desc in cursor.description] if cursor.description else []
                if self._connection.in_transaction:
                    await self._connection.commit()
            except sqlite3.Error as e:
                self.logger.error("Query execution failed", error=str(e))
                raise QueryError(
                    str(e),
                    code=ErrorCodes.QUERY_EXECUTION_FAILED,
                    context={"connection": self.name},
                    cause=e,
                ) from e

        return columns, [list(row) for row in rows]

    async def _metadata(self, what: str, sql: str, *params: Any) -> List[Dict[str, Any]]:
        try:
            return await self._fetch_records(sql, *params)
        except QueryError as e:
            raise MetadataError(
                f"Failed to read {what}: {e.message}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"connection": self.name},
                cause=e.cause or e,
            ) from e

    async def _database_file(self) -> str:
        """Path of the ``main`` database file, empty for in-memory databases."""
        rows = await self._metadata("database list", "PRAGMA database_list")
        for row in rows:
            if row.get("name") == "main":
                path = row.get("file") or ""
                return "" if path == ":memory:" else path
        return ""

    async def _file_size(self) -> Optional[int]:
        path = await self._database_file()
        if not path:
            return None
        try:
            return os.path.getsize(path)
        except OSError:
            return None

    async def _row_count(self, table: str) -> int:
        validate_identifier(table, field="table name")
        rows = await self._metadata("row count", f"SELECT COUNT(*) AS row_count FROM {table}")
        return int(rows[0]["row_count"]) if rows else 0

    async def get_tables(self) -> List[TableInfo]:
        rows = await self._metadata("tables", TABLES_QUERY)
        return [
            TableInfo(table_name=row["name"], schema="main", table_type=row["type"])
            for row in rows
        ]

    async def get_user_tables(self) -> List[str]:
        """Names of ordinary tables, excluding views."""
        rows = await self._metadata("tables", USER_TABLES_QUERY)
        return [row["name"] for row in rows]

    async def get_foreign_keys(self, table: str) -> List[Dict[str, Any]]:
        """Rows of ``PRAGMA foreign_key_list`` for ``table``."""
        validate_identifier(table, field="table name")
        return await self._metadata("foreign keys", f"PRAGMA foreign_key_list({table})")

    async def get_table_schema(self, table: str) -> List[ColumnInfo]:
        validate_identifier(table, field="table name")
        rows = await self._metadata("columns", f"PRAGMA table_info({table})")
        foreign_columns = {row["from"] for row in await self.get_foreign_keys(table)}

        columns = []
        for row in rows:
            declared = row["type"] or ""
            length, precision, scale = parse_declared_type(declared)
            columns.append(
                ColumnInfo(
                    column_name=row["name"],
                    data_type=declared,
                    is_nullable=not row["notnull"] and not row["pk"],
                    default_value=None if row["dflt_value"] is None else str(row["dflt_value"]),
                    character_maximum_length=length,
                    numeric_precision=precision,
                    numeric_scale=scale,
                    is_primary_key=bool(row["pk"]),
                    is_foreign_key=row["name"] in foreign_columns,
                )
            )
        return columns

    async def get_table_indexes(self, table: str) -> List[IndexInfo]:
        validate_identifier(table, field="table name")
        index_rows = await self._metadata("indexes", f"PRAGMA index_list({table})")

        indexes = []
        for index_row in index_rows:
            name = index_row["name"]
            columns_rows = await self._metadata("index columns", f"PRAGMA index_info(\"{name}\")")
            indexes.append(
                IndexInfo(
                    index_name=name,
                    is_unique=bool(index_row["unique"]),
                    is_primary=index_row.get("origin") == "pk",
                    columns=[row["name"] for row in sorted(columns_rows, key=lambda r: r["seqno"])],
                    index_type="btree",
                    tablespace="main",
                )
            )
        return indexes

    async def get_table_stats(self, table: str) -> TableStats:
        row_count = await self._row_count(table)
        size_bytes = await self._file_size()
        total = format_megabytes(size_bytes) if size_bytes is not None else ""

        return TableStats(
            table_name=table,
            row_count=row_count,
            table_size="0 MB",
            index_size="0 MB",
            total_size=total,
        )

    async def get_table_sizes(self) -> List[TableSize]:
        """Per-table sizes estimated from each table's share of all rows."""
        size_bytes = await self._file_size() or 0
        counts = []
        for name in await self.get_user_tables():
            try:
                counts.append((name, await self._row_count(name)))
            except MetadataError as e:
                self.logger.warning("Skipping table without row count", table=name, error=e.message)

        total_rows = sum(count for _, count in counts)
        sizes = []
        for name, count in counts:
            estimated = int(size_bytes * count / total_rows) if total_rows else 0
            sizes.append(
                TableSize(
                    schema="main",
                    table_name=name,
                    size=format_megabytes(estimated),
                    size_bytes=estimated,
                    table_size=format_megabytes(estimated),
                    index_size="0 MB",
                )
            )
        sizes.sort(key=lambda size: size.size_bytes, reverse=True)
        return sizes

    async def get_database_size(self) -> DatabaseSize:
        path = await self._database_file()
        if not path:
            return DatabaseSize(database_name="In-Memory Database", size="N/A (In-Memory)", size_bytes=0)

        try:
            size_bytes = os.path.getsize(path)
        except OSError:
            return DatabaseSize(database_name=os.path.basename(path), size="Unknown", size_bytes=0)
        return DatabaseSize(
            database_name=os.path.basename(path),
            size=format_megabytes(size_bytes),
            size_bytes=size_bytes,
        )

    async def get_active_connections(self) -> List[ActiveConnection]:
        self._require_open()
        return [
            ActiveConnection(
                pid=1,
                user="local",
                database="main",
                client_addr="local",
                state="active",
                query="Connected to SQLite database",
                duration="N/A",
            )
        ]

    async def get_slow_queries(self) -> List[SlowQuery]:
        """SQLite keeps no statement statistics; always empty."""
        self._require_open()
        return []

    def get_connection_info(self) -> Dict[str, Any]:
        info = super().get_connection_info()
        info["sqlite_version"] = self._sqlite_version
        return info
