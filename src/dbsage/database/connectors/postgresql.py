"""PostgreSQL adapter built on an asyncpg connection pool."""

import asyncio
from typing import Any, List, Optional, Tuple

import asyncpg

from ...config.models import ConnectionConfig
from ...core.exceptions import (
    DatabaseConnectionError,
    ErrorCodes,
    ExtensionMissingError,
    MetadataError,
    QueryError,
)
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

TABLES_QUERY = """
    SELECT t.table_name, t.table_schema, t.table_type,
           COALESCE(obj_description(c.oid), '') AS description
    FROM information_schema.tables t
    LEFT JOIN pg_namespace n ON n.nspname = t.table_schema
    LEFT JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
    WHERE t.table_schema NOT IN ('information_schema', 'pg_catalog')
    ORDER BY t.table_schema, t.table_name
"""

COLUMNS_QUERY = """
    SELECT isc.column_name,
           isc.data_type,
           isc.is_nullable,
           isc.column_default,
           isc.character_maximum_length,
           isc.numeric_precision,
           isc.numeric_scale,
           EXISTS (
               SELECT 1
               FROM information_schema.table_constraints tc
               JOIN information_schema.key_column_usage kcu
                 ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
               WHERE tc.constraint_type = 'PRIMARY KEY'
                 AND tc.table_name = isc.table_name
                 AND tc.table_schema = isc.table_schema
                 AND kcu.column_name = isc.column_name
           ) AS is_primary_key,
           EXISTS (
               SELECT 1
               FROM information_schema.table_constraints tc
               JOIN information_schema.key_column_usage kcu
                 ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
               WHERE tc.constraint_type = 'FOREIGN KEY'
                 AND tc.table_name = isc.table_name
                 AND tc.table_schema = isc.table_schema
                 AND kcu.column_name = isc.column_name
           ) AS is_foreign_key,
           COALESCE(col_description(
               (quote_ident(isc.table_schema) || '.' || quote_ident(isc.table_name))::regclass,
               isc.ordinal_position::int
           ), '') AS description
    FROM information_schema.columns isc
    WHERE isc.table_name = $1
      AND isc.table_schema = COALESCE($2, isc.table_schema)
    ORDER BY isc.table_schema, isc.ordinal_position
"""

INDEXES_QUERY = """
    SELECT i.relname AS index_name,
           idx.indisunique AS is_unique,
           idx.indisprimary AS is_primary,
           array_agg(a.attname ORDER BY array_position(idx.indkey::int2[], a.attnum)) AS columns,
           am.amname AS index_type,
           COALESCE(ts.spcname, 'default') AS tablespace,
           COALESCE(obj_description(i.oid), '') AS description
    FROM pg_index idx
    JOIN pg_class i ON i.oid = idx.indexrelid
    JOIN pg_class t ON t.oid = idx.indrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    JOIN pg_am am ON am.oid = i.relam
    JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(idx.indkey)
    LEFT JOIN pg_tablespace ts ON ts.oid = i.reltablespace
    WHERE t.relname = $1
      AND n.nspname = COALESCE($2, n.nspname)
    GROUP BY i.relname, idx.indisunique, idx.indisprimary, am.amname, ts.spcname, i.oid
    ORDER BY i.relname
"""

TABLE_STATS_QUERY = """
    SELECT relname,
           n_live_tup,
           pg_size_pretty(pg_relation_size(relid)) AS table_size,
           pg_size_pretty(pg_total_relation_size(relid) - pg_relation_size(relid)) AS index_size,
           pg_size_pretty(pg_total_relation_size(relid)) AS total_size,
           seq_scan, seq_tup_read,
           COALESCE(idx_scan, 0) AS idx_scan,
           COALESCE(idx_tup_fetch, 0) AS idx_tup_fetch,
           n_tup_ins, n_tup_upd, n_tup_del,
           last_vacuum, last_autovacuum, last_analyze, last_autoanalyze
    FROM pg_stat_user_tables
    WHERE relname = $1
      AND schemaname = COALESCE($2, schemaname)
"""

TABLE_SIZES_QUERY = """
    WITH rels AS (
        SELECT schemaname, tablename,
               (quote_ident(schemaname) || '.' || quote_ident(tablename))::regclass AS rel
        FROM pg_tables
        WHERE schemaname NOT IN ('information_schema', 'pg_catalog')
    )
    SELECT schemaname, tablename,
           pg_size_pretty(pg_total_relation_size(rel)) AS size,
           pg_total_relation_size(rel) AS size_bytes,
           pg_size_pretty(pg_relation_size(rel)) AS table_size,
           pg_size_pretty(pg_total_relation_size(rel) - pg_relation_size(rel)) AS index_size
    FROM rels
    ORDER BY size_bytes DESC
"""

DATABASE_SIZE_QUERY = """
    SELECT current_database(),
           pg_size_pretty(pg_database_size(current_database())),
           pg_database_size(current_database())
"""

ACTIVE_CONNECTIONS_QUERY = """
    SELECT pid,
           COALESCE(usename, '') AS usename,
           COALESCE(datname, '') AS datname,
           COALESCE(client_addr::text, 'local') AS client_addr,
           COALESCE(state, '') AS state,
           COALESCE(LEFT(query, 200), '') AS query,
           COALESCE((now() - query_start)::text, '') AS duration
    FROM pg_stat_activity
    WHERE state = 'active' AND pid != pg_backend_pid()
    ORDER BY query_start DESC
"""

EXTENSION_QUERY = "SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = 'pg_stat_statements')"

SLOW_QUERIES_QUERY = """
    SELECT query, calls, total_exec_time, mean_exec_time,
           min_exec_time, max_exec_time, stddev_exec_time, rows
    FROM pg_stat_statements
    ORDER BY total_exec_time DESC
    LIMIT 20
"""


def split_table_name(table: str) -> Tuple[Optional[str], str]:
    """Split an optionally schema-qualified name into (schema, table)."""
    validate_identifier(table, allow_schema=True, field="table name")
    if "." in table:
        schema, name = table.split(".", 1)
        return schema, name
    return None, table


class PostgreSQLAdapter(DatabaseAdapter):
    """PostgreSQL adapter.

    Statements run on connections borrowed from an asyncpg pool so that
    sequential callers on different tasks never share a session.
    """

    component_name = "PostgreSQLAdapter"
    platform = "postgres"
    explain_prefix = "EXPLAIN (ANALYZE, BUFFERS, FORMAT JSON) "
    allows_schema_names = True

    def __init__(self, config: ConnectionConfig) -> None:
        super().__init__(config)
        self._connection_pool: Optional[asyncpg.Pool] = None

    def validate_config(self) -> bool:
        return self._config.kind == "postgres"

    async def _async_initialize(self) -> None:
        self.logger.info("Opening PostgreSQL connection", host=self.config.host, port=self.config.port)

        try:
            self._connection_pool = await asyncpg.create_pool(
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.username or None,
                password=self.config.password_value() or None,
                ssl=self.config.ssl_mode,
                timeout=self.config.timeout,
                min_size=1,
                max_size=10,
                command_timeout=60,
            )

            async with self._connection_pool.acquire() as conn:
                await conn.fetchval("SELECT 1")

        except asyncpg.InvalidAuthorizationSpecificationError as e:
            await self._discard_pool()
            raise DatabaseConnectionError(
                f"PostgreSQL authentication failed: {e}",
                code=ErrorCodes.AUTH_FAILED,
                context=self._context(),
            ) from e
        except asyncio.TimeoutError as e:
            await self._discard_pool()
            raise DatabaseConnectionError(
                f"PostgreSQL connection timeout after {self.config.timeout}s",
                code=ErrorCodes.CONNECTION_TIMEOUT,
                context=self._context(),
            ) from e
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            await self._discard_pool()
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL: {e}",
                code=ErrorCodes.CONNECTION_REFUSED,
                context=self._context(),
            ) from e

        self.logger.info("PostgreSQL connection opened")

    async def _async_cleanup(self) -> None:
        if self._connection_pool:
            await self._connection_pool.close()
            self._connection_pool = None
            self.logger.info("PostgreSQL connection pool closed")

    async def _discard_pool(self) -> None:
        if self._connection_pool is not None:
            self._connection_pool.terminate()
            self._connection_pool = None

    async def _discard_partial(self) -> None:
        await self._discard_pool()

    def _context(self) -> dict:
        return {
            "connection": self.name,
            "host": self.config.host,
            "port": self.config.port,
            "database": self.config.database,
        }

    async def _ping(self) -> None:
        async with self._connection_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    async def _fetch_rows(self, sql: str, *params: Any) -> Rows:
        try:
            async with self._connection_pool.acquire() as conn:
                statement = await conn.prepare(sql)
                records = await statement.fetch(*params)
                columns = [attribute.name for attribute in statement.get_attributes()]
        except (asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            self.logger.error("Query execution failed", error=str(e))
            raise QueryError(
                str(e),
                code=ErrorCodes.QUERY_EXECUTION_FAILED,
                context={"connection": self.name, "sqlstate": getattr(e, "sqlstate", None)},
                cause=e,
            ) from e

        return columns, [list(record) for record in records]

    async def _metadata(self, what: str, sql: str, *params: Any):
        try:
            return await self._fetch_records(sql, *params)
        except QueryError as e:
            raise MetadataError(
                f"Failed to read {what}: {e.message}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"connection": self.name},
                cause=e.cause or e,
            ) from e

    async def has_pg_stat_statements(self) -> bool:
        rows = await self._metadata("extension list", EXTENSION_QUERY)
        return bool(rows and list(rows[0].values())[0])

    async def require_pg_stat_statements(self) -> None:
        """Raise ``ExtensionMissingError`` unless pg_stat_statements is installed."""
        if not await self.has_pg_stat_statements():
            raise ExtensionMissingError(
                "pg_stat_statements extension is not installed",
                code=ErrorCodes.EXTENSION_MISSING,
                context={"connection": self.name, "extension": "pg_stat_statements"},
            )

    async def get_tables(self) -> List[TableInfo]:
        rows = await self._metadata("tables", TABLES_QUERY)
        return [
            TableInfo(
                table_name=row["table_name"],
                schema=row["table_schema"],
                table_type=row["table_type"],
                description=row["description"] or "",
            )
            for row in rows
        ]

    async def get_table_schema(self, table: str) -> List[ColumnInfo]:
        schema, name = split_table_name(table)
        rows = await self._metadata("columns", COLUMNS_QUERY, name, schema)
        return [
            ColumnInfo(
                column_name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"] == "YES",
                default_value=row["column_default"],
                character_maximum_length=row["character_maximum_length"],
                numeric_precision=row["numeric_precision"],
                numeric_scale=row["numeric_scale"],
                is_primary_key=bool(row["is_primary_key"]),
                is_foreign_key=bool(row["is_foreign_key"]),
                description=row["description"] or "",
            )
            for row in rows
        ]

    async def get_table_indexes(self, table: str) -> List[IndexInfo]:
        schema, name = split_table_name(table)
        rows = await self._metadata("indexes", INDEXES_QUERY, name, schema)
        return [
            IndexInfo(
                index_name=row["index_name"],
                is_unique=bool(row["is_unique"]),
                is_primary=bool(row["is_primary"]),
                columns=list(row["columns"] or []),
                index_type=row["index_type"] or "btree",
                tablespace=row["tablespace"] or "default",
                description=row["description"] or "",
            )
            for row in rows
        ]

    async def get_table_stats(self, table: str) -> TableStats:
        schema, name = split_table_name(table)
        rows = await self._metadata("table statistics", TABLE_STATS_QUERY, name, schema)
        if not rows:
            raise MetadataError(
                f"No statistics found for table: {table}",
                code=ErrorCodes.METADATA_EXTRACTION_FAILED,
                context={"connection": self.name, "table": table},
            )

        row = rows[0]
        return TableStats(
            table_name=row["relname"],
            row_count=row["n_live_tup"] or 0,
            table_size=row["table_size"] or "",
            index_size=row["index_size"] or "",
            total_size=row["total_size"] or "",
            seq_scan=row["seq_scan"] or 0,
            seq_tup_read=row["seq_tup_read"] or 0,
            idx_scan=row["idx_scan"] or 0,
            idx_tup_fetch=row["idx_tup_fetch"] or 0,
            n_tup_ins=row["n_tup_ins"] or 0,
            n_tup_upd=row["n_tup_upd"] or 0,
            n_tup_del=row["n_tup_del"] or 0,
            last_vacuum=row["last_vacuum"],
            last_autovacuum=row["last_autovacuum"],
            last_analyze=row["last_analyze"],
            last_autoanalyze=row["last_autoanalyze"],
        )

    async def get_table_sizes(self) -> List[TableSize]:
        rows = await self._metadata("table sizes", TABLE_SIZES_QUERY)
        return [
            TableSize(
                schema=row["schemaname"],
                table_name=row["tablename"],
                size=row["size"],
                size_bytes=row["size_bytes"] or 0,
                table_size=row["table_size"] or "",
                index_size=row["index_size"] or "",
            )
            for row in rows
        ]

    async def get_database_size(self) -> DatabaseSize:
        rows = await self._metadata("database size", DATABASE_SIZE_QUERY)
        name, size, size_bytes = list(rows[0].values())
        return DatabaseSize(database_name=name, size=size, size_bytes=size_bytes or 0)

    async def get_active_connections(self) -> List[ActiveConnection]:
        rows = await self._metadata("active connections", ACTIVE_CONNECTIONS_QUERY)
        return [
            ActiveConnection(
                pid=row["pid"],
                user=row["usename"],
                database=row["datname"],
                client_addr=row["client_addr"],
                state=row["state"],
                query=row["query"],
                duration=row["duration"],
            )
            for row in rows
        ]

    async def get_slow_queries(self) -> List[SlowQuery]:
        """Top 20 statements by total execution time.

        Raises:
            ExtensionMissingError: If pg_stat_statements is not installed
        """
        await self.require_pg_stat_statements()
        rows = await self._metadata("slow queries", SLOW_QUERIES_QUERY)
        return [
            SlowQuery(
                query=row["query"],
                calls=row["calls"] or 0,
                total_time=float(row["total_exec_time"] or 0.0),
                mean_time=float(row["mean_exec_time"] or 0.0),
                min_time=float(row["min_exec_time"] or 0.0),
                max_time=float(row["max_exec_time"] or 0.0),
                stddev_time=float(row["stddev_exec_time"] or 0.0),
                rows=row["rows"] or 0,
            )
            for row in rows
        ]
