"""Driver adapter contract shared by the PostgreSQL and SQLite backends."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, List, Sequence, Tuple

from ..config.models import ConnectionConfig
from ..core import AsyncComponent
from ..core.exceptions import DatabaseConnectionError, ErrorCodes, UnreachableError
from ..core.utils import format_duration, truncate_sql
from ..logging import get_logger, get_performance_logger
from .executor import normalize_rows
from .models import (
    ActiveConnection,
    ColumnInfo,
    DatabaseSize,
    IndexInfo,
    QueryResult,
    SlowQuery,
    TableInfo,
    TableSize,
    TableStats,
)

Rows = Tuple[List[str], List[List[Any]]]


class DatabaseAdapter(AsyncComponent[ConnectionConfig], ABC):
    """Base class for backend adapters.

    An adapter owns one live backend session (a pool for PostgreSQL, a
    single connection for SQLite). It implements the open, close, ping,
    run-query and run-explain capabilities plus the introspection surface.
    Every driver error is re-raised as a dbsage exception carrying the
    driver message.
    """

    platform: ClassVar[str] = "unknown"
    explain_prefix: ClassVar[str] = "EXPLAIN "
    allows_schema_names: ClassVar[bool] = False

    def __init__(self, config: ConnectionConfig) -> None:
        super().__init__(config)
        self.logger = get_logger(f"adapter.{self.platform}.{config.name}")
        self.perf_logger = get_performance_logger(f"adapter.{self.platform}")
        self.healthy = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_open(self) -> bool:
        return self.is_initialized

    async def open(self) -> None:
        """Open the backend session.

        Raises:
            DatabaseConnectionError: If the backend cannot be reached or
                rejects the credentials
        """
        await self.initialize()
        self.healthy = True

    async def close(self) -> None:
        """Close the backend session. Never raises."""
        await self.cleanup()
        self.healthy = False

    async def ping(self) -> None:
        """Round-trip a trivial request.

        A failure marks the adapter unhealthy without closing it.

        Raises:
            UnreachableError: If the session cannot answer
        """
        if not self.is_open:
            self.healthy = False
            raise UnreachableError(
                f"Connection '{self.name}' is not open",
                code=ErrorCodes.NETWORK_UNREACHABLE,
                context={"connection": self.name},
            )

        try:
            await self._ping()
        except Exception as e:
            self.healthy = False
            self.logger.warning("Ping failed", error=str(e))
            raise UnreachableError(
                f"Connection '{self.name}' did not answer ping: {e}",
                code=ErrorCodes.NETWORK_UNREACHABLE,
                context={"connection": self.name},
                cause=e,
            ) from e

        self.healthy = True

    async def run_query(self, sql: str) -> QueryResult:
        """Execute ``sql`` and materialize every row.

        Duration covers submission through consumption of the last row.

        Raises:
            QueryError: With the driver message if the backend rejects it
        """
        self._require_open()
        self.logger.debug("Executing query", sql=truncate_sql(sql))

        with self.perf_logger.measure("run_query", connection=self.name) as timer:
            columns, rows = await self._fetch_rows(sql)

        return QueryResult.build(columns, normalize_rows(rows), format_duration(timer.duration or 0.0))

    async def run_explain(self, sql: str) -> QueryResult:
        """Run ``sql`` wrapped in the backend's explain form."""
        return await self.run_query(f"{self.explain_prefix}{sql}")

    def _require_open(self) -> None:
        if not self.is_open:
            raise DatabaseConnectionError(
                f"Connection '{self.name}' is not open",
                code=ErrorCodes.CONNECTION_REFUSED,
                context={"connection": self.name},
            )

    async def _fetch_records(self, sql: str, *params: Any) -> List[Dict[str, Any]]:
        """Run an introspection query and key each row by column name."""
        self._require_open()
        columns, rows = await self._fetch_rows(sql, *params)
        return [dict(zip(columns, row)) for row in normalize_rows(rows)]

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "name": self.name,
            "endpoint": self.config.endpoint,
            "connected": self.is_open,
            "healthy": self.healthy,
            "open_seconds": round(self.open_seconds, 1) if self.open_seconds is not None else None,
        }

    # Backend primitives

    @abstractmethod
    async def _ping(self) -> None:
        """Issue a trivial request; raise on failure."""

    @abstractmethod
    async def _fetch_rows(self, sql: str, *params: Any) -> Rows:
        """Run one statement and return (column names, raw rows)."""

    # Introspection surface

    @abstractmethod
    async def get_tables(self) -> List[TableInfo]:
        ...

    @abstractmethod
    async def get_table_schema(self, table: str) -> List[ColumnInfo]:
        ...

    @abstractmethod
    async def get_table_indexes(self, table: str) -> List[IndexInfo]:
        ...

    @abstractmethod
    async def get_table_stats(self, table: str) -> TableStats:
        ...

    @abstractmethod
    async def get_table_sizes(self) -> List[TableSize]:
        ...

    @abstractmethod
    async def get_database_size(self) -> DatabaseSize:
        ...

    @abstractmethod
    async def get_active_connections(self) -> List[ActiveConnection]:
        ...

    @abstractmethod
    async def get_slow_queries(self) -> List[SlowQuery]:
        ...


def first_value(rows: Sequence[Sequence[Any]], default: Any = None) -> Any:
    """First cell of the first row, or ``default``."""
    if rows and rows[0]:
        return rows[0][0]
    return default
