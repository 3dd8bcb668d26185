"""Capability facade.

One method per tool. Each call re-resolves the current connection from the
registry, then runs the adapter, executor or optimizer outside the registry
lock. Backend errors propagate unchanged.
"""

from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..core.exceptions import ErrorCodes, NoCurrentConnectionError
from ..core.utils import with_deadline
from ..database.base import DatabaseAdapter
from ..database.executor import QueryExecutor
from ..database.models import (
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
from ..database.registry import ConnectionRegistry
from ..logging import get_logger, get_performance_logger
from ..optimization import create_optimizer
from ..optimization.models import (
    IndexSuggestion,
    PerformanceAnalysis,
    QueryOptimizationSuggestion,
    QueryPattern,
)

T = TypeVar("T")

NO_CONNECTION_MESSAGE = (
    "No database connection available. Please add and switch to a database connection first "
    "using the /add and /switch commands."
)


class CapabilityFacade:
    """The tool surface over the registry's current connection.

    Example:
        >>> facade = CapabilityFacade(registry)
        >>> tables = await facade.get_all_tables()
        >>> plan = await facade.explain_query("SELECT * FROM users", timeout=10)
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry
        self.logger = get_logger("tools.facade")
        self.perf_logger = get_performance_logger("tools.facade")

    async def _resolve(self) -> DatabaseAdapter:
        try:
            adapter, _ = await self.registry.current()
        except NoCurrentConnectionError as e:
            raise NoCurrentConnectionError(
                NO_CONNECTION_MESSAGE,
                code=ErrorCodes.NO_CURRENT_CONNECTION,
                cause=e,
            ) from e
        return adapter

    async def _call(
        self,
        operation: str,
        call: Callable[[DatabaseAdapter], Awaitable[T]],
        timeout: Optional[float],
    ) -> T:
        async def run() -> T:
            adapter = await self._resolve()
            with self.perf_logger.measure(operation, connection=adapter.name):
                return await call(adapter)

        return await with_deadline(run(), timeout, operation=operation)

    # Query execution

    async def execute_sql(self, sql: str, *, timeout: Optional[float] = None) -> QueryResult:
        return await self._call("execute_sql", lambda a: QueryExecutor(a).execute(sql), timeout)

    async def explain_query(self, sql: str, *, timeout: Optional[float] = None) -> QueryResult:
        return await self._call("explain_query", lambda a: QueryExecutor(a).explain(sql), timeout)

    async def find_duplicate_data(
        self,
        table_name: str,
        columns: Sequence[str],
        *,
        timeout: Optional[float] = None,
    ) -> QueryResult:
        return await self._call(
            "find_duplicate_data",
            lambda a: QueryExecutor(a).find_duplicate_data(table_name, columns),
            timeout,
        )

    # Introspection

    async def get_all_tables(self, *, timeout: Optional[float] = None) -> List[TableInfo]:
        return await self._call("get_all_tables", lambda a: a.get_tables(), timeout)

    async def get_table_schema(self, table_name: str, *, timeout: Optional[float] = None) -> List[ColumnInfo]:
        return await self._call("get_table_schema", lambda a: a.get_table_schema(table_name), timeout)

    async def get_table_indexes(self, table_name: str, *, timeout: Optional[float] = None) -> List[IndexInfo]:
        return await self._call("get_table_indexes", lambda a: a.get_table_indexes(table_name), timeout)

    async def get_table_stats(self, table_name: str, *, timeout: Optional[float] = None) -> TableStats:
        return await self._call("get_table_stats", lambda a: a.get_table_stats(table_name), timeout)

    async def get_slow_queries(self, *, timeout: Optional[float] = None) -> List[SlowQuery]:
        return await self._call("get_slow_queries", lambda a: a.get_slow_queries(), timeout)

    async def get_database_size(self, *, timeout: Optional[float] = None) -> DatabaseSize:
        return await self._call("get_database_size", lambda a: a.get_database_size(), timeout)

    async def get_table_sizes(self, *, timeout: Optional[float] = None) -> List[TableSize]:
        return await self._call("get_table_sizes", lambda a: a.get_table_sizes(), timeout)

    async def get_active_connections(self, *, timeout: Optional[float] = None) -> List[ActiveConnection]:
        return await self._call("get_active_connections", lambda a: a.get_active_connections(), timeout)

    # Optimization

    async def analyze_query_performance(
        self,
        query: str,
        *,
        timeout: Optional[float] = None,
    ) -> PerformanceAnalysis:
        return await self._call(
            "analyze_query_performance",
            lambda a: create_optimizer(a).analyze_query_performance(query),
            timeout,
        )

    async def suggest_indexes(self, table_name: str, *, timeout: Optional[float] = None) -> List[IndexSuggestion]:
        return await self._call("suggest_indexes", lambda a: create_optimizer(a).suggest_indexes(table_name), timeout)

    async def get_query_patterns(self, *, timeout: Optional[float] = None) -> List[QueryPattern]:
        return await self._call("get_query_patterns", lambda a: create_optimizer(a).get_query_patterns(), timeout)

    async def optimize_query(
        self,
        query: str,
        *,
        timeout: Optional[float] = None,
    ) -> List[QueryOptimizationSuggestion]:
        async def optimize(adapter: DatabaseAdapter) -> List[QueryOptimizationSuggestion]:
            return create_optimizer(adapter).optimize_query(query)

        return await self._call("optimize_query", optimize, timeout)

    async def analyze_table_performance(
        self,
        table_name: str,
        *,
        timeout: Optional[float] = None,
    ) -> PerformanceAnalysis:
        return await self._call(
            "analyze_table_performance",
            lambda a: create_optimizer(a).analyze_table_performance(table_name),
            timeout,
        )
