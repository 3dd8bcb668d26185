"""Optimizer contract and the index heuristics shared by both backends."""

from abc import ABC, abstractmethod
from typing import ClassVar, Iterable, List, Optional, Sequence, Set, Tuple

from ..core.exceptions import DBSageException, ErrorCodes, ValidationError
from ..core.utils import validate_identifier
from ..database.base import DatabaseAdapter, first_value
from ..database.models import ColumnInfo, IndexInfo
from ..logging import get_logger, get_performance_logger
from .models import IndexSuggestion, PerformanceAnalysis, QueryOptimizationSuggestion, QueryPattern


def bare_table_name(table: str) -> str:
    """``public.orders`` -> ``orders``."""
    return table.rsplit(".", 1)[-1]


def single_column_index_name(table: str, column: str) -> str:
    return f"idx_{bare_table_name(table)}_{column}"


def contains_any(value: str, markers: Iterable[str]) -> bool:
    value = value.lower()
    return any(marker in value for marker in markers)


def dedupe_suggestions(
    suggestions: Iterable[IndexSuggestion],
    existing: Iterable[str] = (),
) -> List[IndexSuggestion]:
    """Drop suggestions whose name already exists or was already proposed."""
    seen: Set[str] = set(existing)
    unique = []
    for suggestion in suggestions:
        if suggestion.index_name in seen:
            continue
        seen.add(suggestion.index_name)
        unique.append(suggestion)
    return unique


class QueryOptimizer(ABC):
    """Per-backend optimizer over one adapter.

    Entry points: ``analyze_query_performance``, ``suggest_indexes``,
    ``get_query_patterns``, ``optimize_query`` and
    ``analyze_table_performance``.
    """

    platform: ClassVar[str] = "unknown"

    # Column-name markers for composite heuristics
    status_markers: ClassVar[Tuple[str, ...]] = ("status", "state", "type")
    date_markers: ClassVar[Tuple[str, ...]] = ("date", "time", "created", "updated")
    user_markers: ClassVar[Tuple[str, ...]] = ("user", "owner", "author")
    user_date_markers: ClassVar[Tuple[str, ...]] = ("created",)

    def __init__(self, adapter: DatabaseAdapter) -> None:
        self.adapter = adapter
        self.logger = get_logger(f"optimizer.{self.platform}.{adapter.name}")
        self.perf_logger = get_performance_logger(f"optimizer.{self.platform}")

    def _validate_table(self, table: str) -> str:
        return validate_identifier(table, allow_schema=self.adapter.allows_schema_names, field="table name")

    @staticmethod
    def _validate_sql(sql: str) -> str:
        if not sql or not sql.strip():
            raise ValidationError("Query cannot be empty", code=ErrorCodes.INVALID_ARGUMENT)
        return sql

    @abstractmethod
    async def analyze_query_performance(self, sql: str) -> PerformanceAnalysis:
        """Explain ``sql`` and combine plan markers with catalog counts."""

    @abstractmethod
    async def suggest_indexes(self, table: str) -> List[IndexSuggestion]:
        ...

    @abstractmethod
    async def get_query_patterns(self) -> List[QueryPattern]:
        ...

    @abstractmethod
    def optimize_query(self, sql: str) -> List[QueryOptimizationSuggestion]:
        """Static anti-pattern advice for ``sql``; never touches the backend."""

    @abstractmethod
    async def analyze_table_performance(self, table: str) -> PerformanceAnalysis:
        ...

    async def _count(self, sql: str, what: str) -> Optional[int]:
        """Best-effort ``SELECT COUNT(*)``; failures are logged and yield ``None``."""
        try:
            result = await self.adapter.run_query(sql)
        except DBSageException as e:
            self.logger.warning("Catalog count failed", what=what, error=e.message)
            return None
        return int(first_value(result.rows, 0) or 0)

    # Shared index heuristics

    def foreign_key_gaps(
        self,
        table: str,
        columns: Sequence[ColumnInfo],
        indexes: Sequence[IndexInfo],
    ) -> List[IndexSuggestion]:
        """One suggestion per foreign-key column that no index covers."""
        indexed = {column for index in indexes for column in index.columns}
        suggestions = []
        for column in columns:
            if not column.is_foreign_key or column.column_name in indexed:
                continue
            index_name = single_column_index_name(table, column.column_name)
            suggestions.append(
                IndexSuggestion(
                    table_name=table,
                    index_name=index_name,
                    columns=[column.column_name],
                    index_type="btree",
                    reason="Foreign key column without index",
                    impact="High - will significantly improve join performance",
                    create_sql=f"CREATE INDEX {index_name} ON {table} ({column.column_name});",
                    estimated_size="Small to Medium",
                )
            )
        return suggestions

    def composite_suggestions(self, table: str, columns: Sequence[ColumnInfo]) -> List[IndexSuggestion]:
        """Two-FK, status/date and user/date composite proposals."""
        short = bare_table_name(table)
        candidates = [column for column in columns if not column.is_primary_key]
        suggestions = []

        fk_columns = [column.column_name for column in columns if column.is_foreign_key]
        if len(fk_columns) >= 2:
            pair = fk_columns[:2]
            suggestions.append(
                IndexSuggestion(
                    table_name=table,
                    index_name=f"idx_{short}_fk_composite",
                    columns=pair,
                    reason="Composite index on foreign key columns can significantly improve JOIN performance",
                    impact="high",
                    create_sql=f"CREATE INDEX idx_{short}_fk_composite ON {table} ({', '.join(pair)})",
                    estimated_size="Medium",
                )
            )

        status = self._first_named(candidates, self.status_markers)
        date = self._first_named(candidates, self.date_markers, exclude=status)
        if status and date:
            suggestions.append(
                self._pair_suggestion(
                    table,
                    status,
                    date,
                    reason=f"Composite index on '{status}' and '{date}' can improve queries filtering by status and date",
                    impact="high",
                    estimated_size="Medium",
                )
            )

        user = self._first_named(candidates, self.user_markers)
        created = self._first_named(candidates, self.user_date_markers, exclude=user)
        if user and created:
            suggestions.append(
                self._pair_suggestion(
                    table,
                    user,
                    created,
                    reason=f"Composite index on '{user}' and '{created}' can improve user-specific queries with date filtering",
                    impact="high",
                    estimated_size="Medium to Large",
                )
            )

        return suggestions

    @staticmethod
    def _first_named(
        columns: Sequence[ColumnInfo],
        markers: Sequence[str],
        *,
        exclude: Optional[str] = None,
    ) -> Optional[str]:
        for column in columns:
            if column.column_name != exclude and contains_any(column.column_name, markers):
                return column.column_name
        return None

    @staticmethod
    def _pair_suggestion(
        table: str,
        first: str,
        second: str,
        *,
        reason: str,
        impact: str,
        estimated_size: str,
    ) -> IndexSuggestion:
        index_name = f"idx_{bare_table_name(table)}_{first}_{second}"
        return IndexSuggestion(
            table_name=table,
            index_name=index_name,
            columns=[first, second],
            reason=reason,
            impact=impact,
            create_sql=f"CREATE INDEX {index_name} ON {table} ({first}, {second})",
            estimated_size=estimated_size,
        )
