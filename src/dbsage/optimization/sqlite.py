"""SQLite optimizer."""

from typing import List, Optional

from ..core.exceptions import DBSageException
from ..database.connectors.sqlite import SQLiteAdapter
from ..database.models import ColumnInfo
from .base import QueryOptimizer, bare_table_name, contains_any, dedupe_suggestions, single_column_index_name
from .models import IndexSuggestion, PerformanceAnalysis, QueryOptimizationSuggestion, QueryPattern
from .rules import COMMON_RULES, SQLITE_RULES, SQLITE_TABLE_PATTERN, apply_rules, extract_tables
from .scoring import score_recommendations

LARGE_TABLE_ROWS = 100000
INDEX_COUNT_QUERY = "SELECT COUNT(*) FROM sqlite_master WHERE type = 'index' AND name NOT LIKE 'sqlite_%'"

LARGE_TEXT_MARKERS = ("content", "description", "body")
COVERING_NAME_MARKERS = ("name", "title", "status", "type")
COVERING_TYPE_MARKERS = ("int", "text", "varchar")


def is_full_scan(detail: str) -> bool:
    """True for ``EXPLAIN QUERY PLAN`` details that read a whole table."""
    detail = detail.lower().strip()
    if "scan table" in detail:
        return True
    return detail.startswith("scan ") and "covering index" not in detail


def column_heuristic(column: ColumnInfo) -> Optional[IndexSuggestion]:
    """Type-directed single-column proposal, upgraded for well-known names.

    Returns ``None`` for BLOB and unrecognized types. The table fields are
    left for the caller to fill.
    """
    name = column.column_name
    data_type = column.data_type.lower()
    lowered = name.lower()

    if "int" in data_type:
        reason = f"Integer column '{name}' could benefit from an index for equality and range queries"
        impact = "medium"
    elif "text" in data_type:
        if contains_any(lowered, LARGE_TEXT_MARKERS):
            reason = f"Text column '{name}' might not need an index if it contains large text content"
            impact = "low"
        else:
            reason = f"Text column '{name}' could benefit from an index for equality queries and sorting"
            impact = "medium"
    elif "char" in data_type:
        reason = f"String column '{name}' could benefit from an index for equality queries"
        impact = "medium"
    elif any(marker in data_type for marker in ("real", "numeric", "decimal")):
        reason = f"Numeric column '{name}' could benefit from an index for range queries and sorting"
        impact = "medium"
    elif "date" in data_type or "time" in data_type:
        reason = f"Date/time column '{name}' could benefit from an index for range queries and sorting"
        impact = "high"
    else:
        return None

    if "email" in lowered:
        reason = f"Email column '{name}' should have an index for user lookups"
        impact = "high"
    elif "status" in lowered or "state" in lowered:
        reason = f"Status column '{name}' should have an index for filtering queries"
        impact = "high"
    elif "created" in lowered or "updated" in lowered:
        reason = f"Timestamp column '{name}' should have an index for date range queries"
        impact = "high"
    elif "user" in lowered and "id" in lowered:
        reason = f"User ID column '{name}' should have an index for user-specific queries"
        impact = "high"

    return IndexSuggestion(
        table_name="",
        index_name="",
        columns=[name],
        reason=reason,
        impact=impact,
        estimated_size="Small to Medium",
    )


class SQLiteOptimizer(QueryOptimizer):
    """Optimizer for SQLite connections.

    SQLite keeps no statement statistics, so query patterns are synthesized
    from the table list and the slow-query count is always zero.
    """

    platform = "sqlite"

    def __init__(self, adapter: SQLiteAdapter) -> None:
        super().__init__(adapter)
        self.adapter: SQLiteAdapter = adapter

    async def analyze_query_performance(self, sql: str) -> PerformanceAnalysis:
        self._validate_sql(sql)
        analysis = PerformanceAnalysis()

        with self.perf_logger.measure("analyze_query_performance", connection=self.adapter.name):
            plan = await self.adapter.run_explain(sql)
            details = [str(row[-1]) for row in plan.rows if row]
            if any(is_full_scan(detail) for detail in details):
                analysis.recommendations.append(
                    QueryOptimizationSuggestion(
                        type="index",
                        priority="high",
                        description="Query performs full table scan - consider adding appropriate indexes",
                        details="; ".join(details),
                        impact="High performance improvement expected",
                    )
                )

            analysis.database_size = await self._database_size()
            try:
                analysis.table_count = len(await self.adapter.get_user_tables())
            except DBSageException as e:
                self.logger.warning("Table count unavailable", error=e.message)
            analysis.index_count = await self._count(INDEX_COUNT_QUERY, "indexes") or 0

        analysis.overall_score = score_recommendations(analysis.bottlenecks, analysis.recommendations)
        return analysis

    async def _database_size(self) -> str:
        size = await self.adapter.get_database_size()
        if size.size_bytes == 0 and size.database_name == "In-Memory Database":
            return "In-Memory"
        return f"{size.size_bytes / (1024 * 1024):.1f} MB"

    async def suggest_indexes(self, table: str) -> List[IndexSuggestion]:
        """Foreign-key gaps, per-column heuristics and composite opportunities."""
        self._validate_table(table)
        columns = await self.adapter.get_table_schema(table)
        indexes = await self.adapter.get_table_indexes(table)
        existing = [index.index_name for index in indexes]

        suggestions = self.foreign_key_gaps(table, columns, indexes)
        suggestions.extend(self._column_suggestions(table, columns))
        suggestions.extend(self.composite_suggestions(table, columns))
        suggestions.extend(self._integer_pair_suggestion(table, columns))
        suggestions.extend(self._covering_suggestion(table, columns))
        return dedupe_suggestions(suggestions, existing=existing)

    def _column_suggestions(self, table: str, columns: List[ColumnInfo]) -> List[IndexSuggestion]:
        suggestions = []
        for column in columns:
            if column.is_primary_key:
                continue
            suggestion = column_heuristic(column)
            if suggestion is None:
                continue
            suggestion.table_name = table
            suggestion.index_name = single_column_index_name(table, column.column_name)
            suggestion.create_sql = f"CREATE INDEX {suggestion.index_name} ON {table} ({column.column_name})"
            suggestions.append(suggestion)
        return suggestions

    def _integer_pair_suggestion(self, table: str, columns: List[ColumnInfo]) -> List[IndexSuggestion]:
        integers = [c.column_name for c in columns if not c.is_primary_key and "int" in c.data_type.lower()]
        if len(integers) < 2:
            return []
        first, second = integers[:2]
        return [
            self._pair_suggestion(
                table,
                first,
                second,
                reason=f"Composite index on integer columns '{first}' and '{second}' might improve multi-column filtering",
                impact="medium",
                estimated_size="Small to Medium",
            )
        ]

    def _covering_suggestion(self, table: str, columns: List[ColumnInfo]) -> List[IndexSuggestion]:
        if len(columns) < 3:
            return []

        small = [
            column.column_name
            for column in columns
            if not column.is_primary_key
            and contains_any(column.data_type, COVERING_TYPE_MARKERS)
            and contains_any(column.column_name, COVERING_NAME_MARKERS)
        ]
        if len(small) < 2:
            return []

        first, second = small[:2]
        index_name = f"idx_{bare_table_name(table)}_covering"
        return [
            IndexSuggestion(
                table_name=table,
                index_name=index_name,
                columns=[first, second],
                reason=(
                    f"Covering index on '{first}' and '{second}' can improve SELECT performance "
                    "by avoiding table lookups"
                ),
                impact="medium",
                create_sql=f"CREATE INDEX {index_name} ON {table} ({first}, {second})",
                estimated_size="Medium",
            )
        ]

    async def get_query_patterns(self) -> List[QueryPattern]:
        """One synthetic ``basic`` pattern per user table."""
        patterns = []
        for table in await self.adapter.get_user_tables():
            patterns.append(
                QueryPattern(
                    pattern_type="basic",
                    query=f"SELECT * FROM {table}",
                    count=1,
                    total_time=0.1,
                    avg_time=0.1,
                    tables=[table],
                    suggestions=[
                        QueryOptimizationSuggestion(
                            type="index",
                            priority="medium",
                            description=f"Consider adding indexes to frequently queried columns in {table}",
                            impact="medium",
                        )
                    ],
                )
            )
        return patterns

    def optimize_query(self, sql: str) -> List[QueryOptimizationSuggestion]:
        self._validate_sql(sql)
        suggestions = apply_rules(sql, COMMON_RULES)
        suggestions.extend(apply_rules(sql, SQLITE_RULES))

        for table in extract_tables(sql, SQLITE_TABLE_PATTERN):
            suggestions.append(
                QueryOptimizationSuggestion(
                    type="index",
                    priority="medium",
                    description=(
                        f"Ensure appropriate indexes exist on {table} "
                        "for columns used in WHERE, JOIN, and ORDER BY clauses"
                    ),
                    impact="High performance improvement expected",
                )
            )
        return suggestions

    async def analyze_table_performance(self, table: str) -> PerformanceAnalysis:
        self._validate_table(table)
        stats = await self.adapter.get_table_stats(table)
        indexes = await self.adapter.get_table_indexes(table)
        foreign_keys = await self.adapter.get_foreign_keys(table)
        analysis = PerformanceAnalysis(index_count=len(indexes), database_size=stats.total_size)

        if stats.row_count > LARGE_TABLE_ROWS:
            analysis.bottlenecks.append(
                f"Large table ({stats.row_count} rows) - consider partitioning or archiving"
            )

        if not indexes:
            analysis.recommendations.append(
                QueryOptimizationSuggestion(
                    type="index",
                    priority="high",
                    description=(
                        f"Table {table} has no indexes - consider adding indexes on frequently queried columns"
                    ),
                    impact="High performance improvement expected",
                )
            )

        for foreign_key in foreign_keys:
            analysis.recommendations.append(
                QueryOptimizationSuggestion(
                    type="index",
                    priority="medium",
                    description=f"Consider adding indexes on foreign key columns in {table}",
                    details=f"{foreign_key['from']} references {foreign_key['table']}({foreign_key['to']})",
                    impact="Medium performance improvement expected",
                )
            )

        analysis.index_suggestions = await self.suggest_indexes(table)
        analysis.overall_score = score_recommendations(analysis.bottlenecks, analysis.recommendations)
        return analysis
