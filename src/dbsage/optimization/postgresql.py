"""PostgreSQL optimizer."""

import json
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..core.exceptions import DBSageException
from ..database.connectors.postgresql import PostgreSQLAdapter
from ..database.models import ColumnInfo
from .base import QueryOptimizer, bare_table_name, dedupe_suggestions
from .models import IndexSuggestion, PerformanceAnalysis, QueryOptimizationSuggestion, QueryPattern
from .rules import COMMON_RULES, POSTGRES_TABLE_PATTERN, apply_rules, extract_tables
from .scoring import score_analysis

SLOW_PATTERN_MS = 1000
FREQUENT_PATTERN_CALLS = 100
STALE_STATISTICS = timedelta(hours=24)
LARGE_TABLE_ROWS = 100000

TABLE_COUNT_QUERY = "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = 'public'"
INDEX_COUNT_QUERY = "SELECT COUNT(*) FROM pg_indexes WHERE schemaname = 'public'"
SLOW_QUERY_COUNT_QUERY = f"SELECT COUNT(*) FROM pg_stat_statements WHERE mean_exec_time > {SLOW_PATTERN_MS}"
QUERY_PATTERNS_QUERY = """
    SELECT query, calls, total_exec_time AS total_time, mean_exec_time AS avg_time
    FROM pg_stat_statements
    WHERE calls > 10
    ORDER BY total_exec_time DESC
    LIMIT 20
"""

BOOLEAN_FLAG_MARKERS = ("active", "enabled", "deleted", "published")


def plan_total_cost(plan_text: str) -> Optional[float]:
    """Top-level ``Total Cost`` of a ``FORMAT JSON`` plan, if it parses."""
    try:
        document = json.loads(plan_text)
        return float(document[0]["Plan"]["Total Cost"])
    except (ValueError, TypeError, KeyError, IndexError):
        return None


def classify_pattern(avg_time: float, calls: int) -> str:
    if avg_time > SLOW_PATTERN_MS:
        return "slow"
    if calls > FREQUENT_PATTERN_CALLS:
        return "frequent"
    return "complex"


def pattern_suggestions(pattern: QueryPattern) -> List[QueryOptimizationSuggestion]:
    if pattern.pattern_type == "slow":
        return [
            QueryOptimizationSuggestion(
                type="rewrite",
                priority="high",
                description="This query is consistently slow and should be optimized",
                details=f"Average execution time: {pattern.avg_time:.2f}ms",
                impact="High performance improvement expected",
                before_sql=pattern.query,
            )
        ]
    if pattern.pattern_type == "frequent":
        return [
            QueryOptimizationSuggestion(
                type="index",
                priority="medium",
                description="This query runs frequently and could benefit from better indexing",
                details=f"Executed {pattern.count} times",
                impact="Medium performance improvement expected",
            )
        ]
    return []


def _is_stale(last_analyze: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if last_analyze is None:
        return False
    if now is None:
        now = datetime.now(timezone.utc) if last_analyze.tzinfo else datetime.now()
    return now - last_analyze > STALE_STATISTICS


class PostgreSQLOptimizer(QueryOptimizer):
    """Optimizer for PostgreSQL connections.

    Plan diagnostics come from ``EXPLAIN (ANALYZE, BUFFERS, FORMAT JSON)``;
    query patterns and slow-query counts come from ``pg_stat_statements``.
    """

    platform = "postgres"
    user_markers = ("user", "owner", "author", "creator")
    user_date_markers = ("created", "date", "time")

    def __init__(self, adapter: PostgreSQLAdapter) -> None:
        super().__init__(adapter)
        self.adapter: PostgreSQLAdapter = adapter

    async def analyze_query_performance(self, sql: str) -> PerformanceAnalysis:
        self._validate_sql(sql)
        analysis = PerformanceAnalysis()

        with self.perf_logger.measure("analyze_query_performance", connection=self.adapter.name):
            explain = await self.adapter.run_explain(sql)
            plan_text = "\n".join(str(cell) for row in explain.rows for cell in row)
            analysis.recommendations.extend(self._plan_recommendations(plan_text))

            try:
                analysis.database_size = (await self.adapter.get_database_size()).size
            except DBSageException as e:
                self.logger.warning("Database size unavailable", error=e.message)

            analysis.table_count = await self._count(TABLE_COUNT_QUERY, "tables") or 0
            analysis.index_count = await self._count(INDEX_COUNT_QUERY, "indexes") or 0
            analysis.slow_query_count = await self._slow_query_count()

        analysis.overall_score = score_analysis(
            analysis.slow_query_count,
            len(analysis.index_suggestions),
            len(analysis.bottlenecks),
        )
        return analysis

    def _plan_recommendations(self, plan_text: str) -> List[QueryOptimizationSuggestion]:
        recommendations = []
        if "Seq Scan" in plan_text:
            recommendations.append(
                QueryOptimizationSuggestion(
                    type="index",
                    priority="high",
                    description="Query is using sequential scan, consider adding an index",
                    details="Sequential scans are inefficient for large tables",
                    impact="High performance improvement expected",
                    estimated_cost=plan_total_cost(plan_text),
                )
            )
        if "Sort" in plan_text and "external" in plan_text:
            recommendations.append(
                QueryOptimizationSuggestion(
                    type="structure",
                    priority="medium",
                    description="Query requires external sorting, consider increasing work_mem",
                    details="External sorting indicates insufficient memory allocation",
                    impact="Medium performance improvement expected",
                )
            )
        return recommendations

    async def _slow_query_count(self) -> int:
        try:
            if not await self.adapter.has_pg_stat_statements():
                return 0
        except DBSageException as e:
            self.logger.warning("Extension check failed", error=e.message)
            return 0
        return await self._count(SLOW_QUERY_COUNT_QUERY, "slow queries") or 0

    async def suggest_indexes(self, table: str) -> List[IndexSuggestion]:
        """Foreign-key gaps plus composite, GIN and partial-index opportunities."""
        self._validate_table(table)
        columns = await self.adapter.get_table_schema(table)
        indexes = await self.adapter.get_table_indexes(table)

        suggestions = self.foreign_key_gaps(table, columns, indexes)
        suggestions.extend(self.composite_suggestions(table, columns))
        suggestions.extend(self._gin_suggestions(table, columns))
        suggestions.extend(self._partial_suggestions(table, columns))
        return dedupe_suggestions(suggestions, existing=[index.index_name for index in indexes])

    def _gin_suggestions(self, table: str, columns: List[ColumnInfo]) -> List[IndexSuggestion]:
        short = bare_table_name(table)
        suggestions = []
        for column in columns:
            data_type = column.data_type.lower()
            if data_type == "jsonb":
                reason = f"GIN index on JSONB column '{column.column_name}' for efficient JSON queries and operations"
                size = "Medium to Large"
            elif data_type == "array":
                reason = (
                    f"GIN index on array column '{column.column_name}' for efficient array operations "
                    "and containment queries"
                )
                size = "Medium"
            else:
                continue

            index_name = f"idx_{short}_{column.column_name}_gin"
            suggestions.append(
                IndexSuggestion(
                    table_name=table,
                    index_name=index_name,
                    columns=[column.column_name],
                    index_type="gin",
                    reason=reason,
                    impact="high",
                    create_sql=f"CREATE INDEX {index_name} ON {table} USING gin({column.column_name})",
                    estimated_size=size,
                )
            )
        return suggestions

    def _partial_suggestions(self, table: str, columns: List[ColumnInfo]) -> List[IndexSuggestion]:
        short = bare_table_name(table)
        suggestions = []
        for column in columns:
            name = column.column_name
            if column.data_type.lower() != "boolean" or not any(m in name.lower() for m in BOOLEAN_FLAG_MARKERS):
                continue
            index_name = f"idx_{short}_{name}_true"
            suggestions.append(
                IndexSuggestion(
                    table_name=table,
                    index_name=index_name,
                    columns=[name],
                    reason=f"Partial index on '{name}' for TRUE values can be very efficient if most records are FALSE",
                    impact="medium",
                    create_sql=f"CREATE INDEX {index_name} ON {table} ({name}) WHERE {name} = true",
                    estimated_size="Small",
                )
            )
        return suggestions

    async def get_query_patterns(self) -> List[QueryPattern]:
        """Recurring statements from ``pg_stat_statements``.

        Raises:
            ExtensionMissingError: If pg_stat_statements is not installed
        """
        await self.adapter.require_pg_stat_statements()
        result = await self.adapter.run_query(QUERY_PATTERNS_QUERY)

        patterns = []
        for record in result.records():
            pattern = QueryPattern(
                pattern_type=classify_pattern(float(record["avg_time"] or 0), int(record["calls"] or 0)),
                query=record["query"],
                count=int(record["calls"] or 0),
                total_time=float(record["total_time"] or 0),
                avg_time=float(record["avg_time"] or 0),
                tables=extract_tables(record["query"] or "", POSTGRES_TABLE_PATTERN),
            )
            pattern.suggestions = pattern_suggestions(pattern)
            patterns.append(pattern)
        return patterns

    def optimize_query(self, sql: str) -> List[QueryOptimizationSuggestion]:
        self._validate_sql(sql)
        return apply_rules(sql, COMMON_RULES)

    async def analyze_table_performance(self, table: str) -> PerformanceAnalysis:
        self._validate_table(table)
        stats = await self.adapter.get_table_stats(table)
        analysis = PerformanceAnalysis()

        if _is_stale(stats.last_analyze):
            analysis.recommendations.append(
                QueryOptimizationSuggestion(
                    type="structure",
                    priority="medium",
                    description="Table statistics are outdated",
                    details=f"Last analyzed: {stats.last_analyze:%Y-%m-%d %H:%M:%S}",
                    impact="Medium - outdated statistics affect query planning",
                )
            )

        if stats.seq_scan > stats.idx_scan * 2:
            analysis.recommendations.append(
                QueryOptimizationSuggestion(
                    type="index",
                    priority="high",
                    description="Table has high sequential scan ratio",
                    details=f"Sequential scans: {stats.seq_scan}, Index scans: {stats.idx_scan}",
                    impact="High - consider adding appropriate indexes",
                )
            )

        if stats.row_count > LARGE_TABLE_ROWS:
            analysis.bottlenecks.append("Large table may need partitioning")
        if stats.n_tup_upd > stats.row_count / 2:
            analysis.bottlenecks.append("High update frequency may cause bloat")

        analysis.index_suggestions = await self.suggest_indexes(table)
        analysis.index_count = len(await self.adapter.get_table_indexes(table))
        analysis.overall_score = score_analysis(0, len(analysis.index_suggestions), len(analysis.bottlenecks))
        return analysis
