"""Tests for the PostgreSQL optimizer over a mocked adapter."""

import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from dbsage.core.exceptions import ErrorCodes, ExtensionMissingError, QueryError
from dbsage.database.connectors import PostgreSQLAdapter
from dbsage.database.models import ColumnInfo, DatabaseSize, IndexInfo, QueryResult, TableStats
from dbsage.optimization import PostgreSQLOptimizer, create_optimizer
from dbsage.optimization.postgresql import classify_pattern, plan_total_cost

ORDERS_COLUMNS = [
    ColumnInfo(column_name="id", data_type="integer", is_nullable=False, is_primary_key=True),
    ColumnInfo(column_name="customer_id", data_type="integer", is_nullable=False, is_foreign_key=True),
    ColumnInfo(column_name="product_id", data_type="integer", is_nullable=False, is_foreign_key=True),
    ColumnInfo(column_name="status", data_type="text", is_nullable=True),
    ColumnInfo(column_name="created_at", data_type="timestamp without time zone", is_nullable=True),
    ColumnInfo(column_name="metadata", data_type="jsonb", is_nullable=True),
    ColumnInfo(column_name="tags", data_type="ARRAY", is_nullable=True),
    ColumnInfo(column_name="is_active", data_type="boolean", is_nullable=True),
]

ORDERS_INDEXES = [
    IndexInfo(index_name="orders_pkey", is_unique=True, is_primary=True, columns=["id"]),
    IndexInfo(index_name="idx_orders_customer_id", is_unique=False, is_primary=False, columns=["customer_id"]),
]

SEQ_SCAN_PLAN = json.dumps([{"Plan": {"Node Type": "Seq Scan", "Relation Name": "orders", "Total Cost": 35.5}}])


def count_result(value):
    return QueryResult.build(["count"], [[value]], "1.00ms")


@pytest.fixture
def adapter():
    adapter = MagicMock(spec=PostgreSQLAdapter)
    adapter.name = "warehouse"
    adapter.platform = "postgres"
    adapter.allows_schema_names = True
    adapter.get_table_schema.return_value = ORDERS_COLUMNS
    adapter.get_table_indexes.return_value = ORDERS_INDEXES
    adapter.get_database_size.return_value = DatabaseSize(database_name="analytics", size="8 MB", size_bytes=8388608)
    adapter.has_pg_stat_statements.return_value = False
    adapter.run_query.return_value = count_result(4)
    return adapter


@pytest.fixture
def optimizer(adapter):
    return PostgreSQLOptimizer(adapter)


class TestHelpers:
    def test_plan_total_cost(self):
        assert plan_total_cost(SEQ_SCAN_PLAN) == 35.5
        assert plan_total_cost("not json") is None
        assert plan_total_cost("[]") is None

    def test_classify_pattern(self):
        assert classify_pattern(1500.0, 3) == "slow"
        assert classify_pattern(20.0, 500) == "frequent"
        assert classify_pattern(20.0, 50) == "complex"

    def test_create_optimizer(self, adapter):
        assert isinstance(create_optimizer(adapter), PostgreSQLOptimizer)

    def test_create_optimizer_unknown_backend(self):
        from dbsage.core.exceptions import ValidationError

        with pytest.raises(ValidationError):
            create_optimizer(MagicMock(platform="mysql"))


class TestAnalyzeQueryPerformance:
    @pytest.mark.asyncio
    async def test_sequential_scan(self, optimizer, adapter):
        adapter.run_explain.return_value = QueryResult.build(["QUERY PLAN"], [[SEQ_SCAN_PLAN]], "2.00ms")

        analysis = await optimizer.analyze_query_performance("SELECT * FROM orders")

        assert len(analysis.recommendations) == 1
        recommendation = analysis.recommendations[0]
        assert recommendation.description == "Query is using sequential scan, consider adding an index"
        assert recommendation.estimated_cost == 35.5
        assert analysis.database_size == "8 MB"
        assert analysis.table_count == 4
        assert analysis.index_count == 4
        assert analysis.slow_query_count == 0
        assert analysis.overall_score == 100

    @pytest.mark.asyncio
    async def test_external_sort(self, optimizer, adapter):
        plan = json.dumps([{"Plan": {"Node Type": "Sort", "Sort Method": "external merge"}}])
        adapter.run_explain.return_value = QueryResult.build(["QUERY PLAN"], [[plan]], "2.00ms")

        analysis = await optimizer.analyze_query_performance("SELECT id FROM orders ORDER BY created_at")

        assert [r.type for r in analysis.recommendations] == ["structure"]

    @pytest.mark.asyncio
    async def test_slow_queries_counted_with_extension(self, optimizer, adapter):
        adapter.run_explain.return_value = QueryResult.build(["QUERY PLAN"], [["[]"]], "2.00ms")
        adapter.has_pg_stat_statements.return_value = True
        adapter.run_query.return_value = count_result(12)

        analysis = await optimizer.analyze_query_performance("SELECT 1")

        assert analysis.slow_query_count == 12
        assert analysis.overall_score == 80

    @pytest.mark.asyncio
    async def test_catalog_count_failure_is_tolerated(self, optimizer, adapter):
        adapter.run_explain.return_value = QueryResult.build(["QUERY PLAN"], [["[]"]], "2.00ms")
        adapter.run_query.side_effect = QueryError("permission denied", code=ErrorCodes.QUERY_EXECUTION_FAILED)

        analysis = await optimizer.analyze_query_performance("SELECT 1")

        assert analysis.table_count == 0
        assert analysis.index_count == 0

    @pytest.mark.asyncio
    async def test_explain_failure_propagates(self, optimizer, adapter):
        adapter.run_explain.side_effect = QueryError(
            'relation "ghosts" does not exist', code=ErrorCodes.QUERY_EXECUTION_FAILED
        )

        with pytest.raises(QueryError):
            await optimizer.analyze_query_performance("SELECT * FROM ghosts")


class TestSuggestIndexes:
    @pytest.mark.asyncio
    async def test_orders(self, optimizer, adapter):
        suggestions = await optimizer.suggest_indexes("public.orders")

        assert [s.index_name for s in suggestions] == [
            "idx_orders_product_id",
            "idx_orders_fk_composite",
            "idx_orders_status_created_at",
            "idx_orders_metadata_gin",
            "idx_orders_tags_gin",
            "idx_orders_is_active_true",
        ]
        by_name = {s.index_name: s for s in suggestions}
        assert by_name["idx_orders_fk_composite"].columns == ["customer_id", "product_id"]
        assert by_name["idx_orders_metadata_gin"].index_type == "gin"
        assert by_name["idx_orders_metadata_gin"].create_sql == (
            "CREATE INDEX idx_orders_metadata_gin ON public.orders USING gin(metadata)"
        )
        assert by_name["idx_orders_is_active_true"].create_sql.endswith("WHERE is_active = true")
        adapter.get_table_schema.assert_awaited_once_with("public.orders")

    @pytest.mark.asyncio
    async def test_user_and_date_composite(self, optimizer, adapter):
        adapter.get_table_schema.return_value = [
            ColumnInfo(column_name="id", data_type="integer", is_nullable=False, is_primary_key=True),
            ColumnInfo(column_name="author_id", data_type="integer", is_nullable=False),
            ColumnInfo(column_name="published_date", data_type="date", is_nullable=True),
        ]
        adapter.get_table_indexes.return_value = []

        suggestions = await optimizer.suggest_indexes("posts")

        assert [s.index_name for s in suggestions] == ["idx_posts_author_id_published_date"]


class TestQueryPatterns:
    @pytest.mark.asyncio
    async def test_requires_extension(self, optimizer, adapter):
        adapter.require_pg_stat_statements.side_effect = ExtensionMissingError(
            "pg_stat_statements extension is not installed", code=ErrorCodes.EXTENSION_MISSING
        )

        with pytest.raises(ExtensionMissingError):
            await optimizer.get_query_patterns()

    @pytest.mark.asyncio
    async def test_patterns(self, optimizer, adapter):
        adapter.run_query.return_value = QueryResult.build(
            ["query", "calls", "total_time", "avg_time"],
            [
                ["SELECT * FROM orders JOIN customers ON customers.id = orders.customer_id", 500, 25000.0, 50.0],
                ["SELECT * FROM events", 20, 60000.0, 3000.0],
                ["SELECT count(*) FROM audit", 11, 1.1, 0.1],
            ],
            "3.00ms",
        )

        patterns = await optimizer.get_query_patterns()

        assert [p.pattern_type for p in patterns] == ["frequent", "slow", "complex"]
        assert patterns[0].tables == ["orders", "customers"]
        assert patterns[0].suggestions[0].details == "Executed 500 times"
        assert patterns[1].suggestions[0].details == "Average execution time: 3000.00ms"
        assert patterns[1].suggestions[0].before_sql == "SELECT * FROM events"
        assert patterns[2].suggestions == []


class TestAnalyzeTablePerformance:
    @pytest.mark.asyncio
    async def test_busy_table(self, optimizer, adapter):
        adapter.get_table_stats.return_value = TableStats(
            table_name="orders",
            row_count=200000,
            seq_scan=50,
            idx_scan=10,
            n_tup_upd=150000,
            last_analyze=datetime.now() - timedelta(days=3),
        )

        analysis = await optimizer.analyze_table_performance("orders")

        assert [r.description for r in analysis.recommendations] == [
            "Table statistics are outdated",
            "Table has high sequential scan ratio",
        ]
        assert analysis.bottlenecks == [
            "Large table may need partitioning",
            "High update frequency may cause bloat",
        ]
        assert len(analysis.index_suggestions) == 6
        assert analysis.index_count == 2
        assert analysis.overall_score == 75

    @pytest.mark.asyncio
    async def test_quiet_table(self, optimizer, adapter):
        adapter.get_table_stats.return_value = TableStats(
            table_name="orders", row_count=100, seq_scan=1, idx_scan=40, last_analyze=datetime.now()
        )
        adapter.get_table_schema.return_value = ORDERS_COLUMNS[:1]

        analysis = await optimizer.analyze_table_performance("orders")

        assert analysis.recommendations == []
        assert analysis.bottlenecks == []
        assert analysis.overall_score == 100


class TestOptimizeQuery:
    def test_common_rules_only(self, optimizer):
        suggestions = optimizer.optimize_query("SELECT * FROM orders ORDER BY id")

        assert [s.description for s in suggestions] == ["Avoid using SELECT *, specify only needed columns"]

    def test_combined_advice(self, optimizer):
        sql = "SELECT DISTINCT name FROM users WHERE lower(email) = 'x' UNION SELECT name FROM admins"

        suggestions = optimizer.optimize_query(sql)

        assert len(suggestions) == 4
        assert {s.priority for s in suggestions} == {"high", "medium", "low"}
