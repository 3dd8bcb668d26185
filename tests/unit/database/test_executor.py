"""Tests for query execution helpers."""

import pytest

from dbsage.core.exceptions import ValidationError
from dbsage.database.executor import (
    DUPLICATE_ROW_LIMIT,
    QueryExecutor,
    build_find_duplicates_sql,
    decode_cell,
    normalize_rows,
)


class TestDecodeCell:
    def test_bytes(self):
        assert decode_cell(b"abc") == "abc"
        assert decode_cell(bytearray(b"xyz")) == "xyz"
        assert decode_cell(memoryview(b"mv")) == "mv"

    def test_invalid_utf8_is_replaced(self):
        assert decode_cell(b"\xff") == "�"

    def test_scalars_unchanged(self):
        for value in (None, 1, 2.5, "text", True):
            assert decode_cell(value) == value

    def test_normalize_rows(self):
        assert normalize_rows([(1, b"a"), (2, None)]) == [[1, "a"], [2, None]]


class TestBuildFindDuplicatesSql:
    def test_single_column(self):
        sql = build_find_duplicates_sql("users", ["email"])

        assert sql == (
            "SELECT email, COUNT(*) AS duplicate_count FROM users "
            "GROUP BY email HAVING COUNT(*) > 1 "
            f"ORDER BY COUNT(*) DESC LIMIT {DUPLICATE_ROW_LIMIT}"
        )

    def test_multiple_columns(self):
        sql = build_find_duplicates_sql("users", ["email", "name"])

        assert sql.startswith("SELECT email, name, COUNT(*) AS duplicate_count")
        assert "GROUP BY email, name" in sql

    def test_empty_columns(self):
        with pytest.raises(ValidationError, match="At least one column"):
            build_find_duplicates_sql("users", [])

    def test_rejects_unsafe_names(self):
        with pytest.raises(ValidationError):
            build_find_duplicates_sql("users", ["email; DROP TABLE users"])
        with pytest.raises(ValidationError):
            build_find_duplicates_sql("users x", ["email"])

    def test_schema_names(self):
        with pytest.raises(ValidationError):
            build_find_duplicates_sql("public.users", ["email"])

        sql = build_find_duplicates_sql("public.users", ["email"], allow_schema=True)
        assert "FROM public.users" in sql


class TestQueryExecutor:
    """Test the executor against a real SQLite file."""

    @pytest.mark.asyncio
    async def test_execute(self, sqlite_adapter):
        executor = QueryExecutor(sqlite_adapter)

        result = await executor.execute("SELECT COUNT(*) AS n FROM orders")

        assert result.columns == ["n"]
        assert result.rows == [[3]]

    @pytest.mark.asyncio
    async def test_empty_sql(self, sqlite_adapter):
        executor = QueryExecutor(sqlite_adapter)

        with pytest.raises(ValidationError):
            await executor.execute("   ")
        with pytest.raises(ValidationError):
            await executor.explain("")

    @pytest.mark.asyncio
    async def test_explain(self, sqlite_adapter):
        result = await QueryExecutor(sqlite_adapter).explain("SELECT * FROM users")

        assert result.row_count >= 1

    @pytest.mark.asyncio
    async def test_find_duplicate_data(self, sqlite_adapter):
        result = await QueryExecutor(sqlite_adapter).find_duplicate_data("users", ["email"])

        assert result.columns == ["email", "duplicate_count"]
        assert result.rows == [["a@example.com", 2]]

    @pytest.mark.asyncio
    async def test_no_duplicates(self, sqlite_adapter):
        result = await QueryExecutor(sqlite_adapter).find_duplicate_data("users", ["id"])

        assert result.rows == []
        assert result.row_count == 0
