"""End-to-end tool flows through the registry, facade and dispatcher."""

import json
import sqlite3
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from dbsage.config import ConnectionConfig
from dbsage.database import ConnectionRegistry
from dbsage.database.models import ConnectionStatus
from dbsage.tools import CapabilityFacade, ToolDispatcher

CREATE_POOL = "dbsage.database.connectors.postgresql.asyncpg.create_pool"

COLUMN_FIELDS = [
    "column_name", "data_type", "is_nullable", "column_default",
    "character_maximum_length", "numeric_precision", "numeric_scale",
    "is_primary_key", "is_foreign_key", "description",
]
INDEX_FIELDS = ["index_name", "is_unique", "is_primary", "columns", "index_type", "tablespace", "description"]


@pytest.fixture
def pg_config() -> ConnectionConfig:
    return ConnectionConfig(
        name="t",
        kind="postgres",
        host="127.0.0.1",
        port=5432,
        database="postgres",
        username="u",
        password="p",
    )


@pytest_asyncio.fixture
async def registry():
    registry = ConnectionRegistry()
    yield registry
    await registry.close()


@pytest.fixture
def dispatcher(registry) -> ToolDispatcher:
    return ToolDispatcher(CapabilityFacade(registry))


class TestPostgresFlows:
    @pytest.mark.asyncio
    async def test_add_and_query(self, registry, pg_config, fake_connection, fake_pool):
        fake_connection.responses.append(("SELECT 1", ["?column?"], [(1,)]))

        with patch(CREATE_POOL, new=AsyncMock(return_value=fake_pool)):
            await registry.add(pg_config)
            result = await CapabilityFacade(registry).execute_sql("SELECT 1")

        assert result.columns == ["?column?"]
        assert result.rows == [[1]]
        assert result.row_count == 1
        assert result.duration
        assert "t" in [info.name for info in registry.list()]
        assert registry.status()["t"] in (ConnectionStatus.CONNECTED, ConnectionStatus.ACTIVE)

    @pytest.mark.asyncio
    async def test_foreign_key_without_index(self, registry, pg_config, fake_connection, fake_pool):
        fake_connection.responses.extend([
            (
                "information_schema.columns",
                COLUMN_FIELDS,
                [
                    ("id", "integer", "NO", None, None, 32, 0, True, False, ""),
                    ("user_id", "integer", "YES", None, None, 32, 0, False, True, ""),
                ],
            ),
            ("pg_index", INDEX_FIELDS, [("orders_pkey", True, True, ["id"], "btree", None, None)]),
        ])

        with patch(CREATE_POOL, new=AsyncMock(return_value=fake_pool)):
            await registry.add(pg_config)
            suggestions = await CapabilityFacade(registry).suggest_indexes("orders")

        gap = suggestions[0]
        assert gap.table_name == "orders"
        assert gap.index_name == "idx_orders_user_id"
        assert gap.columns == ["user_id"]
        assert gap.index_type == "btree"

    @pytest.mark.asyncio
    async def test_missing_statement_statistics(self, registry, dispatcher, pg_config, fake_connection, fake_pool):
        fake_connection.responses.append(("pg_extension", ["exists"], [(False,)]))

        with patch(CREATE_POOL, new=AsyncMock(return_value=fake_pool)):
            await registry.add(pg_config)
            document = json.loads(await dispatcher.dispatch("get_query_patterns"))

        assert document["kind"] == "extension-missing"
        assert document["result"] == []
        assert "pg_stat_statements" in document["error"]

        # The session keeps working after the degraded call
        fake_connection.responses.append(("SELECT 1", ["?column?"], [(1,)]))
        follow_up = json.loads(await dispatcher.dispatch("execute_sql", {"sql": "SELECT 1"}))
        assert follow_up["rows"] == [[1]]

    @pytest.mark.asyncio
    async def test_dead_current_connection(
        self, registry, dispatcher, pg_config, sqlite_config, fake_connection, fake_pool
    ):
        with patch(CREATE_POOL, new=AsyncMock(return_value=fake_pool)) as create_pool:
            await registry.add(pg_config)
            await registry.add(sqlite_config)
            assert registry.current_name == "t"

            fake_connection.ping_error = ConnectionResetError("server closed the connection")
            create_pool.side_effect = OSError("Connection refused")

            document = json.loads(await dispatcher.dispatch("get_all_tables"))

        assert document["kind"] == "unreachable"
        status = registry.status()
        assert status["t"] == ConnectionStatus.UNHEALTHY
        assert status["local"] == ConnectionStatus.CONNECTED
        assert fake_pool.closed


class TestSQLiteFlows:
    @pytest.fixture
    def duplicates_config(self, temp_dir) -> ConnectionConfig:
        path = temp_dir / "people.db"
        connection = sqlite3.connect(path)
        try:
            connection.executescript(
                """
                CREATE TABLE users (email TEXT);
                INSERT INTO users (email) VALUES ('alice@x'), ('alice@x'), ('bob@x');
                """
            )
            connection.commit()
        finally:
            connection.close()
        return ConnectionConfig(name="people", kind="sqlite", database=str(path))

    @pytest.mark.asyncio
    async def test_find_duplicates(self, registry, duplicates_config):
        await registry.add(duplicates_config)

        result = await CapabilityFacade(registry).find_duplicate_data("users", ["email"])

        assert ["alice@x", 2] in result.rows
        assert not any(row[0] == "bob@x" for row in result.rows)

    @pytest.mark.asyncio
    async def test_static_rules(self, registry, sqlite_config):
        await registry.add(sqlite_config)

        suggestions = await CapabilityFacade(registry).optimize_query("SELECT * FROM t WHERE UPPER(name)='X'")

        select_star = [s for s in suggestions if "SELECT *" in s.description]
        function_in_where = [s for s in suggestions if "functions on columns" in s.description]
        assert [(s.priority, s.type) for s in select_star] == [("low", "rewrite")]
        assert [(s.priority, s.type) for s in function_in_where] == [("high", "rewrite")]
