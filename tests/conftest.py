"""Pytest configuration and shared fixtures.

This module provides pytest configuration and shared fixtures for all tests
in the dbsage test suite.
"""

import sqlite3
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Generator, List, Sequence, Tuple, Union
from unittest.mock import MagicMock

import pytest
import pytest_asyncio

from dbsage.config import ConnectionConfig
from dbsage.database.connectors import PostgreSQLAdapter, SQLiteAdapter
from dbsage.logging import configure_logging

SAMPLE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email VARCHAR(255) NOT NULL,
    name TEXT,
    status TEXT DEFAULT 'active',
    created_at DATETIME
);
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER REFERENCES users(id),
    total DECIMAL(10,2),
    notes BLOB
);
CREATE INDEX idx_users_email ON users (email);
INSERT INTO users (email, name, status) VALUES
    ('a@example.com', 'Ann', 'active'),
    ('b@example.com', 'Bob', 'active'),
    ('a@example.com', 'Ann', 'inactive');
INSERT INTO orders (user_id, total) VALUES (1, 10.5), (1, 20.0), (2, 5.25);
"""


@pytest.fixture(autouse=True)
def quiet_logging():
    """Route every test through the dbsage pipeline without console noise."""
    configure_logging(level="WARNING", format="json", console_output=False, file_path=None)
    yield


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide temporary directory for test files."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sqlite_path(temp_dir: Path) -> Path:
    """SQLite file with a users/orders schema and a few rows."""
    path = temp_dir / "app.db"
    connection = sqlite3.connect(path)
    try:
        connection.executescript(SAMPLE_SCHEMA)
        connection.commit()
    finally:
        connection.close()
    return path


@pytest.fixture
def sqlite_config(sqlite_path: Path) -> ConnectionConfig:
    return ConnectionConfig(name="local", kind="sqlite", database=str(sqlite_path))


@pytest_asyncio.fixture
async def sqlite_adapter(sqlite_config):
    """Opened adapter over the sample SQLite file."""
    adapter = SQLiteAdapter(sqlite_config)
    await adapter.open()
    yield adapter
    await adapter.close()


@pytest.fixture
def postgres_config() -> ConnectionConfig:
    return ConnectionConfig(
        name="warehouse",
        kind="postgres",
        host="db.example.com",
        port=5432,
        database="analytics",
        username="reporter",
        password="s3cret",
    )


@pytest.fixture
def sample_connection_data() -> dict:
    """Sample connection document as persisted by the store."""
    return {
        "connections": {
            "local": {"name": "local", "kind": "sqlite", "database": "/tmp/app.db"},
            "warehouse": {
                "name": "warehouse",
                "kind": "postgres",
                "host": "db.example.com",
                "port": 5432,
                "database": "analytics",
                "username": "reporter",
                "password": "s3cret",
                "last_used": "2024-05-01T10:00:00",
            },
        },
        "current": "warehouse",
    }


@pytest.fixture
def mock_logger():
    """Mock structured logger for testing."""
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


# Fake asyncpg pool

Response = Tuple[str, Sequence[str], Union[Sequence[Sequence[Any]], Exception]]


class FakeStatement:
    def __init__(self, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> None:
        self.columns = list(columns)
        self.rows = rows
        self.params: Tuple[Any, ...] = ()

    async def fetch(self, *params: Any) -> List[Tuple[Any, ...]]:
        self.params = params
        return [tuple(row) for row in self.rows]

    def get_attributes(self) -> List[SimpleNamespace]:
        return [SimpleNamespace(name=column) for column in self.columns]


class FakeConnection:
    """Answers ``prepare`` with the first response whose marker is in the SQL."""

    def __init__(self, responses: Sequence[Response] = ()) -> None:
        self.responses = list(responses)
        self.prepared: List[str] = []
        self.statements: List[FakeStatement] = []
        self.ping_error: Exception = None

    async def fetchval(self, sql: str) -> Any:
        if self.ping_error is not None:
            raise self.ping_error
        return 1

    async def prepare(self, sql: str) -> FakeStatement:
        self.prepared.append(sql)
        for marker, columns, rows in self.responses:
            if marker in sql:
                if isinstance(rows, Exception):
                    raise rows
                statement = FakeStatement(columns, rows)
                self.statements.append(statement)
                return statement
        raise AssertionError(f"Unexpected statement: {sql}")


class FakePool:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.closed = False
        self.terminated = False

    @asynccontextmanager
    async def acquire(self):
        yield self.connection

    async def close(self) -> None:
        self.closed = True

    def terminate(self) -> None:
        self.terminated = True


def attach_pool(adapter: PostgreSQLAdapter, connection: FakeConnection) -> FakePool:
    """Mark ``adapter`` open over a fake pool."""
    pool = FakePool(connection)
    adapter._connection_pool = pool
    adapter._initialized = True
    adapter.healthy = True
    return pool


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_connection) -> FakePool:
    return FakePool(fake_connection)


@pytest.fixture
def pg_adapter(postgres_config, fake_connection) -> PostgreSQLAdapter:
    adapter = PostgreSQLAdapter(postgres_config)
    attach_pool(adapter, fake_connection)
    return adapter


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: marks tests as integration tests (slower, real dependencies)")
    config.addinivalue_line("markers", "slow: marks tests that take > 1 second")
    config.addinivalue_line("markers", "database: marks tests requiring a database")


# Auto-mark tests based on their location
def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    tests_root = Path(__file__).parent
    for item in items:
        test_path = Path(item.fspath).relative_to(tests_root)

        if test_path.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)
        elif test_path.parts[0] == "integration":
            item.add_marker(pytest.mark.integration)

        if "database" in test_path.parts:
            item.add_marker(pytest.mark.database)

        if not any(mark.name == "slow" for mark in item.iter_markers()):
            if any(mark.name == "integration" for mark in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
