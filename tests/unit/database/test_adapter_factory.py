"""Tests for the adapter factory."""

import pytest

from dbsage.config import ConnectionConfig
from dbsage.core.exceptions import ValidationError
from dbsage.database.connectors import PostgreSQLAdapter, SQLiteAdapter
from dbsage.database.factory import create_adapter, get_adapter_class, get_supported_kinds


class TestAdapterFactory:
    def test_supported_kinds(self):
        assert get_supported_kinds() == ["postgres", "sqlite"]

    def test_adapter_classes(self):
        assert get_adapter_class("postgres") is PostgreSQLAdapter
        assert get_adapter_class("sqlite") is SQLiteAdapter

    def test_unknown_kind(self):
        with pytest.raises(ValidationError) as exc_info:
            get_adapter_class("mysql")

        assert exc_info.value.context["available"] == ["postgres", "sqlite"]

    def test_create_unopened_adapter(self, sqlite_config, postgres_config):
        sqlite_adapter = create_adapter(sqlite_config)
        postgres_adapter = create_adapter(postgres_config)

        assert isinstance(sqlite_adapter, SQLiteAdapter)
        assert isinstance(postgres_adapter, PostgreSQLAdapter)
        assert not sqlite_adapter.is_open
        assert not postgres_adapter.is_open
        assert sqlite_adapter.name == "local"

    def test_kind_aliases(self):
        config = ConnectionConfig(name="pg", kind="postgresql")

        assert isinstance(create_adapter(config), PostgreSQLAdapter)
