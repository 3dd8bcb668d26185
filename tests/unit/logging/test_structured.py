"""Unit tests for structured logging."""

import asyncio
import logging
from unittest.mock import MagicMock, patch

import pytest

from dbsage.core.exceptions import ValidationError
from dbsage.logging.structured import StructuredLogger, correlation_scope, current_correlation_id


@pytest.fixture
def logger():
    with patch("dbsage.logging.structured.structlog.get_logger") as get_logger:
        get_logger.return_value = MagicMock()
        yield StructuredLogger("database.registry")


class TestCorrelation:

    def test_no_id_outside_scope(self, logger):
        logger.info("Connections loaded")

        _, kwargs = logger._logger.info.call_args
        assert "correlation_id" not in kwargs
        assert current_correlation_id() is None

    def test_scope_sets_and_restores_id(self, logger):
        with correlation_scope() as outer:
            logger.info("Dispatching tool call")
            _, kwargs = logger._logger.info.call_args
            assert kwargs["correlation_id"] == outer == logger.get_correlation_id()

            with correlation_scope("call-7") as inner:
                assert inner == "call-7"
                assert current_correlation_id() == "call-7"

            assert current_correlation_id() == outer

        assert current_correlation_id() is None

    @pytest.mark.asyncio
    async def test_tasks_keep_their_own_id(self):
        async def handle(call_id):
            with correlation_scope(call_id):
                await asyncio.sleep(0)
                return current_correlation_id()

        assert await asyncio.gather(handle("a"), handle("b")) == ["a", "b"]

    def test_disabled(self):
        quiet = StructuredLogger("quiet", enable_correlation=False)
        with correlation_scope("call-1"):
            assert quiet.get_correlation_id() is None


class TestStructuredLogger:

    def test_event_fields(self, logger):
        logger.info("Connection added", connection="local")

        args, kwargs = logger._logger.info.call_args
        assert args == ("Connection added",)
        assert kwargs["connection"] == "local"

    def test_reserved_keys_are_renamed(self, logger):
        logger.warning("Odd event", event="x", level="y")

        _, kwargs = logger._logger.warning.call_args
        assert kwargs["event_"] == "x"
        assert kwargs["level_"] == "y"

    def test_context_is_temporary(self, logger):
        with logger.context(operation="switch"):
            logger.debug("inside")
            _, kwargs = logger._logger.debug.call_args
            assert kwargs["operation"] == "switch"

        assert "operation" not in logger.get_context()

    def test_context_reaches_other_loggers(self, logger):
        other = StructuredLogger("tools.facade")
        with logger.context(tool="execute_sql"):
            assert other.get_context() == {"tool": "execute_sql"}

    def test_call_fields_override_context(self, logger):
        with logger.context(connection="local"):
            logger.info("Switched connection", connection="warehouse")

        _, kwargs = logger._logger.info.call_args
        assert kwargs["connection"] == "warehouse"

    def test_bind_returns_new_logger_with_fields(self, logger):
        bound = logger.bind(connection="warehouse")

        assert bound is not logger
        assert bound.get_context()["connection"] == "warehouse"
        assert "connection" not in logger.get_context()

    def test_exception_logs_traceback(self, logger):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Unexpected failure", tool="execute_sql")

        _, kwargs = logger._logger.error.call_args
        assert kwargs["exc_info"] is True
        assert kwargs["tool"] == "execute_sql"

    def test_set_level(self, logger):
        logger.set_level("debug")
        assert logger.get_level() == "DEBUG"
        assert logging.getLogger("database.registry").level == logging.DEBUG

    def test_unknown_level_raises(self, logger):
        with pytest.raises(ValidationError):
            logger.set_level("chatty")

        with pytest.raises(ValidationError):
            StructuredLogger("bad", level="LOUD")
