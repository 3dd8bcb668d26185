"""Unit tests for the logger factory."""

import logging
import logging.handlers

import pytest
import structlog

from dbsage.core.exceptions import ValidationError
from dbsage.logging import configure_logging, get_factory, get_logger, get_performance_logger
from dbsage.logging.factory import LogSettings, redact_secrets
from dbsage.logging.structured import StructuredLogger


class TestLogSettings:

    def test_validate_normalizes(self):
        settings = LogSettings(level="debug", format="TEXT").validate()

        assert settings.level == "DEBUG"
        assert settings.format == "text"

    @pytest.mark.parametrize("overrides", [{"level": "LOUD"}, {"format": "xml"}])
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValidationError):
            LogSettings(**overrides).validate()


class TestRedaction:

    def test_masks_secret_keys(self):
        event = redact_secrets(None, "info", {"event": "Opening", "password": "s3cret", "host": "db"})

        assert event["password"] == "***"
        assert event["host"] == "db"

    def test_leaves_empty_values(self):
        assert redact_secrets(None, "info", {"token": None})["token"] is None


class TestLoggerFactory:

    def test_get_logger_is_cached(self, logger_factory):
        first = logger_factory.get_logger("database.registry")
        second = logger_factory.get_logger("database.registry")

        assert isinstance(first, StructuredLogger)
        assert first is second

    def test_performance_logger_uses_perf_namespace(self, logger_factory):
        perf = logger_factory.get_performance_logger("adapter.postgres", slow_threshold_ms=250)

        assert perf is logger_factory.get_performance_logger("adapter.postgres")
        assert perf.logger.name == "perf.adapter.postgres"
        assert perf.slow_threshold_ms == 250

    def test_configure_ignores_unknown_keys(self, logger_factory):
        logger_factory.configure(level="WARNING", console_output=False, color="blue")

        assert logger_factory.settings.level == "WARNING"
        assert logging.getLogger().level == logging.WARNING

    def test_invalid_level_keeps_previous_settings(self, logger_factory):
        with pytest.raises(ValidationError):
            logger_factory.configure(level="LOUD")

        assert logger_factory.settings.level == "INFO"

    def test_file_output(self, logger_factory, temp_dir):
        log_path = temp_dir / "logs" / "dbsage.log"

        logger_factory.configure(console_output=False, file_path=str(log_path))

        assert log_path.parent.is_dir()
        handlers = logging.getLogger().handlers
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in handlers)
        assert not any(type(h) is logging.StreamHandler for h in handlers)

    def test_events_reach_file(self, logger_factory, temp_dir):
        log_path = temp_dir / "events.log"
        logger_factory.configure(console_output=False, file_path=str(log_path))

        logger_factory.get_logger("file.events").warning("Connection unhealthy", connection="t", password="pw")

        assert structlog.get_config()["wrapper_class"] is structlog.stdlib.BoundLogger
        content = log_path.read_text()
        assert "Connection unhealthy" in content
        assert "pw" not in content

    def test_reconfigure_replaces_handlers(self, logger_factory, temp_dir):
        logger_factory.configure(console_output=False, file_path=str(temp_dir / "a.log"))
        logger_factory.configure(console_output=False, file_path=str(temp_dir / "b.log"))

        files = [h for h in logging.getLogger().handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert [h.baseFilename for h in files] == [str(temp_dir / "b.log")]

    def test_configure_from_config(self, logger_factory, sample_logging_config):
        logger_factory.configure_from_config(sample_logging_config)

        assert logger_factory.settings.file_path == str(sample_logging_config.file_path)
        assert logger_factory.settings.max_file_size == 1048576
        assert logger_factory.settings.console_output is False

    def test_set_level_updates_loggers(self, logger_factory):
        logger = logger_factory.get_logger("tools.dispatcher")
        logger_factory.set_level("error")

        assert logger.get_level() == "ERROR"
        assert logger_factory.settings.level == "ERROR"

    def test_shutdown_clears_caches(self, logger_factory):
        first = logger_factory.get_logger("a")
        logger_factory.shutdown()

        assert not logger_factory.initialized
        assert logger_factory.get_logger("a") is not first


class TestGlobalFunctions:

    def test_global_factory_configured_before_each_test(self):
        assert get_factory().initialized
        assert get_factory().settings.console_output is False
        assert structlog.get_config()["wrapper_class"] is structlog.stdlib.BoundLogger

    def test_configure_logging_to_file(self, temp_dir):
        configure_logging(level="DEBUG", format="text", console_output=False, file_path=str(temp_dir / "x.log"))

        settings = get_factory().settings
        assert settings.level == "DEBUG"
        assert settings.format == "text"
        assert settings.file_path == str(temp_dir / "x.log")

    def test_get_logger_and_performance_logger(self):
        assert get_logger("cli") is get_logger("cli")
        assert get_performance_logger("cli") is get_performance_logger("cli")
