"""Logging-specific test configuration and fixtures."""

import logging
import tempfile
from pathlib import Path

import pytest

from dbsage.config.models import LoggingConfig
from dbsage.logging.factory import LoggerFactory


@pytest.fixture
def temp_log_file():
    """Create temporary log file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".log", delete=False) as temp_file:
        temp_path = Path(temp_file.name)

    yield temp_path

    temp_path.unlink(missing_ok=True)


@pytest.fixture
def sample_logging_config(temp_log_file):
    return LoggingConfig(
        level="INFO",
        format="json",
        file_path=temp_log_file,
        console_output=False,
        max_file_size=1048576,
        backup_count=3,
    )


@pytest.fixture
def logger_factory():
    """Create clean logger factory for testing."""
    factory = LoggerFactory()
    yield factory
    factory.shutdown()


@pytest.fixture(autouse=True)
def cleanup_global_logging():
    """Clean up global logging state after each test."""
    yield

    from dbsage.logging.factory import _global_factory
    _global_factory.shutdown()
    logging.getLogger().handlers.clear()
