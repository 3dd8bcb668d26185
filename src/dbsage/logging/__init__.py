"""Structured logging and operation timing for dbsage.

Example:
    >>> from dbsage.logging import get_logger, get_performance_logger
    >>> logger = get_logger("optimizer.postgres")
    >>> logger.info("Index suggestions computed", table="orders", count=2)
    >>>
    >>> perf_logger = get_performance_logger("optimizer.postgres")
    >>> with perf_logger.measure("analyze_table_performance", table="orders"):
    ...     pass
"""

from .factory import (
    LoggerFactory,
    LogSettings,
    configure_logging,
    get_factory,
    get_logger,
    get_performance_logger,
    redact_secrets,
    shutdown_logging,
)
from .performance import OperationStats, PerformanceLogger, TimingContext
from .structured import StructuredLogger, correlation_scope, current_correlation_id

__all__ = [
    # Factory and configuration
    "LogSettings",
    "LoggerFactory",
    "configure_logging",
    "get_factory",
    "get_logger",
    "get_performance_logger",
    "redact_secrets",
    "shutdown_logging",
    # Timing
    "OperationStats",
    "PerformanceLogger",
    "TimingContext",
    # Structured logging
    "StructuredLogger",
    "correlation_scope",
    "current_correlation_id",
]
