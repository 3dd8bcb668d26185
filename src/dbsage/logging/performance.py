"""Timing of backend round trips and tool calls.

Every adapter query, optimizer analysis and facade call runs inside
``PerformanceLogger.measure``. Each measurement is logged once on exit and
folded into per-operation statistics; operations slower than the logger's
threshold are reported at warning level.

Example:
    >>> perf_logger = PerformanceLogger("adapter.sqlite")
    >>> with perf_logger.measure("run_query", connection="local") as timer:
    ...     rows = await cursor.fetchall()
    >>> timer.duration_ms
    1.84
"""

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterator, Optional, Union

from .structured import StructuredLogger

# Matches the pg_stat_statements "slow" cut-off used by the optimizers
DEFAULT_SLOW_THRESHOLD_MS = 1000.0
RECENT_ERRORS = 10


@dataclass
class OperationStats:
    """Running totals for one named operation."""

    operation: str
    calls: int = 0
    failures: int = 0
    total_duration: float = 0.0
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None
    slow_calls: int = 0
    recent_errors: Deque[str] = field(default_factory=lambda: deque(maxlen=RECENT_ERRORS))

    def record(self, duration: float, *, error: Optional[str] = None, slow: bool = False) -> None:
        self.calls += 1
        self.total_duration += duration
        if self.min_duration is None or duration < self.min_duration:
            self.min_duration = duration
        if self.max_duration is None or duration > self.max_duration:
            self.max_duration = duration
        if slow:
            self.slow_calls += 1
        if error is not None:
            self.failures += 1
            self.recent_errors.append(error)

    @property
    def avg_duration(self) -> Optional[float]:
        return self.total_duration / self.calls if self.calls else None

    @property
    def failure_rate(self) -> float:
        """Share of failed calls, 0-100."""
        return self.failures / self.calls * 100 if self.calls else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "calls": self.calls,
            "failures": self.failures,
            "failure_rate": self.failure_rate,
            "slow_calls": self.slow_calls,
            "total_duration": self.total_duration,
            "min_duration": self.min_duration,
            "max_duration": self.max_duration,
            "avg_duration": self.avg_duration,
            "recent_errors": list(self.recent_errors),
        }


class TimingContext:
    """Times one block; ``duration`` stays ``None`` until the block exits.

    When a logger is given, the outcome is logged on exit: ``info`` for a
    normal completion, ``warning`` past ``slow_threshold_ms`` and ``error``
    when the block raised. Exceptions are never suppressed.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        metadata: Optional[Dict[str, Any]] = None,
        slow_threshold_ms: Optional[float] = None,
    ) -> None:
        self.operation = operation
        self.logger = logger
        self.metadata = metadata or {}
        self.slow_threshold_ms = slow_threshold_ms
        self.duration: Optional[float] = None
        self.error: Optional[str] = None
        self._started: Optional[float] = None

    @property
    def duration_ms(self) -> Optional[float]:
        return self.duration * 1000 if self.duration is not None else None

    @property
    def succeeded(self) -> bool:
        return self.duration is not None and self.error is None

    @property
    def is_slow(self) -> bool:
        if self.slow_threshold_ms is None or self.duration_ms is None:
            return False
        return self.duration_ms > self.slow_threshold_ms

    def __enter__(self) -> "TimingContext":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.duration = time.perf_counter() - self._started
        if exc_type is not None:
            self.error = str(exc_val) or exc_type.__name__

        if self.logger is None:
            return

        fields = dict(self.metadata, operation=self.operation, duration_ms=round(self.duration_ms, 3))
        if self.error is not None:
            self.logger.error("Operation failed", error=self.error, **fields)
        elif self.is_slow:
            self.logger.warning("Slow operation", threshold_ms=self.slow_threshold_ms, **fields)
        else:
            self.logger.info("Operation completed", **fields)


class PerformanceLogger:
    """Per-component timer with aggregated statistics.

    Args:
        name: Component name; log events go to ``perf.<name>``
        slow_threshold_ms: Duration above which a call counts as slow
        logger: Logger to use instead of a new ``StructuredLogger``
    """

    def __init__(
        self,
        name: str,
        *,
        slow_threshold_ms: Optional[float] = DEFAULT_SLOW_THRESHOLD_MS,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.name = name
        self.slow_threshold_ms = slow_threshold_ms
        self.logger = logger or StructuredLogger(f"perf.{name}")
        self._stats: Dict[str, OperationStats] = {}

    @contextmanager
    def measure(self, operation: str, **metadata: Any) -> Iterator[TimingContext]:
        """Time the enclosed block as ``operation``; ``metadata`` is logged with it."""
        timer = TimingContext(operation, self.logger, metadata, self.slow_threshold_ms)
        try:
            with timer:
                yield timer
        finally:
            if timer.duration is not None:
                stats = self._stats.setdefault(operation, OperationStats(operation))
                stats.record(timer.duration, error=timer.error, slow=timer.is_slow)

    def get_metrics(self, operation: Optional[str] = None) -> Union[OperationStats, Dict[str, OperationStats]]:
        """Statistics for ``operation`` (empty if never measured), or all of them."""
        if operation:
            return self._stats.get(operation, OperationStats(operation))
        return dict(self._stats)

    def reset_metrics(self, operation: Optional[str] = None) -> None:
        if operation:
            self._stats.pop(operation, None)
        else:
            self._stats.clear()

    def get_summary(self) -> Dict[str, Any]:
        calls = sum(stats.calls for stats in self._stats.values())
        failures = sum(stats.failures for stats in self._stats.values())
        return {
            "component": self.name,
            "calls": calls,
            "failures": failures,
            "slow_calls": sum(stats.slow_calls for stats in self._stats.values()),
            "total_duration": sum(stats.total_duration for stats in self._stats.values()),
            "operations": {name: stats.to_dict() for name, stats in sorted(self._stats.items())},
        }

    def __repr__(self) -> str:
        return f"PerformanceLogger(name={self.name!r}, operations={len(self._stats)})"
