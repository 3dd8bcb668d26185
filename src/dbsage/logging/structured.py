"""Structured loggers over structlog.

Context lives in ``contextvars`` so it follows asyncio tasks: fields added
with ``StructuredLogger.context`` and the correlation id opened by
``correlation_scope`` apply to every logger used inside that task, which
ties together the events emitted while serving one tool call.

Example:
    >>> logger = StructuredLogger("tools.dispatcher")
    >>> with correlation_scope(), logger.context(tool="get_table_stats"):
    ...     logger.info("Dispatching tool call")
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

import structlog

from ..core.exceptions import ValidationError

# Keys owned by the structlog processor chain
_RESERVED_KEYS = frozenset({"event", "level", "logger", "timestamp"})

_task_fields: ContextVar[Dict[str, Any]] = ContextVar("dbsage_log_fields", default={})
_correlation_id: ContextVar[Optional[str]] = ContextVar("dbsage_correlation_id", default=None)


def current_correlation_id() -> Optional[str]:
    return _correlation_id.get()


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Run the block under ``correlation_id``, or a fresh one."""
    token = _correlation_id.set(correlation_id or uuid.uuid4().hex)
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValidationError(f"Unknown log level: {level}", code="UNKNOWN_LOG_LEVEL", context={"level": level})
    return number


class StructuredLogger:
    """Named logger that merges bound, task and call fields into each event.

    Args:
        name: Logger name, usually the dotted component name
        level: Initial level of the underlying stdlib logger
        enable_correlation: Attach the task's correlation id to events
        fields: Fields bound to every event of this logger
    """

    def __init__(
        self,
        name: str,
        *,
        level: str = "INFO",
        enable_correlation: bool = True,
        fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.name = name
        self._enable_correlation = enable_correlation
        self._fields = dict(fields or {})
        self._logger = structlog.get_logger(name)
        self._stdlib_logger = logging.getLogger(name)
        self._stdlib_logger.setLevel(_level_number(level))

    def _event(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        event = {**self._fields, **_task_fields.get()}
        if self._enable_correlation:
            correlation_id = _correlation_id.get()
            if correlation_id is not None:
                event["correlation_id"] = correlation_id
        for key, value in kwargs.items():
            event[f"{key}_" if key in _RESERVED_KEYS else key] = value
        return event

    @contextmanager
    def context(self, **fields: Any) -> Iterator[None]:
        """Add ``fields`` to every event logged by this task inside the block."""
        token = _task_fields.set({**_task_fields.get(), **fields})
        try:
            yield
        finally:
            _task_fields.reset(token)

    def bind(self, **fields: Any) -> "StructuredLogger":
        """New logger with ``fields`` bound on top of this logger's."""
        return StructuredLogger(
            self.name,
            level=self.get_level(),
            enable_correlation=self._enable_correlation,
            fields={**self._fields, **fields},
        )

    def get_context(self) -> Dict[str, Any]:
        """Fields this logger would add to an event right now."""
        return {**self._fields, **_task_fields.get()}

    def get_correlation_id(self) -> Optional[str]:
        return _correlation_id.get() if self._enable_correlation else None

    def set_level(self, level: str) -> None:
        """Raises ValidationError for an unknown level name."""
        self._stdlib_logger.setLevel(_level_number(level))

    def get_level(self) -> str:
        return logging.getLevelName(self._stdlib_logger.getEffectiveLevel())

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(message, **self._event(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(message, **self._event(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(message, **self._event(kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.error(message, **self._event(kwargs))

    def exception(self, message: str, **kwargs: Any) -> None:
        """``error`` with the active exception's traceback."""
        self._logger.error(message, exc_info=True, **self._event(kwargs))

    def __repr__(self) -> str:
        return f"StructuredLogger(name={self.name!r}, level={self.get_level()!r})"
