"""Logging setup for dbsage.

The global ``LoggerFactory`` wires the standard library root logger and the
structlog pipeline together and hands out cached loggers. The CLI points it
at a rotating file under the dbsage directory; library users may call
``configure_logging`` themselves or leave the defaults.

Functions:
    configure_logging: Configure the global factory
    get_logger: Cached ``StructuredLogger`` from the global factory
    get_performance_logger: Cached ``PerformanceLogger`` from the global factory

Example:
    >>> from dbsage.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", format="text", console_output=False,
    ...                   file_path="~/.dbsage/dbsage.log")
    >>> get_logger("database.registry").info("Connections loaded", count=3)
"""

import logging
import logging.handlers
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog

from ..core.exceptions import ValidationError
from .performance import DEFAULT_SLOW_THRESHOLD_MS, PerformanceLogger
from .structured import StructuredLogger

if TYPE_CHECKING:
    from ..config.models import LoggingConfig

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
FORMATS = ("json", "text")

# Event keys whose values never reach a log sink
SECRET_KEYS = frozenset({"password", "passwd", "secret", "token", "api_key"})
REDACTED = "***"


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking credential-looking keys."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


@dataclass
class LogSettings:
    """Effective logging settings of a factory.

    A file handler is installed whenever ``file_path`` is set.
    """
    level: str = "INFO"
    format: str = "json"
    console_output: bool = True
    file_path: Optional[str] = None
    max_file_size: int = 10485760  # 10MB
    backup_count: int = 5
    correlation_ids: bool = True

    def validate(self) -> "LogSettings":
        level = self.level.upper()
        if level not in LEVELS:
            raise ValidationError(f"Invalid log level: {self.level}", context={"level": self.level})
        if self.format.lower() not in FORMATS:
            raise ValidationError(f"Invalid log format: {self.format}", context={"format": self.format})
        return replace(self, level=level, format=self.format.lower())


class LoggerFactory:
    """Configures logging once and caches loggers by name.

    Reconfiguring replaces the handlers this factory installed and applies
    the new level to every logger it already handed out.
    """

    def __init__(self, settings: Optional[LogSettings] = None) -> None:
        self.settings = (settings or LogSettings()).validate()
        self.initialized = False
        self._loggers: Dict[str, StructuredLogger] = {}
        self._performance_loggers: Dict[str, PerformanceLogger] = {}
        self._handlers: List[logging.Handler] = []

    def configure(self, **overrides: Any) -> None:
        """Apply ``overrides`` to the current settings and reconfigure.

        Keys that are not settings are ignored.

        Raises:
            ValidationError: For an unknown level or format
        """
        known = {f.name for f in fields(LogSettings)}
        settings = replace(self.settings, **{k: v for k, v in overrides.items() if k in known})
        self.settings = settings.validate()
        self._apply()

    def configure_from_config(self, logging_config: "LoggingConfig") -> None:
        self.configure(
            level=logging_config.level,
            format=logging_config.format,
            console_output=logging_config.console_output,
            file_path=str(logging_config.file_path) if logging_config.file_path else None,
            max_file_size=logging_config.max_file_size,
            backup_count=logging_config.backup_count,
        )

    def _ensure_configured(self) -> None:
        if not self.initialized:
            self._apply()

    def _apply(self) -> None:
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()

        level = getattr(logging, self.settings.level)
        self._handlers = self._build_handlers(level)
        for handler in self._handlers:
            root.addHandler(handler)
        root.setLevel(level)

        structlog.configure(
            processors=self._processors(),
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

        for logger in self._loggers.values():
            logger.set_level(self.settings.level)
        self.initialized = True

    def _build_handlers(self, level: int) -> List[logging.Handler]:
        handlers: List[logging.Handler] = []
        if self.settings.console_output:
            handlers.append(logging.StreamHandler())

        if self.settings.file_path:
            path = Path(self.settings.file_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    filename=str(path),
                    maxBytes=self.settings.max_file_size,
                    backupCount=self.settings.backup_count,
                    encoding="utf-8",
                )
            )

        formatter = logging.Formatter("%(message)s")
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
        return handlers

    def _processors(self) -> List[Any]:
        if self.settings.format == "json":
            renderer = structlog.processors.JSONRenderer(default=str)
        else:
            renderer = structlog.dev.ConsoleRenderer(colors=False)

        return [
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ]

    def get_logger(self, name: str) -> StructuredLogger:
        self._ensure_configured()
        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(
                name,
                level=self.settings.level,
                enable_correlation=self.settings.correlation_ids,
            )
        return self._loggers[name]

    def get_performance_logger(
        self,
        name: str,
        *,
        slow_threshold_ms: Optional[float] = DEFAULT_SLOW_THRESHOLD_MS,
    ) -> PerformanceLogger:
        """Cached performance logger; ``slow_threshold_ms`` only applies on first creation."""
        if name not in self._performance_loggers:
            self._performance_loggers[name] = PerformanceLogger(
                name,
                slow_threshold_ms=slow_threshold_ms,
                logger=self.get_logger(f"perf.{name}"),
            )
        return self._performance_loggers[name]

    def set_level(self, level: str) -> None:
        """Change the level without touching handlers' destinations."""
        self.settings = replace(self.settings, level=level).validate()
        numeric = getattr(logging, self.settings.level)
        logging.getLogger().setLevel(numeric)
        for handler in self._handlers:
            handler.setLevel(numeric)
        for logger in self._loggers.values():
            logger.set_level(self.settings.level)

    def shutdown(self) -> None:
        """Remove this factory's handlers and forget cached loggers."""
        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        self._loggers.clear()
        self._performance_loggers.clear()
        self.initialized = False

    def __repr__(self) -> str:
        return (
            f"LoggerFactory(level={self.settings.level!r}, format={self.settings.format!r}, "
            f"initialized={self.initialized})"
        )


_global_factory = LoggerFactory()


def configure_logging(
    *,
    level: str = "INFO",
    format: str = "json",
    console_output: bool = True,
    file_path: Optional[str] = None,
    **kwargs: Any,
) -> None:
    _global_factory.configure(
        level=level,
        format=format,
        console_output=console_output,
        file_path=file_path,
        **kwargs,
    )


def get_logger(name: str) -> StructuredLogger:
    return _global_factory.get_logger(name)


def get_performance_logger(name: str) -> PerformanceLogger:
    return _global_factory.get_performance_logger(name)


def get_factory() -> LoggerFactory:
    return _global_factory


def shutdown_logging() -> None:
    _global_factory.shutdown()
