"""dbsage configuration.

Modules:
    models: Pydantic models for connections and logging
    urls: Connection string parsing and building
    store: JSON configuration store
"""

from .models import (
    KIND_ALIASES,
    SQLITE_CACHES,
    SQLITE_MODES,
    SSL_MODES,
    BaseConfig,
    ConnectionConfig,
    LoggingConfig,
    normalize_kind,
)
from .store import ConfigurationStore, default_config_dir, default_config_path
from .urls import build_database_url, build_sqlite_dsn, parse_database_url, validate_database_url

__all__ = [
    "KIND_ALIASES",
    "SQLITE_CACHES",
    "SQLITE_MODES",
    "SSL_MODES",
    "BaseConfig",
    "ConnectionConfig",
    "LoggingConfig",
    "normalize_kind",
    "ConfigurationStore",
    "default_config_dir",
    "default_config_path",
    "build_database_url",
    "build_sqlite_dsn",
    "parse_database_url",
    "validate_database_url",
]
