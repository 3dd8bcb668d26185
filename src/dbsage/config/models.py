"""Configuration models for dbsage.

This module defines the Pydantic models for named database connections and
for the logging system. The models validate input, resolve environment
variable references and serialize to the JSON shape the configuration store
persists.

Classes:
    BaseConfig: Base configuration class
    ConnectionConfig: Named PostgreSQL or SQLite connection
    LoggingConfig: Logging configuration

Example:
    >>> config = ConnectionConfig(
    ...     name="reporting",
    ...     kind="postgres",
    ...     host="db.example.com",
    ...     database="analytics",
    ...     username="reader",
    ...     password="${REPORTING_PASSWORD}",
    ... )
    >>> config.port
    5432
"""

import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ErrorCodes, ValidationError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")

SSL_MODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")
SQLITE_MODES = ("ro", "rw", "rwc", "memory")
SQLITE_CACHES = ("shared", "private")

KIND_ALIASES: Dict[str, str] = {
    "postgres": "postgres",
    "postgresql": "postgres",
    "pg": "postgres",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}

DEFAULT_POSTGRES_PORT = 5432


def normalize_kind(value: str) -> str:
    """Map a backend name or alias onto ``postgres`` or ``sqlite``.

    Raises:
        ValidationError: If the name is not a supported backend
    """
    kind = KIND_ALIASES.get(str(value).strip().lower())
    if kind is None:
        raise ValidationError(
            f"Unsupported database type: {value}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"kind": value, "supported": sorted(KIND_ALIASES)},
        )
    return kind


class BaseConfig(BaseModel):
    """Base configuration class with common functionality.

    Provides environment variable resolution and dictionary serialization
    for all configuration models.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def resolve_environment_variables(cls, values: Any) -> Any:
        """Resolve ``${VAR}`` and ``${VAR:default}`` references in string values."""
        if not isinstance(values, dict):
            return values

        def replace_env_var(match: "re.Match[str]") -> str:
            var_spec = match.group(1)
            if ":" in var_spec:
                var_name, default = var_spec.split(":", 1)
            else:
                var_name, default = var_spec, ""
            return os.getenv(var_name, default)

        def resolve_value(value: Any) -> Any:
            if isinstance(value, str):
                return _ENV_PATTERN.sub(replace_env_var, value)
            if isinstance(value, dict):
                return {k: resolve_value(v) for k, v in value.items()}
            if isinstance(value, list):
                return [resolve_value(item) for item in value]
            return value

        return {key: resolve_value(value) for key, value in values.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Build a model, reporting pydantic failures as ``ValidationError``."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid {cls.__name__}: {e.errors()[0]['msg'] if e.errors() else e}",
                code=ErrorCodes.CONFIG_INVALID,
                context={"errors": [err.get("loc") for err in e.errors()]},
                cause=e,
            ) from e

    def to_dict(self, *, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert configuration to a JSON-ready dictionary.

        Args:
            mask_secrets: Replace secret values with a mask instead of
                revealing them
        """
        def convert(value: Any) -> Any:
            if isinstance(value, SecretStr):
                return "***MASKED***" if mask_secrets else value.get_secret_value()
            if isinstance(value, datetime):
                return value.isoformat()
            if isinstance(value, Path):
                return str(value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            if isinstance(value, list):
                return [convert(item) for item in value]
            return value

        return convert(self.model_dump())


class ConnectionConfig(BaseConfig):
    """Named database connection configuration.

    The name is the primary key inside the registry. PostgreSQL connections
    use host, port, database and credentials; SQLite connections keep the
    file path (or ``:memory:``) in ``database`` and use ``mode`` and
    ``cache`` for the DSN.

    Attributes:
        name: Unique connection name
        kind: Backend, ``postgres`` or ``sqlite``
        host: PostgreSQL host
        port: PostgreSQL port (0 for SQLite)
        database: PostgreSQL database name or SQLite file path
        username: PostgreSQL user
        password: PostgreSQL password
        ssl_mode: PostgreSQL sslmode
        mode: SQLite open mode
        cache: SQLite cache mode
        timeout: Connect and busy timeout in seconds
        description: Free-form description
        last_used: When the connection was last made current
    """

    name: str = Field(..., description="Unique connection name")
    kind: Literal["postgres", "sqlite"] = Field(..., description="Database backend")
    host: str = Field("", description="Database host")
    port: int = Field(0, ge=0, le=65535, description="Database port")
    database: str = Field("", description="Database name or SQLite file path")
    username: str = Field("", description="Database user")
    password: Optional[SecretStr] = Field(None, description="Database password")
    ssl_mode: str = Field("disable", description="PostgreSQL sslmode")
    mode: str = Field("rwc", description="SQLite open mode")
    cache: str = Field("shared", description="SQLite cache mode")
    timeout: float = Field(30.0, description="Timeout in seconds")
    description: str = Field("", description="Connection description")
    last_used: Optional[datetime] = Field(None, description="Last time this connection was used")

    @model_validator(mode="before")
    @classmethod
    def apply_backend_defaults(cls, values: Any) -> Any:
        """Fill host, port and database defaults for PostgreSQL."""
        if not isinstance(values, dict) or "kind" not in values:
            return values

        values = dict(values)
        values["kind"] = normalize_kind(values["kind"])
        if values["kind"] == "postgres":
            if not values.get("host"):
                values["host"] = "localhost"
            if not values.get("port"):
                values["port"] = DEFAULT_POSTGRES_PORT
            if not values.get("database"):
                values["database"] = "postgres"
        return values

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValidationError(
                "Connection name cannot be empty",
                code=ErrorCodes.CONFIG_INVALID,
            )
        return v.strip()

    @field_validator("kind", mode="before")
    @classmethod
    def validate_kind(cls, v: Any) -> str:
        return normalize_kind(v)

    @field_validator("ssl_mode")
    @classmethod
    def validate_ssl_mode(cls, v: str) -> str:
        v = (v or "disable").strip().lower()
        if v not in SSL_MODES:
            raise ValidationError(
                f"Invalid sslmode: {v}",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"ssl_mode": v, "allowed": list(SSL_MODES)},
            )
        return v

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        v = (v or "rwc").strip().lower()
        if v not in SQLITE_MODES:
            raise ValidationError(
                f"Invalid SQLite mode: {v}",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"mode": v, "allowed": list(SQLITE_MODES)},
            )
        return v

    @field_validator("cache")
    @classmethod
    def validate_cache(cls, v: str) -> str:
        v = (v or "shared").strip().lower()
        if v not in SQLITE_CACHES:
            raise ValidationError(
                f"Invalid SQLite cache mode: {v}",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"cache": v, "allowed": list(SQLITE_CACHES)},
            )
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValidationError(
                f"Timeout must be positive: {v}",
                code=ErrorCodes.CONFIG_INVALID,
            )
        return v

    @property
    def is_postgres(self) -> bool:
        return self.kind == "postgres"

    @property
    def is_sqlite(self) -> bool:
        return self.kind == "sqlite"

    @property
    def is_memory(self) -> bool:
        """True for in-memory SQLite databases."""
        return self.is_sqlite and (self.database == ":memory:" or self.mode == "memory")

    @property
    def endpoint(self) -> str:
        """Human-readable location: ``host:port/db`` or the SQLite path."""
        if self.is_sqlite:
            return self.database or ":memory:"
        return f"{self.host}:{self.port}/{self.database}"

    def password_value(self) -> str:
        return self.password.get_secret_value() if self.password else ""

    def touch(self, when: Optional[datetime] = None) -> None:
        """Record ``when`` (default now) as the last-used time."""
        self.last_used = when or datetime.now()


class LoggingConfig(BaseConfig):
    """Logging configuration.

    Attributes:
        level: Log level
        format: Log format (json, text)
        file_path: Log file path
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
        console_output: Enable console output
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="Logging level"
    )
    format: Literal["json", "text"] = Field("json", description="Log format")
    file_path: Optional[Path] = Field(None, description="Log file path")
    max_file_size: int = Field(10485760, gt=0, description="Max file size in bytes (10MB)")
    backup_count: int = Field(5, ge=0, description="Number of backup files")
    console_output: bool = Field(True, description="Enable console output")

    @field_validator("file_path")
    @classmethod
    def validate_log_file_path(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None:
            v = v.expanduser()
            try:
                v.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValidationError(f"Cannot create log directory: {e}") from e
        return v
