"""dbsage exception hierarchy.

This module defines the structured exceptions raised by the inspection and
optimization engine. Every exception carries an error code, optional context
and an optional cause, and maps onto one of the error kinds surfaced to the
tool layer (``invalid-argument``, ``duplicate``, ``unknown``, ``no-current``,
``unreachable``, ``backend``, ``extension-missing``, ``cancelled``).

Classes:
    DBSageException: Base exception for all dbsage operations
    ConfigurationError: Configuration related errors
    ValidationError: Invalid arguments and configuration values
    RegistryError: Connection registry errors
    ConnectionError: Database connection errors
    AnalysisError: Introspection and query errors
    OptimizationError: Optimizer errors
    TimeoutError: Deadline expiry

Example:
    >>> try:
    ...     await registry.switch("reporting")
    ... except UnreachableError as e:
    ...     logger.error("Switch failed", error_code=e.code, context=e.context)
"""

import builtins
from typing import Any, ClassVar, Dict, Optional


class DBSageException(Exception):
    """Base exception for all dbsage operations.

    Attributes:
        kind: Error kind reported to the tool layer
        code: Unique error code for categorization
        context: Additional context information about the error
        cause: Original exception that caused this error (if any)

    Example:
        >>> raise DBSageException(
        ...     "Operation failed",
        ...     code="OPERATION_FAILED",
        ...     context={"connection": "local"}
        ... )
    """

    kind: ClassVar[str] = "backend"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        """Initialize dbsage exception.

        Args:
            message: Human-readable error description
            code: Unique error code for categorization (defaults to class name)
            context: Additional context information
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[BaseException] = cause

    def __str__(self) -> str:
        """Return formatted error message with code."""
        return f"{self.code}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r}, "
            f"cause={self.cause!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization.

        Returns:
            Dictionary representation of the exception
        """
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "code": self.code,
            "context": self.context,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(DBSageException):
    """Configuration related errors.

    Raised when a connection configuration or the configuration store
    cannot be processed.
    """

    kind = "invalid-argument"


class ValidationError(ConfigurationError):
    """Invalid argument or configuration value.

    Raised for empty column lists, malformed identifiers, bad URL schemes,
    unknown SSL modes and unknown SQLite mode or cache values.
    """
    pass


class RegistryError(DBSageException):
    """Connection registry errors."""
    pass


class DuplicateConnectionError(RegistryError):
    """Raised when adding a connection whose name is already registered."""

    kind = "duplicate"


class UnknownConnectionError(RegistryError):
    """Raised when switching to or removing an unregistered connection."""

    kind = "unknown"


class NoCurrentConnectionError(RegistryError):
    """Raised when an operation needs a current connection and none is set."""

    kind = "no-current"


class ConnectionError(DBSageException):
    """Database connection related errors.

    Base class for connection establishment and liveness problems.
    """

    kind = "unreachable"


class DatabaseConnectionError(ConnectionError):
    """Database connection establishment errors.

    Raised when an adapter cannot open its session: bad credentials,
    refused connections, timeouts or a missing SQLite file.
    """
    pass


class UnreachableError(ConnectionError):
    """Raised when a connection fails its ping and one reconnect attempt."""
    pass


class AnalysisError(DBSageException):
    """Introspection and query related errors."""

    kind = "backend"


class QueryError(AnalysisError):
    """SQL statement execution errors.

    The driver message is passed through unchanged.
    """
    pass


class MetadataError(AnalysisError):
    """Raised when catalog metadata cannot be read."""
    pass


class ExtensionMissingError(QueryError):
    """Raised when a PostgreSQL feature needs ``pg_stat_statements``."""

    kind = "extension-missing"


class OptimizationError(DBSageException):
    """Optimizer errors."""

    kind = "backend"


class UpdateCheckError(DBSageException):
    """Release lookup errors raised by the update checker."""

    kind = "backend"


class TimeoutError(DBSageException):
    """Operation deadline errors.

    Raised when a caller-supplied deadline expires before the backend
    answers.
    """

    kind = "cancelled"


class ErrorCodes:
    """Common error codes for dbsage exceptions."""

    # Configuration errors
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_NULL = "CONFIG_NULL"
    CONFIG_SAVE_FAILED = "CONFIG_SAVE_FAILED"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"

    # Registry errors
    CONNECTION_EXISTS = "CONNECTION_EXISTS"
    CONNECTION_NOT_FOUND = "CONNECTION_NOT_FOUND"
    NO_CURRENT_CONNECTION = "NO_CURRENT_CONNECTION"

    # Connection errors
    CONNECTION_TIMEOUT = "CONNECTION_TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    AUTH_FAILED = "AUTH_FAILED"
    NETWORK_UNREACHABLE = "NETWORK_UNREACHABLE"

    # Analysis errors
    METADATA_EXTRACTION_FAILED = "METADATA_EXTRACTION_FAILED"
    QUERY_EXECUTION_FAILED = "QUERY_EXECUTION_FAILED"
    EXTENSION_MISSING = "EXTENSION_MISSING"

    # Lifecycle errors
    INIT_FAILED = "INIT_FAILED"

    # Optimization errors
    OPTIMIZATION_FAILED = "OPTIMIZATION_FAILED"

    # Version errors
    UPDATE_CHECK_FAILED = "UPDATE_CHECK_FAILED"

    # Deadline errors
    OPERATION_CANCELLED = "OPERATION_CANCELLED"


def create_error_from_exception(
    exc: BaseException,
    message: Optional[str] = None,
    code: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> DBSageException:
    """Create a dbsage exception from a generic exception.

    Args:
        exc: Original exception to convert
        message: Override message (uses original if not provided)
        code: Error code to assign
        context: Additional context information

    Returns:
        Appropriate dbsage exception type

    Example:
        >>> try:
        ...     path.read_text()
        ... except FileNotFoundError as e:
        ...     raise create_error_from_exception(e, code=ErrorCodes.CONFIG_NOT_FOUND)
    """
    if isinstance(exc, DBSageException):
        return exc

    exception_mapping = {
        ConnectionRefusedError: DatabaseConnectionError,
        builtins.TimeoutError: TimeoutError,
        OSError: DatabaseConnectionError,
        FileNotFoundError: ConfigurationError,
        ValueError: ValidationError,
        TypeError: ValidationError,
    }

    exception_class = exception_mapping.get(type(exc), DBSageException)

    return exception_class(
        message or str(exc),
        code=code,
        context=context or {},
        cause=exc,
    )
