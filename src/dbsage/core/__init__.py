"""dbsage core infrastructure.

This package provides the foundational pieces shared by every other dbsage
package: the exception hierarchy, the async component base class and small
utilities.

Modules:
    base: Async lifecycle base class
    exceptions: Exception hierarchy and error codes
    utils: Identifier validation, formatting and deadlines

Example:
    >>> from dbsage.core import AsyncComponent
    >>> from dbsage.core.exceptions import ValidationError
    >>> from dbsage.core.utils import validate_identifier
"""

from .base import AsyncComponent
from .exceptions import (
    AnalysisError,
    ConfigurationError,
    ConnectionError,
    DatabaseConnectionError,
    DBSageException,
    DuplicateConnectionError,
    ErrorCodes,
    ExtensionMissingError,
    MetadataError,
    NoCurrentConnectionError,
    OptimizationError,
    QueryError,
    RegistryError,
    TimeoutError,
    UnknownConnectionError,
    UnreachableError,
    UpdateCheckError,
    ValidationError,
    create_error_from_exception,
)
from .utils import (
    format_duration,
    is_identifier,
    truncate_sql,
    validate_identifier,
    with_deadline,
)

__all__ = [
    # Base classes
    "AsyncComponent",
    # Exceptions
    "AnalysisError",
    "ConfigurationError",
    "ConnectionError",
    "DatabaseConnectionError",
    "DBSageException",
    "DuplicateConnectionError",
    "ErrorCodes",
    "ExtensionMissingError",
    "MetadataError",
    "NoCurrentConnectionError",
    "OptimizationError",
    "QueryError",
    "RegistryError",
    "TimeoutError",
    "UnknownConnectionError",
    "UnreachableError",
    "UpdateCheckError",
    "ValidationError",
    "create_error_from_exception",
    # Utilities
    "format_duration",
    "is_identifier",
    "truncate_sql",
    "validate_identifier",
    "with_deadline",
]
