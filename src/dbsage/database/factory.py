"""Adapter factory.

Maps each backend kind onto its adapter class and builds unopened adapters
from connection configurations.
"""

from typing import Dict, List, Type

from ..config.models import ConnectionConfig
from ..core.exceptions import ErrorCodes, ValidationError
from ..logging import get_logger
from .base import DatabaseAdapter
from .connectors import PostgreSQLAdapter, SQLiteAdapter

logger = get_logger("database.factory")

_ADAPTERS: Dict[str, Type[DatabaseAdapter]] = {
    "postgres": PostgreSQLAdapter,
    "sqlite": SQLiteAdapter,
}


def get_adapter_class(kind: str) -> Type[DatabaseAdapter]:
    """Adapter class for ``kind``.

    Raises:
        ValidationError: If no adapter handles the backend
    """
    if kind not in _ADAPTERS:
        raise ValidationError(
            f"No adapter registered for database type: {kind}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"kind": kind, "available": sorted(_ADAPTERS)},
        )
    return _ADAPTERS[kind]


def create_adapter(config: ConnectionConfig) -> DatabaseAdapter:
    """Build an unopened adapter for ``config``."""
    adapter_class = get_adapter_class(config.kind)
    logger.debug(
        "Creating database adapter",
        connection=config.name,
        kind=config.kind,
        adapter=adapter_class.__name__,
    )
    return adapter_class(config)


def get_supported_kinds() -> List[str]:
    return sorted(_ADAPTERS)
