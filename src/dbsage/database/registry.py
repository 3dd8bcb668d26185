"""Connection registry.

The registry is the single owner of every live adapter. It keeps the named
connection configurations, the current selection and the liveness state of
each connection, and persists configurations through a
``ConfigurationStore``. Mutations are serialized under one asyncio lock.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.models import ConnectionConfig
from ..config.store import ConfigurationStore
from ..core.exceptions import (
    ConfigurationError,
    DBSageException,
    DuplicateConnectionError,
    ErrorCodes,
    NoCurrentConnectionError,
    UnknownConnectionError,
    UnreachableError,
)
from ..core.utils import with_deadline
from ..logging import get_logger
from .base import DatabaseAdapter
from .factory import create_adapter
from .models import ConnectionInfo, ConnectionStatus

AdapterFactory = Callable[[ConnectionConfig], DatabaseAdapter]


def _last_used_key(config: ConnectionConfig) -> datetime:
    return config.last_used or datetime.min


class ConnectionRegistry:
    """Named set of connections with one current selection.

    Every call that hands out an adapter re-pings it first. A failed ping
    triggers one reconnect; if that also fails the connection is marked
    unhealthy and ``UnreachableError`` is raised.

    Example:
        >>> registry = ConnectionRegistry(ConfigurationStore())
        >>> registry.load()
        >>> await registry.add(ConnectionConfig(name="local", kind="sqlite", database="app.db"))
        >>> adapter, name = await registry.current()
    """

    def __init__(
        self,
        store: Optional[ConfigurationStore] = None,
        *,
        adapter_factory: AdapterFactory = create_adapter,
        timeout: Optional[float] = None,
    ) -> None:
        """Initialize the registry.

        Args:
            store: Persistence for configurations; ``None`` keeps them in memory
            adapter_factory: Builds an unopened adapter for a configuration
            timeout: Default deadline in seconds for backend-touching operations
        """
        self.logger = get_logger("database.registry")
        self._store = store
        self._adapter_factory = adapter_factory
        self._timeout = timeout

        self._configs: Dict[str, ConnectionConfig] = {}
        self._adapters: Dict[str, DatabaseAdapter] = {}
        self._status: Dict[str, ConnectionStatus] = {}
        self._current: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def current_name(self) -> Optional[str]:
        return self._current

    def __contains__(self, name: object) -> bool:
        return name in self._configs

    def __len__(self) -> int:
        return len(self._configs)

    def load(self) -> None:
        """Populate the registry from the store. Connections open lazily.

        The current selection is the persisted one if still present, else the
        most recently used connection, else the first one.
        """
        if self._store is None:
            return

        configs, current = self._store.load()
        self._configs = {config.name: config for config in configs}
        self._status = {name: ConnectionStatus.DISCONNECTED for name in self._configs}

        if current in self._configs:
            self._current = current
        else:
            ordered = self.sorted_by_last_used()
            self._current = ordered[0].name if ordered else None

        self.logger.info("Connections loaded", count=len(self._configs), current=self._current)

    def _save(self) -> None:
        if self._store is not None:
            self._store.save(list(self._configs.values()), self._current)

    def _deadline(self, timeout: Optional[float]) -> Optional[float]:
        return self._timeout if timeout is None else timeout

    def get(self, name: str) -> ConnectionConfig:
        """Configuration registered under ``name``.

        Raises:
            UnknownConnectionError: If the name is not registered
        """
        try:
            return self._configs[name]
        except KeyError:
            raise UnknownConnectionError(
                f"Connection '{name}' not found",
                code=ErrorCodes.CONNECTION_NOT_FOUND,
                context={"connection": name},
            ) from None

    async def _ensure_live(self, name: str) -> DatabaseAdapter:
        """Open or re-ping ``name``, reconnecting once on failure. Caller holds the lock."""
        adapter = self._adapters.get(name)
        if adapter is None:
            adapter = self._adapter_factory(self._configs[name])
            self._adapters[name] = adapter

        if adapter.is_open:
            try:
                await adapter.ping()
                self._status[name] = ConnectionStatus.CONNECTED
                return adapter
            except UnreachableError as e:
                self.logger.warning("Health check failed, reconnecting", connection=name, error=e.message)
                await adapter.close()

        try:
            await adapter.open()
            await adapter.ping()
        except DBSageException as e:
            self._status[name] = ConnectionStatus.UNHEALTHY
            await adapter.close()
            self.logger.error("Connection unreachable", connection=name, error=str(e))
            raise UnreachableError(
                f"Connection '{name}' is unreachable: {e.message}",
                code=ErrorCodes.NETWORK_UNREACHABLE,
                context={"connection": name},
                cause=e,
            ) from e

        self._status[name] = ConnectionStatus.CONNECTED
        return adapter

    async def add(self, config: ConnectionConfig, *, timeout: Optional[float] = None) -> None:
        """Register ``config`` after opening and pinging it.

        The new connection becomes current if none was selected.

        Raises:
            DuplicateConnectionError: If the name is already registered
            DatabaseConnectionError: If the backend cannot be opened
            UnreachableError: If the opened backend does not answer a ping
        """
        await with_deadline(self._add(config), self._deadline(timeout), operation="add connection")

    async def _add(self, config: ConnectionConfig) -> None:
        async with self._lock:
            if config.name in self._configs:
                raise DuplicateConnectionError(
                    f"Connection '{config.name}' already exists",
                    code=ErrorCodes.CONNECTION_EXISTS,
                    context={"connection": config.name},
                )

            adapter = self._adapter_factory(config)
            try:
                await adapter.open()
                await adapter.ping()
            except DBSageException:
                await adapter.close()
                raise

            config.touch()
            self._configs[config.name] = config
            self._adapters[config.name] = adapter
            self._status[config.name] = ConnectionStatus.CONNECTED
            if self._current is None:
                self._current = config.name

            self.logger.info("Connection added", connection=config.name, kind=config.kind, current=self._current)
            self._save()

    async def remove(self, name: str) -> None:
        """Close and unregister ``name``.

        If it was current, the most recently used remaining connection is
        promoted; with none left the registry has no current connection.

        Raises:
            UnknownConnectionError: If the name is not registered
        """
        async with self._lock:
            self.get(name)

            adapter = self._adapters.pop(name, None)
            if adapter is not None:
                await adapter.close()
            del self._configs[name]
            self._status.pop(name, None)

            if self._current == name:
                remaining = self.sorted_by_last_used()
                self._current = remaining[0].name if remaining else None

            self.logger.info("Connection removed", connection=name, current=self._current)
            self._save()

    async def switch(self, name: str, *, timeout: Optional[float] = None) -> None:
        """Make ``name`` current, opening it if needed.

        On failure the previous selection is left unchanged. A failure to
        persist the new selection is logged and ignored.

        Raises:
            UnknownConnectionError: If the name is not registered
            UnreachableError: If the connection cannot be opened or pinged
        """
        await with_deadline(self._switch(name), self._deadline(timeout), operation="switch connection")

    async def _switch(self, name: str) -> None:
        async with self._lock:
            config = self.get(name)
            await self._ensure_live(name)

            self._current = name
            config.touch()
            self.logger.info("Switched connection", connection=name)

            try:
                self._save()
            except ConfigurationError as e:
                self.logger.warning("Failed to persist connection switch", connection=name, error=e.message)

    async def current(self, *, timeout: Optional[float] = None) -> Tuple[DatabaseAdapter, str]:
        """Return the live current adapter and its name.

        Raises:
            NoCurrentConnectionError: If no connection is selected
            UnreachableError: If the current connection fails its health check
        """
        return await with_deadline(self._current_adapter(), self._deadline(timeout), operation="resolve connection")

    async def _current_adapter(self) -> Tuple[DatabaseAdapter, str]:
        async with self._lock:
            name = self._current
            if name is None or name not in self._configs:
                raise NoCurrentConnectionError(
                    "No database connection selected",
                    code=ErrorCodes.NO_CURRENT_CONNECTION,
                )
            adapter = await self._ensure_live(name)
            return adapter, name

    async def ensure_healthy(self, *, timeout: Optional[float] = None) -> None:
        """Re-ping the current connection, reconnecting once if needed."""
        await self.current(timeout=timeout)

    async def test(self, config: ConnectionConfig, *, timeout: Optional[float] = None) -> None:
        """Open and ping ``config`` without registering it."""
        await with_deadline(self._test(config), self._deadline(timeout), operation="test connection")

    async def _test(self, config: ConnectionConfig) -> None:
        adapter = self._adapter_factory(config)
        try:
            await adapter.open()
            await adapter.ping()
        finally:
            await adapter.close()

    def is_connected(self) -> bool:
        """True when the current connection is open and last answered its ping."""
        if self._current is None:
            return False
        adapter = self._adapters.get(self._current)
        return adapter is not None and adapter.is_open and adapter.healthy

    def _status_of(self, name: str) -> ConnectionStatus:
        if self._status.get(name) == ConnectionStatus.UNHEALTHY:
            return ConnectionStatus.UNHEALTHY

        adapter = self._adapters.get(name)
        if adapter is None or not adapter.is_open:
            return ConnectionStatus.DISCONNECTED
        if not adapter.healthy:
            return ConnectionStatus.UNHEALTHY
        return ConnectionStatus.ACTIVE if name == self._current else ConnectionStatus.CONNECTED

    def status(self) -> Dict[str, ConnectionStatus]:
        return {name: self._status_of(name) for name in self._configs}

    def sorted_by_last_used(self) -> List[ConnectionConfig]:
        """Configurations, most recently used first; never-used ones last."""
        return sorted(self._configs.values(), key=_last_used_key, reverse=True)

    def list(self) -> List[ConnectionInfo]:
        return [
            ConnectionInfo(
                name=config.name,
                kind=config.kind,
                endpoint=config.endpoint,
                description=config.description,
                status=self._status_of(config.name),
                is_current=config.name == self._current,
                last_used=config.last_used,
            )
            for config in sorted(self._configs.values(), key=lambda c: c.name)
        ]

    def stats(self) -> Dict[str, Any]:
        states = list(self.status().values())
        return {
            "total": len(states),
            "active": states.count(ConnectionStatus.ACTIVE),
            "connected": states.count(ConnectionStatus.CONNECTED),
            "unhealthy": states.count(ConnectionStatus.UNHEALTHY),
            "disconnected": states.count(ConnectionStatus.DISCONNECTED),
            "has_current": self._current is not None,
        }

    async def close(self) -> None:
        """Close every live connection. Safe to call more than once."""
        async with self._lock:
            for name, adapter in list(self._adapters.items()):
                await adapter.close()
                self._status[name] = ConnectionStatus.DISCONNECTED
            self._adapters.clear()
            self.logger.info("All connections closed")
