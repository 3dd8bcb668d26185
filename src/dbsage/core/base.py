"""Async lifecycle base for components that hold backend resources.

Example:
    >>> class SQLiteAdapter(AsyncComponent[ConnectionConfig]):
    ...     async def _async_initialize(self) -> None:
    ...         self._connection = await aiosqlite.connect(...)
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Optional, TypeVar

from .exceptions import ConfigurationError, DBSageException, ErrorCodes, ValidationError

T = TypeVar("T")  # Configuration type


class AsyncComponent(Generic[T], ABC):
    """A configured component that can be opened, closed and reopened.

    ``initialize`` and ``cleanup`` share one lock, so a close issued while an
    open is in flight waits for it and the two never interleave. Both are
    idempotent.

    Type Parameters:
        T: Type of configuration object this component accepts
    """

    component_name: ClassVar[str] = "AsyncComponent"

    def __init__(self, config: T) -> None:
        """Bind ``config``.

        Raises:
            ValidationError: If ``config`` is None
            ConfigurationError: If ``validate_config`` rejects it
        """
        if config is None:
            raise ValidationError(
                "Configuration cannot be None",
                code=ErrorCodes.CONFIG_NULL,
                context={"component": self.component_name},
            )

        self._config: T = config
        self._initialized = False
        self._opened_at: Optional[float] = None
        self._lifecycle_lock = asyncio.Lock()
        # dbsage.logging imports dbsage.core, so resolve it at construction
        from ..logging import get_logger

        self._logger = get_logger(f"core.{self.component_name}")

        if not self.validate_config():
            raise ConfigurationError(
                f"Invalid configuration for {self.component_name}",
                code=ErrorCodes.CONFIG_INVALID,
                context={"component": self.component_name},
            )

    @property
    def config(self) -> T:
        return self._config

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def open_seconds(self) -> Optional[float]:
        """Seconds since the last successful initialize, None while closed."""
        if self._opened_at is None:
            return None
        return time.monotonic() - self._opened_at

    def validate_config(self) -> bool:
        return True

    async def initialize(self) -> None:
        """Acquire resources once.

        dbsage exceptions from ``_async_initialize`` propagate unchanged;
        anything else is wrapped with code ``INIT_FAILED``. Whatever a failed
        or cancelled initialize already acquired is released before the
        error leaves.
        """
        async with self._lifecycle_lock:
            if self._initialized:
                return

            try:
                await self._async_initialize()
            except DBSageException as e:
                self._logger.error("Initialization failed", component=self.component_name, error=str(e))
                await self._discard_partial()
                raise
            except Exception as e:
                self._logger.error("Initialization failed", component=self.component_name, error=str(e))
                await self._discard_partial()
                raise DBSageException(
                    f"Failed to initialize {self.component_name}: {e}",
                    code=ErrorCodes.INIT_FAILED,
                    context={"component": self.component_name},
                    cause=e,
                ) from e
            except BaseException:
                self._logger.warning("Initialization interrupted", component=self.component_name)
                await self._discard_partial()
                raise

            self._initialized = True
            self._opened_at = time.monotonic()

    async def _discard_partial(self) -> None:
        try:
            await self._async_cleanup()
        except Exception as e:
            self._logger.warning("Cleanup after failed initialization failed", component=self.component_name, error=str(e))

    async def cleanup(self) -> None:
        """Release resources. Failures are logged, never raised."""
        async with self._lifecycle_lock:
            if not self._initialized:
                return

            try:
                await self._async_cleanup()
            except Exception as e:
                self._logger.warning("Cleanup failed", component=self.component_name, error=str(e))
            finally:
                self._initialized = False
                self._opened_at = None

    @abstractmethod
    async def _async_initialize(self) -> None:
        ...

    async def _async_cleanup(self) -> None:
        pass

    async def __aenter__(self) -> "AsyncComponent[T]":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.cleanup()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(initialized={self._initialized})"
