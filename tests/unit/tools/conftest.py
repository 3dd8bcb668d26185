"""Tool layer fixtures over a registry holding the sample SQLite file."""

import pytest
import pytest_asyncio

from dbsage.database import ConnectionRegistry
from dbsage.tools import CapabilityFacade, ToolDispatcher


@pytest_asyncio.fixture
async def registry(sqlite_config):
    registry = ConnectionRegistry()
    await registry.add(sqlite_config)
    yield registry
    await registry.close()


@pytest.fixture
def facade(registry):
    return CapabilityFacade(registry)


@pytest.fixture
def dispatcher(facade):
    return ToolDispatcher(facade)
