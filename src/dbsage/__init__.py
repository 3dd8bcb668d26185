"""dbsage - database inspection and optimization engine.

dbsage exposes a fixed catalog of inspection and optimization tools over
PostgreSQL and SQLite connections so that a language-model assistant can
explore and tune relational databases on a user's behalf.

Modules:
    core: Core infrastructure and base classes
    config: Connection configuration, URLs and the configuration store
    logging: Structured logging framework
    database: Driver adapters, introspection, executor and registry
    optimization: Rule and plan based optimizers
    tools: Tool schema, capability facade and dispatcher
    version: Release checking

Example:
    >>> from dbsage.database import ConnectionRegistry
    >>> from dbsage.tools import CapabilityFacade
    >>>
    >>> registry = ConnectionRegistry()
    >>> registry.load()
    >>> facade = CapabilityFacade(registry)
    >>> tables = await facade.get_all_tables()
"""

__version__ = "0.1.0"
__title__ = "dbsage"
__description__ = "Database inspection and query optimization engine"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__title__",
    "__description__",
    "__license__",
]
