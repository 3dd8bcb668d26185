"""Tool surface for dbsage.

Modules:
    schema: The declarative tool catalog
    confirmation: Pending tool calls awaiting user approval
    facade: One method per tool over the current connection
    dispatcher: JSON-in, JSON-out tool routing

Example:
    >>> dispatcher = ToolDispatcher(CapabilityFacade(registry))
    >>> await dispatcher.dispatch("get_all_tables", "{}")
"""

from .confirmation import PendingToolCall, PendingToolCalls, requires_confirmation
from .dispatcher import ToolDispatcher, error_document, to_payload
from .facade import NO_CONNECTION_MESSAGE, CapabilityFacade
from .schema import TOOLS, ToolDefinition, ToolParameter, get_tool, get_tool_schemas, tool_names

__all__ = [
    "PendingToolCall",
    "PendingToolCalls",
    "requires_confirmation",
    "ToolDispatcher",
    "error_document",
    "to_payload",
    "NO_CONNECTION_MESSAGE",
    "CapabilityFacade",
    "TOOLS",
    "ToolDefinition",
    "ToolParameter",
    "get_tool",
    "get_tool_schemas",
    "tool_names",
]
