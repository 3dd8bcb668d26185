"""Tool dispatcher.

Turns an LLM tool call (name plus JSON arguments) into a facade call and the
result into JSON text. Errors never escape: they become
``{"error", "kind", "code"}`` documents the LLM can read.
"""

import json
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..core.exceptions import (
    DBSageException,
    ErrorCodes,
    ExtensionMissingError,
    ValidationError,
    create_error_from_exception,
)
from ..database.models import to_jsonable
from ..logging import correlation_scope, get_logger
from .facade import CapabilityFacade
from .schema import get_tool

# Tools that still answer with an empty result when the statistics extension is missing
PARTIAL_ON_MISSING_EXTENSION = frozenset({"get_query_patterns", "get_slow_queries"})


def to_payload(value: Any) -> Any:
    """Convert facade results (dataclasses and lists of them) to JSON-ready data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return to_jsonable(value)


def error_document(error: DBSageException, partial: Any = None) -> Dict[str, Any]:
    document: Dict[str, Any] = {"error": error.message, "kind": error.kind, "code": error.code}
    if partial is not None:
        document["result"] = partial
    return document


def _dumps(document: Any) -> str:
    return json.dumps(document, default=to_jsonable, ensure_ascii=False)


class ToolDispatcher:
    """Route tool calls to a ``CapabilityFacade``.

    Example:
        >>> dispatcher = ToolDispatcher(CapabilityFacade(registry))
        >>> await dispatcher.dispatch("get_table_schema", '{"tableName": "users"}')
        '[{"column_name": "id", ...}]'
    """

    def __init__(self, facade: CapabilityFacade) -> None:
        self.facade = facade
        self.logger = get_logger("tools.dispatcher")

        self._handlers: Dict[str, Callable[..., Awaitable[Any]]] = {
            "execute_sql": lambda args, t: facade.execute_sql(args["sql"], timeout=t),
            "get_all_tables": lambda args, t: facade.get_all_tables(timeout=t),
            "get_table_schema": lambda args, t: facade.get_table_schema(args["tableName"], timeout=t),
            "explain_query": lambda args, t: facade.explain_query(args["sql"], timeout=t),
            "get_table_indexes": lambda args, t: facade.get_table_indexes(args["tableName"], timeout=t),
            "get_table_stats": lambda args, t: facade.get_table_stats(args["tableName"], timeout=t),
            "find_duplicate_data": lambda args, t: facade.find_duplicate_data(
                args["tableName"], args["columns"], timeout=t
            ),
            "get_slow_queries": lambda args, t: facade.get_slow_queries(timeout=t),
            "get_database_size": lambda args, t: facade.get_database_size(timeout=t),
            "get_table_sizes": lambda args, t: facade.get_table_sizes(timeout=t),
            "get_active_connections": lambda args, t: facade.get_active_connections(timeout=t),
            "analyze_query_performance": lambda args, t: facade.analyze_query_performance(args["query"], timeout=t),
            "suggest_indexes": lambda args, t: facade.suggest_indexes(args["tableName"], timeout=t),
            "get_query_patterns": lambda args, t: facade.get_query_patterns(timeout=t),
            "optimize_query": lambda args, t: facade.optimize_query(args["query"], timeout=t),
            "analyze_table_performance": lambda args, t: facade.analyze_table_performance(
                args["tableName"], timeout=t
            ),
        }

    @staticmethod
    def parse_arguments(arguments: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
        """Decode tool arguments given as JSON text or an already-decoded dict.

        Raises:
            ValidationError: If the text is not a JSON object
        """
        if arguments is None or arguments == "":
            return {}
        if isinstance(arguments, dict):
            return arguments
        try:
            decoded = json.loads(arguments)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Invalid tool arguments: {e}",
                code=ErrorCodes.INVALID_ARGUMENT,
                cause=e,
            ) from e
        if not isinstance(decoded, dict):
            raise ValidationError("Tool arguments must be a JSON object", code=ErrorCodes.INVALID_ARGUMENT)
        return decoded

    async def call(
        self,
        name: str,
        arguments: Union[str, Dict[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Any:
        """Validate and run one tool call, returning the facade's structured result.

        Raises:
            ValidationError: For unknown tools and invalid arguments
            DBSageException: Whatever the facade raises
        """
        tool = get_tool(name)
        validated = tool.validate_arguments(self.parse_arguments(arguments))
        return await self._handlers[tool.name](validated, timeout)

    async def dispatch(
        self,
        name: str,
        arguments: Union[str, Dict[str, Any], None] = None,
        *,
        timeout: Optional[float] = None,
    ) -> str:
        """Run one tool call and return its result, or its error, as JSON text.

        Every event logged while serving the call shares one correlation id.
        """
        with correlation_scope(), self.logger.context(tool=name):
            return await self._dispatch(name, arguments, timeout)

    async def _dispatch(
        self,
        name: str,
        arguments: Union[str, Dict[str, Any], None],
        timeout: Optional[float],
    ) -> str:
        self.logger.debug("Dispatching tool call")
        try:
            result = await self.call(name, arguments, timeout=timeout)
        except ExtensionMissingError as e:
            self.logger.warning("Tool call degraded", error=e.message)
            partial = [] if name in PARTIAL_ON_MISSING_EXTENSION else None
            return _dumps(error_document(e, partial))
        except DBSageException as e:
            self.logger.warning("Tool call failed", error_code=e.code, error=e.message)
            return _dumps(error_document(e))
        except Exception as e:
            self.logger.exception("Unexpected tool failure")
            return _dumps(error_document(create_error_from_exception(e)))

        return _dumps(to_payload(result))
