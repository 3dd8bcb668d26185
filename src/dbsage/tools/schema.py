"""Declarative tool catalog.

Each tool pairs a name with its description, JSON-shaped parameters, a risk
level and whether the UI must ask before running it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import ErrorCodes, ValidationError

RISK_LEVELS = ("low", "medium", "high")

_JSON_TYPES = {
    "string": str,
    "array": list,
    "object": dict,
    "integer": int,
    "boolean": bool,
}


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str
    description: str
    items: Optional[str] = None
    required: bool = True

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.items:
            schema["items"] = {"type": self.items}
        return schema

    def check(self, value: Any) -> None:
        """Raise ``ValidationError`` if ``value`` does not match the declared type."""
        expected = _JSON_TYPES.get(self.type, object)
        valid = isinstance(value, expected) and not (self.type == "integer" and isinstance(value, bool))
        if valid and self.items:
            item_type = _JSON_TYPES.get(self.items, object)
            valid = all(isinstance(item, item_type) for item in value)
        if not valid:
            expected_name = f"{self.type} of {self.items}" if self.items else self.type
            raise ValidationError(
                f"Parameter '{self.name}' must be {expected_name}",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"parameter": self.name, "expected": expected_name},
            )


@dataclass(frozen=True)
class ToolDefinition:
    """One tool of the catalog.

    Attributes:
        name: Tool name the LLM calls
        description: What the tool does
        parameters: Ordered parameter declarations
        risk_level: ``low``, ``medium`` or ``high``
        requires_confirmation: The UI must approve each call first
        summary: Short label shown when asking for confirmation
    """
    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = field(default_factory=tuple)
    risk_level: str = "low"
    requires_confirmation: bool = False
    summary: str = ""

    @property
    def required(self) -> List[str]:
        return [parameter.name for parameter in self.parameters if parameter.required]

    def to_function_schema(self) -> Dict[str, Any]:
        """The tool as an LLM function declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_json_schema() for p in self.parameters},
                    "required": self.required,
                },
            },
        }

    def validate_arguments(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Check required parameters and types; drop undeclared keys.

        Raises:
            ValidationError: If a required parameter is missing or mistyped
        """
        validated = {}
        for parameter in self.parameters:
            if parameter.name not in arguments or arguments[parameter.name] is None:
                if parameter.required:
                    raise ValidationError(
                        f"Missing required parameter '{parameter.name}' for tool '{self.name}'",
                        code=ErrorCodes.INVALID_ARGUMENT,
                        context={"tool": self.name, "parameter": parameter.name},
                    )
                continue
            parameter.check(arguments[parameter.name])
            validated[parameter.name] = arguments[parameter.name]
        return validated


def _sql(description: str) -> ToolParameter:
    return ToolParameter("sql", "string", description)


def _query(description: str) -> ToolParameter:
    return ToolParameter("query", "string", description)


def _table(description: str = "The name of the table") -> ToolParameter:
    return ToolParameter("tableName", "string", description)


TOOLS: Tuple[ToolDefinition, ...] = (
    ToolDefinition(
        "execute_sql",
        "Execute a SQL query",
        (_sql("The SQL query to execute"),),
        risk_level="high",
        requires_confirmation=True,
        summary="Execute SQL query on the database",
    ),
    ToolDefinition("get_all_tables", "Get all tables in the database", summary="Get list of all tables"),
    ToolDefinition(
        "get_table_schema",
        "Get detailed schema of a table including columns, types, nullability, defaults",
        (_table(),),
        summary="Get table schema information",
    ),
    ToolDefinition(
        "explain_query",
        "Analyze query performance with EXPLAIN ANALYZE",
        (_sql("The SQL query to analyze"),),
        risk_level="medium",
        summary="Analyze query execution plan",
    ),
    ToolDefinition(
        "get_table_indexes",
        "Get all indexes for a specific table",
        (_table(),),
        summary="Get table index information",
    ),
    ToolDefinition(
        "get_table_stats",
        "Get statistical information about table columns",
        (_table(),),
        summary="Get table statistics",
    ),
    ToolDefinition(
        "find_duplicate_data",
        "Find duplicate records in a table based on specified columns",
        (
            _table(),
            ToolParameter("columns", "array", "Array of column names to check for duplicates", items="string"),
        ),
        risk_level="medium",
        requires_confirmation=True,
        summary="Find duplicate data in table",
    ),
    ToolDefinition(
        "get_slow_queries",
        "Get the slowest queries from pg_stat_statements",
        summary="Get slow query information",
    ),
    ToolDefinition("get_database_size", "Get the size of the current database", summary="Get database size information"),
    ToolDefinition(
        "get_table_sizes",
        "Get sizes of all tables including table and index sizes",
        summary="Get table size information",
    ),
    ToolDefinition(
        "get_active_connections",
        "Get information about active database connections",
        summary="Get active database connections",
    ),
    ToolDefinition(
        "analyze_query_performance",
        "Analyze the performance of a specific query and provide optimization suggestions",
        (_query("The SQL query to analyze"),),
        risk_level="medium",
        summary="Analyze query performance",
    ),
    ToolDefinition(
        "suggest_indexes",
        "Suggest indexes for a specific table to improve performance",
        (_table("The name of the table to analyze for index suggestions"),),
        summary="Suggest indexes for a table",
    ),
    ToolDefinition(
        "get_query_patterns",
        "Analyze query patterns from database statistics to identify optimization opportunities",
        summary="Analyze query patterns",
    ),
    ToolDefinition(
        "optimize_query",
        "Provide optimization suggestions for a specific query",
        (_query("The SQL query to optimize"),),
        summary="Suggest query optimizations",
    ),
    ToolDefinition(
        "analyze_table_performance",
        "Analyze performance issues specific to a table",
        (_table("The name of the table to analyze"),),
        summary="Analyze table performance",
    ),
)

_TOOLS_BY_NAME: Dict[str, ToolDefinition] = {tool.name: tool for tool in TOOLS}


def tool_names() -> List[str]:
    return [tool.name for tool in TOOLS]


def get_tool(name: str) -> ToolDefinition:
    """Definition of tool ``name``.

    Raises:
        ValidationError: If no tool has that name
    """
    try:
        return _TOOLS_BY_NAME[name]
    except KeyError:
        raise ValidationError(
            f"Unknown tool: {name}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"tool": name},
        ) from None


def get_tool_schemas() -> List[Dict[str, Any]]:
    """Every tool as an LLM function declaration, in catalog order."""
    return [tool.to_function_schema() for tool in TOOLS]
