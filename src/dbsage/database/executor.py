"""Query execution helpers.

Adapters hand back raw driver rows; this module normalizes their cells,
builds explain and duplicate-search statements, and provides the
``QueryExecutor`` that the capability facade runs user SQL through.
"""

from typing import TYPE_CHECKING, Any, Iterable, List, Sequence

from ..core.exceptions import ErrorCodes, ValidationError
from ..core.utils import validate_identifier
from .models import QueryResult

if TYPE_CHECKING:
    from .base import DatabaseAdapter

DUPLICATE_ROW_LIMIT = 100


def decode_cell(value: Any) -> Any:
    """Decode byte-typed cells as UTF-8 text; keep other scalars unchanged."""
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def normalize_rows(rows: Iterable[Sequence[Any]]) -> List[List[Any]]:
    return [[decode_cell(cell) for cell in row] for row in rows]


def build_find_duplicates_sql(table: str, columns: Sequence[str], *, allow_schema: bool = False) -> str:
    """Build the duplicate-search statement for ``table`` grouped by ``columns``.

    Raises:
        ValidationError: If ``columns`` is empty or any name is not a plain
            identifier
    """
    if not columns:
        raise ValidationError(
            "At least one column is required to find duplicates",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"table": table},
        )

    validate_identifier(table, allow_schema=allow_schema, field="table name")
    for column in columns:
        validate_identifier(column, field="column name")

    column_list = ", ".join(columns)
    return (
        f"SELECT {column_list}, COUNT(*) AS duplicate_count FROM {table} "
        f"GROUP BY {column_list} HAVING COUNT(*) > 1 "
        f"ORDER BY COUNT(*) DESC LIMIT {DUPLICATE_ROW_LIMIT}"
    )


class QueryExecutor:
    """Run statements through an adapter.

    Example:
        >>> executor = QueryExecutor(adapter)
        >>> result = await executor.execute("SELECT 1")
        >>> result.rows
        [[1]]
    """

    def __init__(self, adapter: "DatabaseAdapter") -> None:
        self.adapter = adapter

    async def execute(self, sql: str) -> QueryResult:
        if not sql or not sql.strip():
            raise ValidationError("SQL statement cannot be empty", code=ErrorCodes.INVALID_ARGUMENT)
        return await self.adapter.run_query(sql)

    async def explain(self, sql: str) -> QueryResult:
        if not sql or not sql.strip():
            raise ValidationError("SQL statement cannot be empty", code=ErrorCodes.INVALID_ARGUMENT)
        return await self.adapter.run_explain(sql)

    async def find_duplicate_data(self, table: str, columns: Sequence[str]) -> QueryResult:
        sql = build_find_duplicates_sql(table, columns, allow_schema=self.adapter.allows_schema_names)
        return await self.adapter.run_query(sql)
