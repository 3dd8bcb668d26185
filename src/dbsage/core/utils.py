"""Small helpers shared across dbsage.

Functions:
    is_identifier: Check a table or column name against the safe pattern
    validate_identifier: Same, raising ``ValidationError``
    format_duration: Render a query duration
    truncate_sql: Shorten SQL text for log events
    with_deadline: Await a coroutine under an optional deadline
"""

import asyncio
import re
from typing import Awaitable, Optional, TypeVar, Union

from .exceptions import ErrorCodes, TimeoutError, ValidationError

T = TypeVar("T")

_NAME = r"[a-zA-Z_][a-zA-Z0-9_]*"
IDENTIFIER_PATTERN = re.compile(rf"^{_NAME}$")
QUALIFIED_IDENTIFIER_PATTERN = re.compile(rf"^(?:{_NAME}\.)?{_NAME}$")


def is_identifier(identifier: object, *, allow_schema: bool = False) -> bool:
    """True for names safe to interpolate into SQL text.

    Example:
        >>> is_identifier("users")
        True
        >>> is_identifier("public.users", allow_schema=True)
        True
        >>> is_identifier("users; DROP TABLE x")
        False
    """
    if not isinstance(identifier, str):
        return False
    pattern = QUALIFIED_IDENTIFIER_PATTERN if allow_schema else IDENTIFIER_PATTERN
    return bool(pattern.match(identifier))


def validate_identifier(identifier: str, *, allow_schema: bool = False, field: str = "identifier") -> str:
    """Return ``identifier`` unchanged if ``is_identifier`` accepts it.

    Raises:
        ValidationError: Naming ``field`` in the message
    """
    if not is_identifier(identifier, allow_schema=allow_schema):
        raise ValidationError(
            f"Invalid {field}: {identifier!r}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={field: identifier},
        )
    return identifier


def format_duration(seconds: Union[int, float]) -> str:
    """Format a query duration.

    Sub-millisecond values render in microseconds, sub-second values in
    milliseconds and anything longer in seconds with two decimals.

    Example:
        >>> format_duration(0.00085)
        '850µs'
        >>> format_duration(0.015)
        '15ms'
        >>> format_duration(0.0015)
        '1.5ms'
        >>> format_duration(2.345)
        '2.35s'
    """
    seconds = max(float(seconds), 0.0)

    if seconds < 0.001:
        return f"{round(seconds * 1_000_000)}µs"
    if seconds < 1:
        milliseconds = round(seconds * 1000, 1)
        if milliseconds == int(milliseconds):
            return f"{int(milliseconds)}ms"
        return f"{milliseconds}ms"
    return f"{seconds:.2f}s"


def truncate_sql(sql: str, max_length: int = 200, *, suffix: str = "...") -> str:
    """Collapse whitespace and cut to ``max_length`` characters."""
    sql = " ".join(sql.split())
    if len(sql) <= max_length:
        return sql
    return sql[: max_length - len(suffix)] + suffix


async def with_deadline(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    *,
    operation: str = "operation",
) -> T:
    """Await ``awaitable``, enforcing an optional deadline.

    Args:
        awaitable: Coroutine or future to wait for
        timeout: Deadline in seconds; ``None`` waits indefinitely
        operation: Name used in the error message and context

    Raises:
        TimeoutError: If the deadline expires first
    """
    if timeout is None:
        return await awaitable

    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise TimeoutError(
            f"{operation} cancelled after {timeout}s deadline",
            code=ErrorCodes.OPERATION_CANCELLED,
            context={"operation": operation, "timeout": timeout},
            cause=e,
        ) from e
