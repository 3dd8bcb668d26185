"""Suspended tool calls awaiting user approval.

A risky tool call pauses the LLM continuation. The pause is recorded as a
``PendingToolCall`` keyed by tool-call id; the UI later approves it (and
resumes the conversation with the tool result) or rejects it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from ..core.exceptions import ErrorCodes, ValidationError
from ..logging import get_logger
from .schema import get_tool


@dataclass
class PendingToolCall:
    """Everything needed to resume the conversation after approval.

    Attributes:
        messages: Conversation history up to the tool call
        tool_name: Tool the LLM selected
        arguments: Decoded tool arguments
        sink: Where the resumed stream is written; opaque to this module
    """
    messages: List[Dict[str, Any]]
    tool_name: str
    arguments: Dict[str, Any]
    sink: Any = None
    created_at: datetime = field(default_factory=datetime.now)


def requires_confirmation(tool_name: str) -> bool:
    """True if ``tool_name`` must be approved before it runs."""
    return get_tool(tool_name).requires_confirmation


class PendingToolCalls:
    """Book of suspended tool calls keyed by tool-call id.

    Example:
        >>> pending = PendingToolCalls()
        >>> pending.add("call_1", PendingToolCall(messages, "execute_sql", {"sql": sql}))
        >>> call = pending.approve("call_1")
        >>> result = await dispatcher.dispatch(call.tool_name, call.arguments)
    """

    def __init__(self) -> None:
        self.logger = get_logger("tools.confirmation")
        self._calls: Dict[str, PendingToolCall] = {}

    def __len__(self) -> int:
        return len(self._calls)

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._calls

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._calls))

    def add(self, call_id: str, call: PendingToolCall) -> None:
        """Suspend ``call`` under ``call_id``.

        Raises:
            ValidationError: If the id is empty, already pending, or names an
                unknown tool
        """
        if not call_id:
            raise ValidationError("Tool call id cannot be empty", code=ErrorCodes.INVALID_ARGUMENT)
        if call_id in self._calls:
            raise ValidationError(
                f"Tool call '{call_id}' is already pending",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"call_id": call_id},
            )
        get_tool(call.tool_name)
        self._calls[call_id] = call
        self.logger.info("Tool call awaiting confirmation", call_id=call_id, tool=call.tool_name)

    def get(self, call_id: str) -> Optional[PendingToolCall]:
        return self._calls.get(call_id)

    def _pop(self, call_id: str) -> PendingToolCall:
        try:
            return self._calls.pop(call_id)
        except KeyError:
            raise ValidationError(
                f"No pending tool call with id '{call_id}'",
                code=ErrorCodes.INVALID_ARGUMENT,
                context={"call_id": call_id},
            ) from None

    def approve(self, call_id: str) -> PendingToolCall:
        """Remove and return the call so the caller can execute and resume it."""
        call = self._pop(call_id)
        self.logger.info("Tool call approved", call_id=call_id, tool=call.tool_name)
        return call

    def reject(self, call_id: str) -> PendingToolCall:
        """Remove the call without running it."""
        call = self._pop(call_id)
        self.logger.info("Tool call rejected", call_id=call_id, tool=call.tool_name)
        return call

    def clear(self) -> None:
        self._calls.clear()
