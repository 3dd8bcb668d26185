"""Tests for suspended tool calls."""

import pytest

from dbsage.core.exceptions import ValidationError
from dbsage.tools import PendingToolCall, PendingToolCalls, requires_confirmation

MESSAGES = [{"role": "user", "content": "delete the duplicates"}]


@pytest.fixture
def pending():
    return PendingToolCalls()


class TestRequiresConfirmation:
    def test_risky_tools(self):
        assert requires_confirmation("execute_sql")
        assert requires_confirmation("find_duplicate_data")

    def test_read_only_tools(self):
        assert not requires_confirmation("get_all_tables")
        assert not requires_confirmation("explain_query")

    def test_unknown_tool(self):
        with pytest.raises(ValidationError):
            requires_confirmation("nope")


class TestPendingToolCalls:
    def test_add_and_approve(self, pending):
        call = PendingToolCall(MESSAGES, "execute_sql", {"sql": "DELETE FROM users WHERE id = 3"})
        pending.add("call_1", call)

        assert len(pending) == 1
        assert "call_1" in pending
        assert pending.get("call_1") is call

        approved = pending.approve("call_1")

        assert approved is call
        assert approved.messages == MESSAGES
        assert "call_1" not in pending
        assert len(pending) == 0

    def test_reject_removes_call(self, pending):
        pending.add("call_1", PendingToolCall(MESSAGES, "execute_sql", {"sql": "DROP TABLE users"}))

        rejected = pending.reject("call_1")

        assert rejected.tool_name == "execute_sql"
        assert pending.get("call_1") is None

    def test_unknown_id(self, pending):
        with pytest.raises(ValidationError, match="No pending tool call"):
            pending.approve("missing")
        with pytest.raises(ValidationError):
            pending.reject("missing")

    def test_duplicate_id(self, pending):
        pending.add("call_1", PendingToolCall(MESSAGES, "execute_sql", {"sql": "SELECT 1"}))

        with pytest.raises(ValidationError, match="already pending"):
            pending.add("call_1", PendingToolCall(MESSAGES, "execute_sql", {"sql": "SELECT 2"}))

    def test_empty_id(self, pending):
        with pytest.raises(ValidationError):
            pending.add("", PendingToolCall(MESSAGES, "execute_sql", {"sql": "SELECT 1"}))

    def test_unknown_tool(self, pending):
        with pytest.raises(ValidationError):
            pending.add("call_1", PendingToolCall(MESSAGES, "format_disk", {}))
        assert len(pending) == 0

    def test_iteration_and_clear(self, pending):
        pending.add("a", PendingToolCall(MESSAGES, "execute_sql", {"sql": "SELECT 1"}))
        pending.add("b", PendingToolCall(MESSAGES, "find_duplicate_data", {"tableName": "users", "columns": ["email"]}))

        assert list(pending) == ["a", "b"]

        pending.clear()
        assert len(pending) == 0

    def test_sink_is_opaque(self, pending):
        sink = object()
        pending.add("a", PendingToolCall(MESSAGES, "execute_sql", {"sql": "SELECT 1"}, sink=sink))

        assert pending.approve("a").sink is sink
