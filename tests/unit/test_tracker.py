"""Unit tests for tool call / result pairing."""

import logging

from chatstream.events import ToolCall, ToolResult
from chatstream.message import ToolInvocationState
from chatstream.tracker import ToolCallTracker


def _call(call_id="a1", name="weather", **args):
    return ToolCall(tool_call_id=call_id, tool_name=name, args=args)


class TestToolCallTracker:
    def test_call_creates_pending_invocation(self):
        tracker = ToolCallTracker()
        tracker.on_call(_call(city="Oslo"))

        [inv] = tracker.snapshot()
        assert inv.tool_call_id == "a1"
        assert inv.tool_name == "weather"
        assert inv.args == {"city": "Oslo"}
        assert inv.state is ToolInvocationState.PENDING
        assert inv.result is None

    def test_result_completes_invocation(self):
        tracker = ToolCallTracker()
        tracker.on_call(_call())
        assert tracker.on_result(ToolResult(tool_call_id="a1", result={"temp": 72}))

        [inv] = tracker.snapshot()
        assert inv.state is ToolInvocationState.COMPLETE
        assert inv.result == {"temp": 72}

    def test_result_for_unknown_id_is_dropped(self, caplog):
        tracker = ToolCallTracker()
        with caplog.at_level(logging.WARNING, logger="chatstream.tracker"):
            applied = tracker.on_result(ToolResult(tool_call_id="missing", result={}))

        assert applied is False
        assert len(tracker) == 0
        assert "missing" in caplog.text

    def test_result_before_call_is_dropped(self):
        tracker = ToolCallTracker()
        tracker.on_result(ToolResult(tool_call_id="a1", result="early"))
        tracker.on_call(_call())

        [inv] = tracker.snapshot()
        assert inv.state is ToolInvocationState.PENDING
        assert inv.result is None

    def test_duplicate_result_is_idempotent(self):
        once = ToolCallTracker()
        once.on_call(_call())
        once.on_result(ToolResult(tool_call_id="a1", result={"temp": 72}))

        twice = ToolCallTracker()
        twice.on_call(_call())
        twice.on_result(ToolResult(tool_call_id="a1", result={"temp": 72}))
        twice.on_result(ToolResult(tool_call_id="a1", result={"temp": 72}))

        assert once.snapshot() == twice.snapshot()

    def test_later_result_wins(self):
        tracker = ToolCallTracker()
        tracker.on_call(_call())
        tracker.on_result(ToolResult(tool_call_id="a1", result=1))
        tracker.on_result(ToolResult(tool_call_id="a1", result=2))

        [inv] = tracker.snapshot()
        assert inv.result == 2
        assert inv.state is ToolInvocationState.COMPLETE

    def test_repeated_call_id_replaces_in_place(self, caplog):
        tracker = ToolCallTracker()
        tracker.on_call(_call("a1", "first"))
        tracker.on_call(_call("b2", "other"))
        with caplog.at_level(logging.WARNING, logger="chatstream.tracker"):
            tracker.on_call(_call("a1", "second"))

        names = [inv.tool_name for inv in tracker.snapshot()]
        assert names == ["second", "other"]
        assert "announced twice" in caplog.text

    def test_snapshot_order_follows_announcements(self):
        tracker = ToolCallTracker()
        for call_id in ["c", "a", "b"]:
            tracker.on_call(_call(call_id))
        assert [i.tool_call_id for i in tracker.snapshot()] == ["c", "a", "b"]

    def test_snapshot_is_detached(self):
        tracker = ToolCallTracker()
        tracker.on_call(_call(city="Oslo"))
        snap = tracker.snapshot()
        snap[0].args["city"] = "Bergen"
        snap[0].state = ToolInvocationState.COMPLETE

        [inv] = tracker.snapshot()
        assert inv.args == {"city": "Oslo"}
        assert inv.state is ToolInvocationState.PENDING
