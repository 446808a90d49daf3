"""Pairs tool calls with their results as they stream in."""

from __future__ import annotations

import logging

from chatstream.events import ToolCall, ToolResult
from chatstream.message import ToolInvocation, ToolInvocationState

logger = logging.getLogger(__name__)


class ToolCallTracker:
    """Ordered map of tool-call id to :class:`ToolInvocation`.

    Results for ids that were never announced are dropped. Applying the
    same result twice leaves the invocation as if applied once.
    """

    def __init__(self) -> None:
        self._invocations: dict[str, ToolInvocation] = {}

    def __len__(self) -> int:
        return len(self._invocations)

    def on_call(self, call: ToolCall) -> None:
        if call.tool_call_id in self._invocations:
            logger.warning(
                f"Tool call id {call.tool_call_id!r} announced twice; "
                f"replacing earlier {self._invocations[call.tool_call_id].tool_name!r} "
                f"with {call.tool_name!r}"
            )
        self._invocations[call.tool_call_id] = ToolInvocation(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            args=dict(call.args),
        )

    def on_result(self, result: ToolResult) -> bool:
        invocation = self._invocations.get(result.tool_call_id)
        if invocation is None:
            logger.warning(
                f"Dropping result for unknown tool call {result.tool_call_id!r}"
            )
            return False
        invocation.result = result.result
        invocation.state = ToolInvocationState.COMPLETE
        return True

    def snapshot(self) -> list[ToolInvocation]:
        """Deep copies of the invocations in announcement order."""
        return [inv.model_copy(deep=True) for inv in self._invocations.values()]
