"""Incremental assembly of the assistant draft message."""

from __future__ import annotations

from chatstream.events import (
    Finish,
    FinishSource,
    StreamEvent,
    TextDelta,
    TokenUsage,
    ToolCall,
    ToolResult,
)
from chatstream.message import ChatMessage, MessageUpdate, ToolInvocation
from chatstream.tracker import ToolCallTracker


class MessageAccumulator:
    """Owns the in-progress assistant message.

    ``content`` only grows. Usage from finish events is held here and
    written to the message later by the finalizer. Step finishes (typed
    ``finish`` and legacy ``e:``) take precedence over message finishes
    (legacy ``d:``); within one source the last usage seen wins.

    Args:
        message: The draft to mutate. The accumulator is its only writer
            for the lifetime of the stream.
    """

    def __init__(self, message: ChatMessage):
        self._message = message
        self._tracker = ToolCallTracker()
        self._usage: dict[FinishSource, TokenUsage] = {}
        self.finished = False

    @property
    def message_id(self) -> str:
        return self._message.id

    @property
    def content(self) -> str:
        return self._message.content

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [inv.model_copy(deep=True) for inv in self._message.tool_invocations]

    @property
    def usage(self) -> TokenUsage | None:
        step = self._usage.get(FinishSource.STEP)
        if step is not None:
            return step
        return self._usage.get(FinishSource.MESSAGE)

    def apply_event(self, event: StreamEvent) -> MessageUpdate:
        if isinstance(event, TextDelta):
            self._message.content += event.value
        elif isinstance(event, ToolCall):
            self._tracker.on_call(event)
            self._message.tool_invocations = self._tracker.snapshot()
        elif isinstance(event, ToolResult):
            if self._tracker.on_result(event):
                self._message.tool_invocations = self._tracker.snapshot()
        elif isinstance(event, Finish):
            self.finished = True
            if event.usage is not None:
                self._usage[event.source] = event.usage
        else:
            raise TypeError(f"Not a stream event: {event!r}")
        return self.current_update()

    def current_update(self) -> MessageUpdate:
        """Snapshot of content and tool invocations."""
        return MessageUpdate(
            content=self._message.content,
            tool_invocations=[
                inv.model_copy(deep=True)
                for inv in self._message.tool_invocations
            ],
        )
