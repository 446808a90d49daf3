"""Provider-side streaming primitives.

OpenAI-compatible providers stream :class:`StreamChunk` deltas. The
:class:`ToolCallAccumulator` reassembles tool calls whose arguments
arrive in fragments across multiple chunks before they are announced on
the data stream.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from chatstream.events import TokenUsage, ToolCall


@dataclass
class ToolCallFragment:
    """A fragment of a tool call from a streaming chunk."""

    index: int
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class StreamChunk:
    """Normalised streaming chunk from any OpenAI-compatible provider."""

    content_delta: str | None = None
    tool_call_fragments: list[ToolCallFragment] | None = None
    finish_reason: str | None = None
    usage: TokenUsage | None = None

    @classmethod
    def from_openai(cls, chunk: Any) -> StreamChunk:
        """Normalise a ``ChatCompletionChunk``."""
        usage = None
        if getattr(chunk, "usage", None) is not None:
            usage = TokenUsage(
                prompt_tokens=chunk.usage.prompt_tokens,
                completion_tokens=chunk.usage.completion_tokens,
                total_tokens=chunk.usage.total_tokens,
            )
        if not chunk.choices:
            return cls(usage=usage)

        choice = chunk.choices[0]
        delta = choice.delta
        fragments = None
        if getattr(delta, "tool_calls", None):
            fragments = [
                ToolCallFragment(
                    index=tc.index,
                    call_id=tc.id,
                    name=tc.function.name if tc.function else None,
                    arguments_delta=tc.function.arguments if tc.function else None,
                )
                for tc in delta.tool_calls
            ]
        return cls(
            content_delta=delta.content,
            tool_call_fragments=fragments,
            finish_reason=choice.finish_reason,
            usage=usage,
        )


@dataclass
class PendingToolCall:
    """A tool call being assembled from fragments."""

    id: str = ""
    name: str = ""
    arguments: str = ""

    def to_event(self) -> ToolCall:
        """Parse the accumulated arguments into a :class:`ToolCall`.

        Raises:
            json.JSONDecodeError: The arguments are not valid JSON.
            ValueError: The arguments are JSON but not an object.
        """
        args = json.loads(self.arguments) if self.arguments.strip() else {}
        if not isinstance(args, dict):
            raise ValueError(f"Tool arguments must be an object, got {type(args).__name__}")
        return ToolCall(tool_call_id=self.id, tool_name=self.name, args=args)


class ToolCallAccumulator:
    """Reassembles tool calls keyed by their position in the response."""

    def __init__(self) -> None:
        self._pending: dict[int, PendingToolCall] = {}

    def feed(self, fragment: ToolCallFragment) -> None:
        call = self._pending.setdefault(fragment.index, PendingToolCall())
        # id and name arrive once, arguments arrive in pieces
        call.id = fragment.call_id or call.id
        call.name = fragment.name or call.name
        call.arguments += fragment.arguments_delta or ""

    def finalize(self) -> list[PendingToolCall]:
        return [self._pending[i] for i in sorted(self._pending)]
