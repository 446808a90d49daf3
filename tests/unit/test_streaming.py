"""Unit tests for provider-side streaming primitives."""

import json

import pytest

from chatstream.events import TokenUsage, ToolCall
from chatstream.streaming import (
    PendingToolCall,
    StreamChunk,
    ToolCallAccumulator,
    ToolCallFragment,
)
from tests.conftest import FakeChunk, text_chunk, tool_chunk, usage_chunk


class TestToolCallAccumulator:
    def _feed(self, *fragments):
        acc = ToolCallAccumulator()
        for fragment in fragments:
            acc.feed(fragment)
        return acc.finalize()

    def test_fragments_joined_per_index(self):
        [call] = self._feed(
            ToolCallFragment(index=0, call_id="call_7", name="weather", arguments_delta='{"ci'),
            ToolCallFragment(index=0, arguments_delta='ty": "Oslo"'),
            ToolCallFragment(index=0, arguments_delta="}"),
        )
        assert call == PendingToolCall(
            id="call_7", name="weather", arguments='{"city": "Oslo"}'
        )

    def test_interleaved_calls_kept_apart(self):
        calls = self._feed(
            ToolCallFragment(index=1, call_id="call_b", name="time", arguments_delta='{"tz":'),
            ToolCallFragment(index=0, call_id="call_a", name="weather", arguments_delta="{}"),
            ToolCallFragment(index=1, arguments_delta=' "UTC"}'),
        )
        assert [c.to_event() for c in calls] == [
            ToolCall(tool_call_id="call_a", tool_name="weather"),
            ToolCall(tool_call_id="call_b", tool_name="time", args={"tz": "UTC"}),
        ]

    def test_late_fragments_do_not_clear_id_or_name(self):
        [call] = self._feed(
            ToolCallFragment(index=0, call_id="call_1", name="weather"),
            ToolCallFragment(index=0, call_id=None, name=None, arguments_delta="{}"),
        )
        assert (call.id, call.name) == ("call_1", "weather")

    def test_nothing_fed(self):
        assert self._feed() == []


class TestPendingToolCall:
    def test_empty_arguments_become_empty_args(self):
        assert PendingToolCall(id="c1", name="now").to_event().args == {}

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            PendingToolCall(id="c1", name="f", arguments='{"a":').to_event()

    def test_non_object_arguments_raise(self):
        with pytest.raises(ValueError, match="object"):
            PendingToolCall(id="c1", name="f", arguments="[1, 2]").to_event()


class TestStreamChunkFromOpenAI:
    def test_text_delta(self):
        chunk = StreamChunk.from_openai(text_chunk("Hi"))
        assert chunk.content_delta == "Hi"
        assert chunk.tool_call_fragments is None

    def test_tool_fragment(self):
        chunk = StreamChunk.from_openai(tool_chunk(0, "c1", "echo", '{"t'))
        assert chunk.tool_call_fragments == [
            ToolCallFragment(index=0, call_id="c1", name="echo", arguments_delta='{"t'),
        ]

    def test_usage_only_chunk(self):
        chunk = StreamChunk.from_openai(usage_chunk(5, 2))
        assert chunk.usage == TokenUsage(prompt_tokens=5, completion_tokens=2, total_tokens=7)
        assert chunk.content_delta is None

    def test_empty_chunk(self):
        assert StreamChunk.from_openai(FakeChunk()) == StreamChunk()
