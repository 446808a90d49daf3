"""Streaming decoder and incremental message assembler for LLM chat."""

from chatstream.accumulator import MessageAccumulator
from chatstream.buffer import LineBuffer
from chatstream.client import ChatClient, SendResult
from chatstream.codec import DecodeError, PartDecoder, decode_line, encode
from chatstream.config import StreamSettings, configure_logging
from chatstream.driver import MessageStore, StreamDriver, StreamState, reader_chunks
from chatstream.events import (
    Finish,
    FinishSource,
    StreamEvent,
    TextDelta,
    TokenUsage,
    ToolCall,
    ToolResult,
)
from chatstream.exceptions import (
    ChatStreamError,
    ProviderError,
    StreamInProgressError,
    StreamStateError,
    StreamTransportError,
)
from chatstream.finalizer import UsageFinalizer
from chatstream.instrumentation import instrument, uninstrument
from chatstream.message import (
    ApiUsageMetadata,
    ChatMessage,
    Cost,
    MessageRole,
    MessageUpdate,
    ToolInvocation,
    ToolInvocationState,
)
from chatstream.pricing import PricingTable, calculate_cost, format_cost
from chatstream.provider import OpenAICompatibleProvider, create_provider
from chatstream.tools import Tool, tool
from chatstream.tracker import ToolCallTracker

__version__ = "0.1.0"

__all__ = [
    "ApiUsageMetadata",
    "ChatClient",
    "ChatMessage",
    "ChatStreamError",
    "Cost",
    "DecodeError",
    "Finish",
    "FinishSource",
    "LineBuffer",
    "MessageAccumulator",
    "MessageRole",
    "MessageStore",
    "MessageUpdate",
    "OpenAICompatibleProvider",
    "PartDecoder",
    "PricingTable",
    "ProviderError",
    "SendResult",
    "StreamDriver",
    "StreamEvent",
    "StreamInProgressError",
    "StreamSettings",
    "StreamState",
    "StreamStateError",
    "StreamTransportError",
    "TextDelta",
    "TokenUsage",
    "Tool",
    "ToolCall",
    "ToolCallTracker",
    "ToolInvocation",
    "ToolInvocationState",
    "ToolResult",
    "UsageFinalizer",
    "calculate_cost",
    "configure_logging",
    "create_provider",
    "decode_line",
    "encode",
    "format_cost",
    "instrument",
    "reader_chunks",
    "tool",
    "uninstrument",
]
