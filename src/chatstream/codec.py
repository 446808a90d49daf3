"""Wire codecs for the chat data stream.

Two line encodings are in circulation:

* the typed encoding, one JSON envelope per line discriminated by
  ``type``::

      {"type": "text", "value": "Hel"}
      {"type": "tool_call", "value": {"toolCallId": "a1", "toolName": "weather", "args": {}}}
      {"type": "tool_result", "value": {"toolCallId": "a1", "result": {"temp": 72}}}
      {"type": "finish", "value": {"usage": {"promptTokens": 5, "completionTokens": 2}}}

* the legacy encoding, ``<prefix>:<json>`` with a one-character prefix::

      0:"Hel"
      2:{"toolCallId": "a1", "toolName": "weather", "args": {}}
      3:{"toolCallId": "a1", "result": {"temp": 72}}
      e:{"finishReason": "stop", "usage": {...}}
      d:{"finishReason": "stop", "usage": {...}}

:func:`decode_line` tries the typed encoding first and falls back to the
legacy one. Outcomes are values: a :data:`StreamEvent`, ``None`` for lines
that carry nothing, or a :class:`DecodeError`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from chatstream.events import (
    Finish,
    FinishSource,
    StreamEvent,
    TextDelta,
    TokenUsage,
    ToolCall,
    ToolResult,
)

logger = logging.getLogger(__name__)

TYPED = "typed"
LEGACY = "legacy"

_LEGACY_LINE = re.compile(r"^([0-9a-z]):(.*)$", re.DOTALL)


@dataclass(frozen=True)
class DecodeError:
    """A line that neither encoding could decode."""

    line: str
    reason: str


# ---------------------------------------------------------------------------
# Payload schemas
# ---------------------------------------------------------------------------

class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _UsagePayload(_Payload):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class _ToolCallPayload(_Payload):
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class _ToolResultPayload(_Payload):
    tool_call_id: str
    result: Any = None


class _FinishPayload(_Payload):
    usage: _UsagePayload | None = None


class _TextEnvelope(BaseModel):
    type: Literal["text"]
    value: str


class _ToolCallEnvelope(BaseModel):
    type: Literal["tool_call"]
    value: _ToolCallPayload


class _ToolResultEnvelope(BaseModel):
    type: Literal["tool_result"]
    value: _ToolResultPayload


class _FinishEnvelope(BaseModel):
    type: Literal["finish"]
    value: _FinishPayload = Field(default_factory=_FinishPayload)


_ENVELOPE = TypeAdapter(
    Annotated[
        Union[
            _TextEnvelope,
            _ToolCallEnvelope,
            _ToolResultEnvelope,
            _FinishEnvelope,
        ],
        Field(discriminator="type"),
    ]
)
_TEXT = TypeAdapter(str)
_TOOL_CALL = TypeAdapter(_ToolCallPayload)
_TOOL_RESULT = TypeAdapter(_ToolResultPayload)
_FINISH = TypeAdapter(_FinishPayload)


def _usage(payload: _UsagePayload | None) -> TokenUsage | None:
    if payload is None:
        return None
    usage = TokenUsage(
        prompt_tokens=payload.prompt_tokens,
        completion_tokens=payload.completion_tokens,
        total_tokens=payload.total_tokens,
    )
    return None if usage.is_empty() else usage


def _tool_call(payload: _ToolCallPayload) -> ToolCall:
    return ToolCall(
        tool_call_id=payload.tool_call_id,
        tool_name=payload.tool_name,
        args=payload.args,
    )


def _tool_result(payload: _ToolResultPayload) -> ToolResult:
    return ToolResult(tool_call_id=payload.tool_call_id, result=payload.result)


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

def decode_typed(line: str) -> StreamEvent | DecodeError:
    """Decode a typed-encoding envelope."""
    try:
        envelope = _ENVELOPE.validate_json(line)
    except ValidationError as e:
        return DecodeError(line=line, reason=f"typed: {e.error_count()} error(s)")

    if isinstance(envelope, _TextEnvelope):
        return TextDelta(value=envelope.value)
    if isinstance(envelope, _ToolCallEnvelope):
        return _tool_call(envelope.value)
    if isinstance(envelope, _ToolResultEnvelope):
        return _tool_result(envelope.value)
    return Finish(usage=_usage(envelope.value.usage), source=FinishSource.STEP)


def decode_legacy(line: str) -> StreamEvent | DecodeError | None:
    """Decode a legacy ``<prefix>:<json>`` line.

    Returns ``None`` for prefixes that carry nothing this client uses.
    """
    match = _LEGACY_LINE.match(line)
    if match is None:
        return DecodeError(line=line, reason="legacy: no prefix")
    prefix, payload = match.groups()

    try:
        if prefix == "0":
            return TextDelta(value=_TEXT.validate_json(payload))
        if prefix == "2":
            return _tool_call(_TOOL_CALL.validate_json(payload))
        if prefix == "3":
            return _tool_result(_TOOL_RESULT.validate_json(payload))
        if prefix in ("e", "d"):
            source = FinishSource.STEP if prefix == "e" else FinishSource.MESSAGE
            finish = _FINISH.validate_json(payload)
            return Finish(usage=_usage(finish.usage), source=source)
    except ValidationError as e:
        return DecodeError(
            line=line, reason=f"legacy {prefix!r}: {e.error_count()} error(s)"
        )
    return None


def decode_line(line: str) -> StreamEvent | DecodeError | None:
    """Decode one wire line, typed encoding first, then legacy."""
    text = line.strip()
    if not text:
        return None
    typed = decode_typed(text)
    if not isinstance(typed, DecodeError):
        return typed
    legacy = decode_legacy(text)
    if isinstance(legacy, DecodeError):
        return DecodeError(line=text, reason=f"{typed.reason}; {legacy.reason}")
    return legacy


class PartDecoder:
    """Decodes wire lines into events, skipping lines it cannot read."""

    def __init__(self) -> None:
        self.error_count = 0

    def decode(self, line: str) -> StreamEvent | None:
        outcome = decode_line(line)
        if isinstance(outcome, DecodeError):
            self.error_count += 1
            logger.warning(
                f"Skipping undecodable stream line ({outcome.reason}): "
                f"{outcome.line!r}"
            )
            return None
        return outcome


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

def _usage_dict(usage: TokenUsage | None) -> dict[str, int] | None:
    if usage is None:
        return None
    fields = {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
        "totalTokens": usage.total_tokens,
    }
    return {k: v for k, v in fields.items() if v is not None}


def _value(event: StreamEvent) -> tuple[str, Any]:
    if isinstance(event, TextDelta):
        return "text", event.value
    if isinstance(event, ToolCall):
        return "tool_call", {
            "toolCallId": event.tool_call_id,
            "toolName": event.tool_name,
            "args": event.args,
        }
    if isinstance(event, ToolResult):
        return "tool_result", {
            "toolCallId": event.tool_call_id,
            "result": event.result,
        }
    if isinstance(event, Finish):
        usage = _usage_dict(event.usage)
        return "finish", {} if usage is None else {"usage": usage}
    raise TypeError(f"Not a stream event: {event!r}")


_LEGACY_PREFIX = {"text": "0", "tool_call": "2", "tool_result": "3"}


def encode_typed(event: StreamEvent) -> str:
    """Encode *event* as a typed envelope (no trailing newline)."""
    kind, value = _value(event)
    return json.dumps({"type": kind, "value": value}, separators=(",", ":"))


def encode_legacy(event: StreamEvent) -> str:
    """Encode *event* as a legacy prefixed line (no trailing newline)."""
    kind, value = _value(event)
    if kind == "finish":
        prefix = "d" if event.source is FinishSource.MESSAGE else "e"
    else:
        prefix = _LEGACY_PREFIX[kind]
    return f"{prefix}:{json.dumps(value, separators=(',', ':'))}"


def encode(event: StreamEvent, encoding: str = TYPED) -> str:
    if encoding == TYPED:
        return encode_typed(event)
    if encoding == LEGACY:
        return encode_legacy(event)
    raise ValueError(f"Unknown encoding: {encoding!r}")
