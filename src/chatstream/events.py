"""Stream events decoded from a provider response.

Every successfully decoded wire line becomes exactly one of
:class:`TextDelta`, :class:`ToolCall`, :class:`ToolResult` or
:class:`Finish`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the provider.

    Any subset may be present. Missing counts stay ``None`` rather than
    defaulting to zero.
    """

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    def is_empty(self) -> bool:
        return (
            self.prompt_tokens is None
            and self.completion_tokens is None
            and self.total_tokens is None
        )


class FinishSource(Enum):
    """Which finish record a :class:`Finish` came from.

    ``STEP`` is the typed ``finish`` envelope or the legacy ``e:`` line,
    ``MESSAGE`` is the legacy ``d:`` line.
    """

    STEP = "step"
    MESSAGE = "message"


@dataclass(frozen=True)
class TextDelta:
    """A fragment of assistant text."""

    value: str = ""


@dataclass(frozen=True)
class ToolCall:
    """The provider announced a tool invocation."""

    tool_call_id: str = ""
    tool_name: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """The result for a previously announced tool call."""

    tool_call_id: str = ""
    result: Any = None


@dataclass(frozen=True)
class Finish:
    """Terminal record, optionally carrying token usage."""

    usage: TokenUsage | None = None
    source: FinishSource = FinishSource.STEP


StreamEvent = Union[TextDelta, ToolCall, ToolResult, Finish]
