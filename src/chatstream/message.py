import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    return int(time.time() * 1000)


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class ToolInvocationState(Enum):
    PENDING = "pending"
    COMPLETE = "complete"


class _WireModel(BaseModel):
    """Base for persisted models; serializes with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Cost(_WireModel):
    input_cost: float
    output_cost: float
    total_cost: float
    currency: str = "USD"


class ApiUsageMetadata(_WireModel):
    provider: str | None = None
    model: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    cost: Cost | None = None
    response_time: int | None = None
    timestamp: int = Field(default_factory=now_ms)
    mode: str | None = None


class ToolInvocation(_WireModel):
    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    state: ToolInvocationState = ToolInvocationState.PENDING

    @field_serializer("state")
    def serialize_state(self, state: ToolInvocationState, _info) -> str:
        return state.value


class MessageUpdate(_WireModel):
    """A partial message handed to persistence.

    Fields left as ``None`` are not part of the update.
    """

    content: str | None = None
    tool_invocations: list[ToolInvocation] | None = None
    api_metadata: ApiUsageMetadata | None = None

    def to_partial(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatMessage(_WireModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: MessageRole
    content: str = ""
    timestamp: int = Field(default_factory=now_ms)
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    api_metadata: ApiUsageMetadata | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def apply(self, update: MessageUpdate) -> "ChatMessage":
        """Return a copy of this message with *update* merged on top."""
        changes = {
            name: getattr(update, name)
            for name in ("content", "tool_invocations", "api_metadata")
            if getattr(update, name) is not None
        }
        return self.model_copy(update=changes, deep=True)

    @classmethod
    def error_notice(cls, text: str) -> "ChatMessage":
        """Synthetic assistant message reporting a failed response."""
        return cls(role=MessageRole.ASSISTANT, content=text)
