"""OpenAI-compatible providers that produce the chat data stream.

Groq, OpenAI and Anthropic all expose OpenAI-compatible chat completion
endpoints, so one provider class covers them; :data:`chatstream.config.PROVIDERS`
holds the per-provider base URL and API-key variable.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from chatstream.codec import LEGACY, TYPED, PartDecoder
from chatstream.config import ProviderSettings, get_provider_settings
from chatstream.datastream import data_stream
from chatstream.events import Finish, StreamEvent, TextDelta, ToolCall, ToolResult
from chatstream.instrumentation import tool_span
from chatstream.message import ChatMessage
from chatstream.streaming import StreamChunk, ToolCallAccumulator
from chatstream.tools import Tool

logger = logging.getLogger(__name__)

TITLE_PROMPT = (
    "Generate a concise, descriptive title (3-6 words) for this conversation. "
    "Return only the title, no quotes or extra text."
)


def to_provider_messages(messages: list[ChatMessage | dict]) -> list[dict]:
    """Reduce chat messages to the ``{role, content}`` shape providers accept."""
    converted = []
    for m in messages:
        if isinstance(m, ChatMessage):
            converted.append({"role": m.role.value, "content": m.content})
        else:
            converted.append({"role": m["role"], "content": m["content"]})
    return converted


class OpenAICompatibleProvider:
    """Streams chat completions and re-emits them as stream events.

    Args:
        settings: Provider endpoint configuration.
        api_key: API key; read from ``settings.api_key_env`` when omitted.
        client: Preconfigured client, mainly for tests.
    """

    def __init__(
        self,
        settings: ProviderSettings,
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.settings = settings
        if client is None:
            client = AsyncOpenAI(
                base_url=settings.base_url,
                api_key=api_key or settings.api_key(),
                max_retries=5,
                timeout=600.0,
            )
        self.client = client

    @property
    def id(self) -> str:
        return self.settings.id

    async def stream_events(
        self,
        model: str,
        messages: list[ChatMessage | dict],
        tools: list[Tool] | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream one completion as text, tool-call, tool-result and finish events.

        Tool calls are announced once their arguments are complete.
        Registered tools are executed and their results emitted right
        after the call; unknown tools produce an error result.
        """
        registry = {t.name: t for t in tools or []}
        kwargs: dict[str, Any] = {}
        if registry:
            kwargs["tools"] = [t.model_dump() for t in registry.values()]
            kwargs["tool_choice"] = "auto"
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        response = await self.client.chat.completions.create(
            model=model,
            messages=to_provider_messages(messages),
            temperature=temperature,
            stream=True,
            stream_options={"include_usage": True},
            **kwargs,
        )

        acc = ToolCallAccumulator()
        usage = None
        async for raw in response:
            chunk = StreamChunk.from_openai(raw)
            if chunk.content_delta:
                yield TextDelta(value=chunk.content_delta)
            for fragment in chunk.tool_call_fragments or []:
                acc.feed(fragment)
            if chunk.usage is not None:
                usage = chunk.usage

        for pending in acc.finalize():
            try:
                call = pending.to_event()
            except ValueError as e:
                logger.warning(f"Invalid arguments for {pending.name}: {e}")
                yield ToolCall(tool_call_id=pending.id, tool_name=pending.name)
                yield ToolResult(
                    tool_call_id=pending.id,
                    result={"success": False, "error": f"Invalid arguments: {e}"},
                )
                continue

            yield call
            yield ToolResult(
                tool_call_id=call.tool_call_id,
                result=await self._run_tool(call, registry),
            )

        yield Finish(usage=usage)

    async def _run_tool(self, call: ToolCall, registry: dict[str, Tool]) -> dict:
        tool_obj = registry.get(call.tool_name)
        if tool_obj is None:
            logger.warning(f"Tool not found: {call.tool_name}")
            return {"success": False, "error": f"Tool '{call.tool_name}' not found"}
        logger.info(f"Calling {call.tool_name} with {call.args}")
        async with tool_span(call.tool_name, call.tool_call_id):
            return await tool_obj.invoke(call.args)

    def stream_data(
        self,
        model: str,
        messages: list[ChatMessage | dict],
        tools: list[Tool] | None = None,
        encoding: str = TYPED,
        **kwargs,
    ) -> AsyncIterator[str]:
        """Stream one completion as wire lines in *encoding*."""
        return data_stream(
            self.stream_events(model, messages, tools=tools, **kwargs),
            encoding,
        )

    async def generate_title(
        self, model: str, user_message: str, assistant_message: str
    ) -> str | None:
        """Ask the model for a short conversation title."""
        messages = [
            {"role": "system", "content": TITLE_PROMPT},
            {
                "role": "user",
                "content": f"User: {user_message}\n\nAssistant: {assistant_message}",
            },
        ]
        decoder = PartDecoder()
        title = ""
        async for line in self.stream_data(
            model, messages, encoding=LEGACY, temperature=0.3, max_tokens=50,
        ):
            event = decoder.decode(line)
            if isinstance(event, TextDelta):
                title += event.value
        return title.strip() or None


def create_provider(
    provider_id: str, api_key: str | None = None
) -> OpenAICompatibleProvider:
    """Build the provider registered under *provider_id*."""
    return OpenAICompatibleProvider(get_provider_settings(provider_id), api_key=api_key)
