"""HTTP chat client: sends a conversation and streams the reply.

The client posts ``{messages, provider, model}`` to a chat endpoint that
answers with a data stream, drives a :class:`StreamDriver` over the
response body, and turns failures into a single synthetic assistant
notice. At most one stream per chat may be active at a time.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from chatstream.config import StreamSettings
from chatstream.driver import MessageStore, StreamDriver
from chatstream.exceptions import StreamInProgressError, StreamTransportError
from chatstream.finalizer import PricingFn
from chatstream.message import ChatMessage
from chatstream.provider import to_provider_messages

logger = logging.getLogger(__name__)

NETWORK_ERROR_NOTICE = "Network error. Please check your internet connection."


def describe_http_error(status_code: int, detail: str | None = None) -> str:
    """User-facing text for a failed chat request."""
    if status_code == 401:
        return "Invalid API key. Please check your API key in settings."
    if status_code == 403:
        return "API key does not have permission. Please check your API key permissions."
    if status_code == 429:
        return "Rate limit exceeded. Please try again later."
    if detail:
        return detail
    return f"Server error: {status_code}"


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None


@dataclass
class SendResult:
    """Outcome of :meth:`ChatClient.send`.

    ``message`` is the streamed assistant message, possibly partial when
    the stream failed midway. ``error`` is the synthetic notice to show
    the user, or ``None`` on success.
    """

    message: ChatMessage | None = None
    error: ChatMessage | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChatClient:
    """Sends chats to a data-stream endpoint.

    Args:
        store: Persistence collaborator that receives message updates.
        base_url: Server base URL; ignored when *http_client* is given.
        endpoint: Path of the chat endpoint.
        http_client: Preconfigured ``httpx.AsyncClient``.
        pricing: Pricing collaborator passed to each stream.
        settings: Stream settings passed to each stream.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        base_url: str = "http://localhost:5173",
        endpoint: str = "/api/chat",
        http_client: httpx.AsyncClient | None = None,
        pricing: PricingFn | None = None,
        settings: StreamSettings | None = None,
    ):
        self._store = store
        self._endpoint = endpoint
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(600.0, connect=10.0),
        )
        self._pricing = pricing
        self._settings = settings or StreamSettings()
        self._active: set[str] = set()

    async def __aenter__(self) -> ChatClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def is_streaming(self, chat_id: str) -> bool:
        return chat_id in self._active

    async def send(
        self,
        chat_id: str,
        messages: list[ChatMessage | dict],
        *,
        provider: str | None = None,
        model: str | None = None,
        message: ChatMessage | None = None,
    ) -> SendResult:
        """Send *messages* and stream the reply into *message*.

        Raises:
            StreamInProgressError: *chat_id* already has an active stream.
        """
        if chat_id in self._active:
            raise StreamInProgressError(chat_id)
        self._active.add(chat_id)
        try:
            return await self._send(messages, provider, model, message)
        finally:
            self._active.discard(chat_id)

    async def _send(
        self,
        messages: list[ChatMessage | dict],
        provider: str | None,
        model: str | None,
        message: ChatMessage | None,
    ) -> SendResult:
        driver = StreamDriver(
            self._store,
            message=message,
            provider=provider,
            model=model,
            mode="server",
            pricing=self._pricing,
            settings=self._settings,
            started_at=time.monotonic(),
        )
        payload = {
            "messages": to_provider_messages(messages),
            "provider": provider,
            "model": model,
        }
        try:
            async with self._http.stream("POST", self._endpoint, json=payload) as response:
                if response.status_code >= 400:
                    await response.aread()
                    notice = describe_http_error(
                        response.status_code, _error_detail(response)
                    )
                    logger.warning(f"Chat request rejected ({response.status_code}): {notice}")
                    return SendResult(error=ChatMessage.error_notice(notice))
                finished = await driver.run(response.aiter_bytes())
        except StreamTransportError as e:
            logger.error(f"Response stream for {e.message_id} failed: {e}")
            return SendResult(
                message=driver.message,
                error=ChatMessage.error_notice(self._settings.error_notice),
            )
        except httpx.HTTPError as e:
            logger.error(f"Chat request failed: {e}")
            return SendResult(error=ChatMessage.error_notice(NETWORK_ERROR_NOTICE))
        return SendResult(message=finished)

    async def health_check(self) -> bool:
        """Whether the server can answer chats with its own API key."""
        try:
            response = await self._http.post(
                self._endpoint,
                json={"messages": [{"role": "user", "content": "health-check"}]},
            )
        except httpx.HTTPError as e:
            logger.info(f"Health check failed: {e}")
            return False
        if response.status_code != 200:
            return False
        try:
            return bool(response.json().get("available", False))
        except ValueError:
            return False
