"""Drives one response stream from raw chunks to a finalized message.

A :class:`StreamDriver` owns exactly one draft :class:`ChatMessage` and one
:class:`LineBuffer`. Chunks are read sequentially; everything between two
reads (framing, decoding, applying, persisting) runs without suspending, so
events are applied strictly in arrival order.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator
from enum import Enum
from typing import Any, Protocol

from chatstream.accumulator import MessageAccumulator
from chatstream.buffer import LineBuffer
from chatstream.codec import PartDecoder
from chatstream.config import StreamSettings
from chatstream.exceptions import StreamStateError, StreamTransportError
from chatstream.finalizer import PricingFn, UsageFinalizer
from chatstream.instrumentation import record_error, record_usage, stream_span
from chatstream.message import (
    ApiUsageMetadata,
    ChatMessage,
    MessageRole,
    MessageUpdate,
)

logger = logging.getLogger(__name__)

Chunk = bytes | bytearray | memoryview | str


class MessageStore(Protocol):
    """Persistence collaborator.

    Receives a snapshot after every decoded event and once more when usage
    is finalized. Content in successive updates only grows.
    """

    def update_message(self, message_id: str, update: MessageUpdate) -> None:
        ...


class StreamState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


async def reader_chunks(reader: Any) -> AsyncIterator[Chunk]:
    """Adapt a ``read() -> (done, value)`` style reader to an async iterator.

    ``read()`` may return a ``(done, value)`` tuple or a mapping with
    ``done`` and ``value`` keys. ``release_lock()`` is called on exit when
    the reader has one.
    """
    try:
        while True:
            result = await reader.read()
            if isinstance(result, dict):
                done, value = result.get("done", False), result.get("value")
            else:
                done, value = result
            if done:
                return
            if value:
                yield value
    finally:
        release = getattr(reader, "release_lock", None)
        if release is not None:
            release()


async def _release(chunks: AsyncIterable[Chunk], iterator: AsyncIterator[Chunk]) -> None:
    resources = [iterator] if iterator is chunks else [iterator, chunks]
    for resource in resources:
        aclose = getattr(resource, "aclose", None)
        if aclose is not None:
            await aclose()


class StreamDriver:
    """Consumes one provider response into one assistant message.

    Lifecycle: ``IDLE -> STREAMING -> FINALIZING -> DONE``, or ``ERRORED``
    when the transport fails or the caller cancels. A driver runs once.

    Args:
        store: Persistence collaborator receiving snapshots.
        message: Draft to fill. A fresh assistant message is created when
            omitted.
        provider: Provider id recorded in the usage metadata and used for
            pricing.
        model: Model id recorded in the usage metadata and used for
            pricing.
        mode: ``"server"`` or ``"client"``, recorded in the metadata.
        pricing: Pricing collaborator; defaults to the built-in table.
        settings: Stream behaviour settings.
        started_at: ``time.monotonic()`` reading when the request was sent.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        message: ChatMessage | None = None,
        provider: str | None = None,
        model: str | None = None,
        mode: str | None = None,
        pricing: PricingFn | None = None,
        settings: StreamSettings | None = None,
        started_at: float | None = None,
    ):
        self.provider = provider
        self.model = model
        self._store = store
        self._settings = settings or StreamSettings()
        self._message = message or ChatMessage(role=MessageRole.ASSISTANT)
        self._buffer = LineBuffer()
        self._decoder = PartDecoder()
        self._accumulator = MessageAccumulator(self._message)
        self._finalizer = UsageFinalizer(
            ApiUsageMetadata(provider=provider, model=model, mode=mode),
            pricing=pricing,
            started_at=started_at,
        )
        self._state = StreamState.IDLE

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def message_id(self) -> str:
        return self._message.id

    @property
    def message(self) -> ChatMessage:
        """Snapshot of the draft."""
        return self._message.model_copy(deep=True)

    @property
    def decode_errors(self) -> int:
        return self._decoder.error_count

    async def run(
        self,
        chunks: AsyncIterable[Chunk],
        *,
        transport_metadata: ApiUsageMetadata | None = None,
    ) -> ChatMessage:
        """Read *chunks* to completion and return the finalized message.

        The transport is released before usage is finalized, on success
        and on failure alike.

        Raises:
            StreamTransportError: Reading from *chunks* failed, or the
                store or pricing collaborator failed. Partial content is
                kept, and usage has been finalized with whatever was
                captured unless finalizing itself failed.
            StreamStateError: The driver has already run.
        """
        if self._state is not StreamState.IDLE:
            raise StreamStateError(f"Stream already {self._state.value}")

        async with stream_span(self.provider, self.model, self.message_id) as span:
            iterator = aiter(chunks)
            failure = None
            try:
                await self._consume(iterator)
            except asyncio.CancelledError:
                self._state = StreamState.ERRORED
                logger.info(f"Stream for message {self.message_id} cancelled")
                raise
            except Exception as e:
                failure = e
            finally:
                await _release(chunks, iterator)

            if failure is not None:
                self._mark_failed(span, failure)
                self._finalize_after_error(span, transport_metadata)
                if isinstance(failure, StreamTransportError):
                    raise failure
                raise StreamTransportError(
                    f"Stream failed: {failure}", message_id=self.message_id
                ) from failure

            self._state = StreamState.FINALIZING
            try:
                self._finalize(span, transport_metadata)
            except Exception as e:
                self._mark_failed(span, e)
                raise StreamTransportError(
                    f"Finalizing stream failed: {e}", message_id=self.message_id
                ) from e
            self._state = StreamState.DONE

        return self.message

    def _mark_failed(self, span, error: Exception) -> None:
        self._state = StreamState.ERRORED
        logger.error(f"Stream for message {self.message_id} failed: {error}")
        record_error(span, error)

    async def _consume(self, iterator: AsyncIterator[Chunk]) -> None:
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            try:
                chunk = await anext(iterator)
            except StopAsyncIteration:
                break
            except Exception as e:
                raise StreamTransportError(
                    f"Reading response stream failed: {e}",
                    message_id=self.message_id,
                ) from e

            if self._state is StreamState.IDLE:
                self._state = StreamState.STREAMING
            if not isinstance(chunk, str):
                chunk = text_decoder.decode(bytes(chunk))
            for line in self._buffer.push(chunk):
                self._handle_line(line)

        tail = self._buffer.push(text_decoder.decode(b"", final=True))
        for line in tail:
            self._handle_line(line)
        if self._settings.flush_trailing_line:
            last = self._buffer.flush()
            if last is not None:
                self._handle_line(last)

    def _handle_line(self, line: str) -> None:
        if self._settings.log_raw_lines:
            logger.debug(f"raw stream line: {line!r}")
        event = self._decoder.decode(line)
        if event is None:
            return
        logger.debug(f"Applying {type(event).__name__} to {self.message_id}")
        update = self._accumulator.apply_event(event)
        self._store.update_message(self.message_id, update)

    def _finalize(self, span, transport_metadata: ApiUsageMetadata | None) -> None:
        usage = self._accumulator.usage
        update = self._finalizer.finalize(
            usage,
            self._accumulator.current_update(),
            transport_metadata=transport_metadata,
        )
        self._message.api_metadata = update.api_metadata.model_copy(deep=True)
        record_usage(span, usage, self.decode_errors)
        self._store.update_message(self.message_id, update)

    def _finalize_after_error(
        self, span, transport_metadata: ApiUsageMetadata | None
    ) -> None:
        if self._finalizer.finalized:
            return
        try:
            self._finalize(span, transport_metadata)
        except Exception:
            logger.exception(
                f"Could not finalize usage for failed stream {self.message_id}"
            )
