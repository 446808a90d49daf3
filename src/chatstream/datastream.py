"""Data-stream writer: stream events to wire lines."""

from __future__ import annotations

from collections.abc import AsyncIterator

from chatstream.codec import TYPED, encode
from chatstream.events import StreamEvent


async def data_stream(
    event_stream: AsyncIterator[StreamEvent],
    encoding: str = TYPED,
) -> AsyncIterator[str]:
    """Convert a StreamEvent async iterator into newline-terminated lines."""
    async for event in event_stream:
        yield encode(event, encoding) + "\n"
