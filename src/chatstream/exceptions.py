"""Exceptions raised by chatstream.

Malformed wire lines are not exceptions: the decoder reports them as
:class:`chatstream.codec.DecodeError` values and the stream carries on.
"""

from __future__ import annotations


class ChatStreamError(Exception):
    """Base exception for all chatstream errors."""


class StreamTransportError(ChatStreamError):
    """The transport failed while a response was being streamed.

    Fatal to the stream. Content received before the failure stays on
    the message; ``message_id`` identifies it.
    """

    def __init__(self, message: str, message_id: str | None = None):
        super().__init__(message)
        self.message_id = message_id


class StreamStateError(ChatStreamError):
    """A stream component was used outside its lifecycle."""


class StreamInProgressError(ChatStreamError):
    """A chat already has an active stream."""

    def __init__(self, chat_id: str):
        super().__init__(f"Chat {chat_id!r} already has an active stream")
        self.chat_id = chat_id


class ProviderError(ChatStreamError):
    """Unknown provider or missing credentials."""
