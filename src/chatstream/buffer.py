"""Newline framing for streamed response bodies."""

from __future__ import annotations


class LineBuffer:
    """Yields complete lines from arbitrarily split text chunks.

    The unterminated tail of the last chunk is kept until a later chunk
    completes it.
    """

    def __init__(self) -> None:
        self._pending = ""

    def push(self, chunk: str) -> list[str]:
        self._pending += chunk
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> str | None:
        """Return and clear the unterminated tail, if any."""
        tail, self._pending = self._pending, ""
        return tail or None
