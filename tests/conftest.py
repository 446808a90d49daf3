from dataclasses import dataclass, field

import pytest

from chatstream.message import ChatMessage, MessageRole, MessageUpdate


# ---------------------------------------------------------------------------
# Persistence double
# ---------------------------------------------------------------------------

class RecordingStore:
    """MessageStore that records every update and merges it like a chat store."""

    def __init__(self):
        self.updates: list[tuple[str, MessageUpdate]] = []
        self.messages: dict[str, ChatMessage] = {}

    def update_message(self, message_id, update):
        self.updates.append((message_id, update))
        current = self.messages.get(
            message_id, ChatMessage(id=message_id, role=MessageRole.ASSISTANT)
        )
        self.messages[message_id] = current.apply(update)

    @property
    def final(self) -> MessageUpdate:
        return self.updates[-1][1]

    def metadata_updates(self) -> list[MessageUpdate]:
        return [u for _, u in self.updates if u.api_metadata is not None]


# ---------------------------------------------------------------------------
# Transport doubles
# ---------------------------------------------------------------------------

class FakeChunks:
    """Async iterator over fixed chunks that can fail after a given index
    and records whether it was closed."""

    def __init__(self, chunks, fail_after: int | None = None, error=None):
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self._error = error or ConnectionError("connection reset")
        self._index = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._fail_after is not None and self._index >= self._fail_after:
            raise self._error
        if self._index >= len(self._chunks):
            raise StopAsyncIteration
        chunk = self._chunks[self._index]
        self._index += 1
        return chunk

    async def aclose(self):
        self.closed = True


class FakeReader:
    """``read() -> {done, value}`` reader in the shape of a browser stream."""

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.released = False

    async def read(self):
        if not self._chunks:
            return {"done": True, "value": None}
        return {"done": False, "value": self._chunks.pop(0)}

    def release_lock(self):
        self.released = True


def lines_to_chunks(lines: list[str], size: int) -> list[bytes]:
    """Join *lines* into one body and cut it into *size*-byte chunks."""
    body = "".join(f"{line}\n" for line in lines).encode()
    return [body[i:i + size] for i in range(0, len(body), size)]


# ---------------------------------------------------------------------------
# Fake OpenAI streaming objects (mirrors ChatCompletionChunk shape)
# ---------------------------------------------------------------------------

@dataclass
class FakeFunctionDelta:
    name: str | None = None
    arguments: str | None = None


@dataclass
class FakeToolCallDelta:
    index: int
    id: str | None = None
    function: FakeFunctionDelta | None = None


@dataclass
class FakeDelta:
    content: str | None = None
    tool_calls: list[FakeToolCallDelta] | None = None


@dataclass
class FakeChoice:
    delta: FakeDelta = field(default_factory=FakeDelta)
    finish_reason: str | None = None


@dataclass
class FakeUsage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class FakeChunk:
    choices: list[FakeChoice] = field(default_factory=list)
    usage: FakeUsage | None = None


def text_chunk(content: str) -> FakeChunk:
    return FakeChunk(choices=[FakeChoice(delta=FakeDelta(content=content))])


def tool_chunk(index, call_id=None, name=None, arguments=None) -> FakeChunk:
    return FakeChunk(choices=[FakeChoice(delta=FakeDelta(tool_calls=[
        FakeToolCallDelta(
            index=index, id=call_id,
            function=FakeFunctionDelta(name=name, arguments=arguments),
        )
    ]))])


def usage_chunk(prompt, completion) -> FakeChunk:
    return FakeChunk(usage=FakeUsage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    ))


class FakeCompletionStream:
    """Async iterable standing in for ``openai.AsyncStream``."""

    def __init__(self, chunks):
        self._chunks = chunks

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for chunk in self._chunks:
            yield chunk


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def draft():
    return ChatMessage(id="msg_1", role=MessageRole.ASSISTANT)
