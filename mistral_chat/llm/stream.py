"""Server-sent event decoding for streamed chat completions.

The endpoint sends one JSON payload per ``data: `` line and ends with
``data: [DONE]``. Decoding is line buffered: bytes are decoded
incrementally, split on newlines, and the trailing partial line is held
until the next read.
"""

import asyncio
import codecs
import json
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from pydantic import BaseModel, ConfigDict

from mistral_chat.exceptions import InvocationCancelledError
from mistral_chat.logging_config import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class StreamChunk(BaseModel):
    """One decoded event payload.

    Attributes:
        raw: The payload text as received, kept for usage recovery.
        payload: The parsed JSON object.
    """

    model_config = ConfigDict(frozen=True)

    raw: str
    payload: dict[str, Any]

    def _first_choice(self) -> dict[str, Any] | None:
        choices = self.payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        choice = choices[0]
        return choice if isinstance(choice, dict) else None

    @property
    def content(self) -> str | None:
        """Text delta of the first choice, if any."""
        choice = self._first_choice()
        if choice is None:
            return None
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None

    @property
    def finish_reason(self) -> str | None:
        """Finish reason of the first choice, if any."""
        choice = self._first_choice()
        return choice.get("finish_reason") if choice else None

    @property
    def usage(self) -> Any:
        """The top-level usage object, unvalidated."""
        return self.payload.get("usage")


class SseLineDecoder:
    """Incremental decoder from raw bytes to stream chunks."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[StreamChunk]:
        """Decode a block of bytes and return the complete chunks it finishes."""
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()

        chunks: list[StreamChunk] = []
        for line in lines:
            chunk = self._parse_line(line.rstrip("\r"))
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def close(self) -> None:
        """Drop any incomplete trailing line."""
        if self._buffer.strip():
            logger.debug(f"Discarding {len(self._buffer)} undelimited characters at end of stream")
        self._buffer = ""

    @staticmethod
    def _parse_line(line: str) -> StreamChunk | None:
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX) :]
        if data == DONE_SENTINEL:
            return None

        try:
            payload = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed stream chunk: {e}")
            return None

        if not isinstance(payload, dict):
            logger.warning(f"Skipping non-object stream chunk of type {type(payload).__name__}")
            return None
        return StreamChunk(raw=data, payload=payload)


def _check_cancelled(signal: asyncio.Event | None) -> None:
    if signal is not None and signal.is_set():
        raise InvocationCancelledError()


async def decode_sse_stream(
    byte_source: AsyncIterable[bytes],
    signal: asyncio.Event | None = None,
) -> AsyncIterator[StreamChunk]:
    """Decode an event stream into chunks.

    Args:
        byte_source: Raw response body.
        signal: Cancellation signal, checked before every read and after
            every chunk handed to the caller.

    Yields:
        Decoded chunks in arrival order.

    Raises:
        InvocationCancelledError: If the signal is set.
    """
    decoder = SseLineDecoder()
    iterator = aiter(byte_source)
    while True:
        _check_cancelled(signal)
        try:
            data = await anext(iterator)
        except StopAsyncIteration:
            break
        for chunk in decoder.feed(data):
            yield chunk
            _check_cancelled(signal)
    decoder.close()
