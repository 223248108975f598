"""Pytest configuration and shared fixtures."""

import json
from collections.abc import Callable, Iterable
from typing import Any

import pytest

from mistral_chat.config import CacheSettings, MistralSettings, Settings


@pytest.fixture
def mistral_settings() -> MistralSettings:
    """API settings pointing at a fake endpoint."""
    return MistralSettings(
        base_url="http://test/v1",
        api_key="settings-key",
        max_attempts=3,
        initial_backoff=0.01,
        max_backoff=0.02,
    )


@pytest.fixture
def settings(mistral_settings: MistralSettings) -> Settings:
    """Plugin settings using the fake endpoint."""
    return Settings(mistral=mistral_settings, cache=CacheSettings())


def _encode_events(payloads: Iterable[dict[str, Any] | str], done: bool = True) -> bytes:
    lines = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {data}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


@pytest.fixture
def sse_body() -> Callable[..., bytes]:
    """Encode payloads as an event stream body.

    Returns:
        Function taking payloads (dicts, or raw strings sent as-is) and an
        optional ``done`` flag.
    """
    return _encode_events


def content_chunk(text: str, finish_reason: str | None = None) -> dict[str, Any]:
    """A streamed payload carrying a text delta."""
    return {
        "id": "cmpl-1",
        "object": "chat.completion.chunk",
        "model": "mistral-large-latest",
        "choices": [
            {"index": 0, "delta": {"content": text}, "finish_reason": finish_reason},
        ],
    }


@pytest.fixture
def chunk() -> Callable[..., dict[str, Any]]:
    """Factory for streamed content payloads."""
    return content_chunk
