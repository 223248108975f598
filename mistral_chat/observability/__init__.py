"""Observability module for metrics and monitoring."""

from mistral_chat.observability.metrics import (
    get_metrics,
    track_cache_lookup,
    track_llm_request,
    track_stream_chunk,
)

__all__ = [
    "get_metrics",
    "track_cache_lookup",
    "track_llm_request",
    "track_stream_chunk",
]
