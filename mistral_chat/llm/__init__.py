"""Mistral chat completion client, streaming and result accumulation."""

from mistral_chat.llm.accumulator import PartialResult, SettledResponse, StreamAccumulator
from mistral_chat.llm.cache import ResponseCache
from mistral_chat.llm.client import ChatCompletion, MistralClient
from mistral_chat.llm.messages import ChatMessage, WireMessage, WireRole, to_wire_message
from mistral_chat.llm.request import CompletionRequest, MistralChatNodeData, build_request
from mistral_chat.llm.retry import RetryPolicy
from mistral_chat.llm.stream import StreamChunk, decode_sse_stream

__all__ = [
    "ChatCompletion",
    "ChatMessage",
    "CompletionRequest",
    "MistralChatNodeData",
    "MistralClient",
    "PartialResult",
    "ResponseCache",
    "RetryPolicy",
    "SettledResponse",
    "StreamAccumulator",
    "StreamChunk",
    "WireMessage",
    "WireRole",
    "build_request",
    "decode_sse_stream",
    "to_wire_message",
]
