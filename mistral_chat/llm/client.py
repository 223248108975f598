"""Mistral chat completions client."""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing

import httpx
from pydantic import BaseModel, Field, ValidationError

from mistral_chat.config import MistralSettings, get_settings
from mistral_chat.exceptions import ErrorCode, InvocationCancelledError, TransportError
from mistral_chat.llm.messages import ToolCall
from mistral_chat.llm.request import CompletionRequest
from mistral_chat.llm.retry import RetryPolicy
from mistral_chat.llm.stream import StreamChunk, decode_sse_stream
from mistral_chat.logging_config import get_logger
from mistral_chat.usage import UsageRecord

logger = get_logger(__name__)

ERROR_BODY_LIMIT = 500


class ChatCompletion(BaseModel):
    """A non-streamed chat completion.

    Attributes:
        content: Generated text.
        model: Model that produced it.
        usage: Token usage, when reported.
        tool_calls: Tool calls on the returned message, when present.
        finish_reason: Why generation stopped.
    """

    content: str = Field(description="Generated text")
    model: str = Field(description="Model used")
    usage: UsageRecord | None = Field(default=None, description="Token usage")
    tool_calls: list[ToolCall] | None = Field(default=None, description="Returned tool calls")
    finish_reason: str | None = Field(default=None, description="Finish reason")


def _check_cancelled(signal: asyncio.Event | None) -> None:
    if signal is not None and signal.is_set():
        raise InvocationCancelledError()


class MistralClient:
    """Client for the Mistral ``/chat/completions`` endpoint.

    Transport failures are retried per ``retry_policy`` as long as no part of
    the response body has been handed to the caller.
    """

    def __init__(
        self,
        settings: MistralSettings | None = None,
        client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the Mistral client.

        Args:
            settings: API configuration.
            client: HTTP client (for testing).
            retry_policy: Retry policy; derived from settings when omitted.
            sleep: Backoff sleep (for testing).
        """
        self._settings = settings or get_settings().mistral
        self._client = client
        self._owns_client = client is None
        self._retry_policy = retry_policy or RetryPolicy.from_settings(self._settings)
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def url(self) -> str:
        """Chat completions endpoint."""
        return f"{self._settings.base_url.rstrip('/')}/chat/completions"

    def _status_error(self, response: httpx.Response) -> TransportError:
        status = response.status_code
        try:
            body = response.text[:ERROR_BODY_LIMIT]
        except httpx.ResponseNotRead:
            body = ""
        logger.error(f"Mistral API error: {status} {body}")

        if status == 429:
            return TransportError(
                "Mistral API rate limit exceeded",
                code=ErrorCode.LLM_RATE_LIMIT,
                details={"status_code": status, "body": body},
                status_code=status,
            )
        return TransportError(
            f"Mistral API error: {status} - {body}",
            code=ErrorCode.LLM_SERVICE_ERROR,
            details={"status_code": status, "body": body},
            status_code=status,
        )

    def _transport_error(self, e: httpx.HTTPError) -> TransportError:
        if isinstance(e, httpx.TimeoutException):
            logger.error(f"Mistral request timed out: {e}")
            return TransportError(
                "Mistral API request timed out",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout": self._settings.timeout},
            )
        logger.error(f"Mistral connection error: {e}")
        return TransportError(
            f"Failed to connect to Mistral API: {e}",
            code=ErrorCode.LLM_CONNECTION_ERROR,
            details={"url": self.url},
        )

    async def complete(
        self,
        request: CompletionRequest,
        signal: asyncio.Event | None = None,
    ) -> ChatCompletion:
        """Run a non-streamed completion.

        Raises:
            TransportError: If the request fails after retries or the body is
                not a chat completion.
            InvocationCancelledError: If the signal is set.
        """
        client = await self._get_client()
        async for attempt in self._retry_policy.retrying(self._sleep):
            with attempt:
                _check_cancelled(signal)
                try:
                    response = await client.post(
                        self.url, json=request.body(), headers=request.headers()
                    )
                except httpx.HTTPError as e:
                    raise self._transport_error(e) from e
                if response.is_error:
                    raise self._status_error(response)

        _check_cancelled(signal)
        return self._parse_completion(response, request.model)

    def _parse_completion(self, response: httpx.Response, model: str) -> ChatCompletion:
        try:
            data = response.json()
            choice = data["choices"][0]
            message = choice["message"]
            tool_calls = message.get("tool_calls")

            return ChatCompletion(
                content=message.get("content") or "",
                model=data.get("model", model),
                usage=UsageRecord.from_payload(data.get("usage")),
                tool_calls=[ToolCall.model_validate(call) for call in tool_calls]
                if tool_calls
                else None,
                finish_reason=choice.get("finish_reason"),
            )

        except (KeyError, IndexError, TypeError, ValueError, ValidationError) as e:
            raise TransportError(
                f"Invalid response from Mistral API: {e}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"error": str(e)},
            ) from e

    async def stream(
        self,
        request: CompletionRequest,
        signal: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Run a streamed completion.

        Yields:
            Decoded chunks in arrival order.

        Raises:
            TransportError: If the request fails before the body starts and
                retries are exhausted, or the connection drops mid-stream.
            InvocationCancelledError: If the signal is set.
        """
        body_started = False

        def mark_body_started() -> None:
            nonlocal body_started
            body_started = True

        retrying = self._retry_policy.retrying(self._sleep, allow=lambda: not body_started)
        async for attempt in retrying:
            with attempt:
                _check_cancelled(signal)
                attempt_stream = self._stream_once(request, signal, mark_body_started)
                async with aclosing(attempt_stream) as chunks:
                    async for chunk in chunks:
                        yield chunk

    async def _stream_once(
        self,
        request: CompletionRequest,
        signal: asyncio.Event | None,
        on_body: Callable[[], None],
    ) -> AsyncIterator[StreamChunk]:
        client = await self._get_client()

        async def body(response: httpx.Response) -> AsyncIterator[bytes]:
            async for data in response.aiter_bytes():
                on_body()
                yield data

        try:
            async with client.stream(
                "POST", self.url, json=request.body(), headers=request.headers()
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise self._status_error(response)
                async for chunk in decode_sse_stream(body(response), signal):
                    yield chunk
        except httpx.HTTPError as e:
            raise self._transport_error(e) from e
