"""Folding streamed chunks into partial results, and settling token usage.

A streamed invocation moves through two states. While chunks arrive, each
content delta extends the response and produces a fresh snapshot. When the
stream ends, usage is settled in order of preference:

1. a usage record seen inline while streaming,
2. a usage record found by re-scanning every retained payload,
3. an estimate derived from the response length.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict

from mistral_chat.exceptions import EmptyResponseError
from mistral_chat.llm.messages import ChatMessage, ToolCall, create_assistant_message
from mistral_chat.llm.stream import StreamChunk
from mistral_chat.logging_config import get_logger
from mistral_chat.pricing.cost import estimate_cost
from mistral_chat.pricing.models import Currency
from mistral_chat.usage import (
    EstimatedTokenDetails,
    ExactTokenDetails,
    TokenDetails,
    UsageRecord,
    UsageSource,
    estimate_usage,
)

logger = get_logger(__name__)


class PartialResult(BaseModel):
    """A snapshot of the node's outputs.

    Attributes:
        response: Response text so far.
        message: Assistant message holding ``response``.
        messages: Request messages followed by ``message``.
        token_details: Usage and cost, once known.
    """

    model_config = ConfigDict(frozen=True)

    response: str
    message: ChatMessage
    messages: tuple[ChatMessage, ...]
    token_details: TokenDetails | None = None


def _usage_in_payload(payload: Any) -> UsageRecord | None:
    if not isinstance(payload, dict):
        return None
    usage = UsageRecord.from_payload(payload.get("usage"))
    if usage is not None:
        return usage
    choices = payload.get("choices")
    if isinstance(choices, list):
        for choice in choices:
            if isinstance(choice, dict):
                usage = UsageRecord.from_payload(choice.get("usage"))
                if usage is not None:
                    return usage
    return None


def scan_for_usage(raw_payloads: list[str]) -> UsageRecord | None:
    """Search retained payloads for the first usage record.

    Looks at the top-level ``usage`` object and at ``usage`` nested on a
    choice. Payloads that do not parse are skipped.
    """
    for raw in raw_payloads:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            continue
        usage = _usage_in_payload(payload)
        if usage is not None:
            return usage
    return None


def resolve_usage(
    inline: UsageRecord | None,
    raw_payloads: list[str],
    response_text: str,
) -> tuple[UsageRecord, UsageSource]:
    """Settle the usage of a streamed response.

    Args:
        inline: Usage captured while streaming, if any.
        raw_payloads: Every payload retained during the stream.
        response_text: The final response.

    Returns:
        The usage record and where it came from.
    """
    if inline is not None:
        return inline, UsageSource.INLINE

    logger.debug(f"Re-scanning {len(raw_payloads)} stream chunks for token usage")
    found = scan_for_usage(raw_payloads)
    if found is not None:
        return found, UsageSource.RETROSPECTIVE

    logger.info("Token usage not found in streaming response, using estimates")
    return estimate_usage(response_text), UsageSource.ESTIMATED


def build_token_details(
    model: str,
    usage: UsageRecord,
    source: UsageSource,
    currency: Currency,
) -> TokenDetails:
    """Attach a cost to settled usage.

    Estimated usage has no prompt token count, so its cost is reported as
    zero rather than as a partial figure.
    """
    if source == UsageSource.ESTIMATED:
        return EstimatedTokenDetails(
            prompt=usage.prompt_tokens,
            completion=usage.completion_tokens,
            total=usage.total_tokens,
            estimated_cost_cents=0.0,
            currency=currency,
        )
    return ExactTokenDetails(
        prompt=usage.prompt_tokens,
        completion=usage.completion_tokens,
        total=usage.total_tokens,
        estimated_cost_cents=estimate_cost(model, usage, currency),
        currency=currency,
    )


def build_final_result(
    prompt_messages: list[ChatMessage],
    response_text: str,
    token_details: TokenDetails | None,
    tool_calls: list[ToolCall] | None = None,
) -> PartialResult:
    """Assemble the outputs for a completed response.

    Tool calls returned by the API are surfaced on the assistant message.
    """
    message = create_assistant_message(response_text)
    if tool_calls:
        message = message.model_copy(
            update={"function_calls": [call.model_dump(mode="json") for call in tool_calls]}
        )
    return PartialResult(
        response=response_text,
        message=message,
        messages=(*prompt_messages, message),
        token_details=token_details,
    )


class SettledResponse(BaseModel):
    """A finished response with settled usage, not yet priced.

    Pricing depends on the reader's currency, so cached responses are kept in
    this form and priced on every read.

    Attributes:
        response: Full response text.
        usage: Settled token usage.
        usage_source: Where ``usage`` came from.
        tool_calls: Tool calls returned with the response.
    """

    model_config = ConfigDict(frozen=True)

    response: str
    usage: UsageRecord
    usage_source: UsageSource
    tool_calls: tuple[ToolCall, ...] = ()

    def to_result(
        self,
        prompt_messages: list[ChatMessage],
        model: str,
        currency: Currency,
    ) -> PartialResult:
        """Price the usage in ``currency`` and assemble the outputs."""
        details = build_token_details(model, self.usage, self.usage_source, currency)
        return build_final_result(prompt_messages, self.response, details, list(self.tool_calls))


class StreamAccumulator:
    """Fold stream chunks into growing partial results for one invocation.

    Args:
        prompt_messages: Messages sent with the request, in order.
        model: Model id used to price usage.
        currency: Currency to price usage in.
    """

    def __init__(
        self,
        prompt_messages: list[ChatMessage],
        model: str,
        currency: Currency = Currency.USD,
    ) -> None:
        self._prompt_messages = tuple(prompt_messages)
        self._model = model
        self._currency = currency
        self._parts: list[str] = []
        self._raw_payloads: list[str] = []
        self._usage: UsageRecord | None = None
        self._finished = False

    @property
    def response(self) -> str:
        """Response text accumulated so far."""
        return "".join(self._parts)

    @property
    def content_chunks(self) -> int:
        """Number of content-bearing chunks folded."""
        return len(self._parts)

    @property
    def usage(self) -> UsageRecord | None:
        """Usage captured inline, if any."""
        return self._usage

    def add(self, chunk: StreamChunk) -> PartialResult | None:
        """Fold one chunk.

        Returns:
            A new snapshot if the chunk carried content, otherwise None.
        """
        if self._finished:
            raise RuntimeError("Cannot add chunks to a finished stream")

        self._raw_payloads.append(chunk.raw)

        if self._usage is None:
            usage = UsageRecord.from_payload(chunk.usage)
            if usage is not None:
                logger.debug(f"Found token usage in streaming response: {usage}")
                self._usage = usage

        if not isinstance(chunk.payload.get("choices", []), list):
            logger.warning("Skipping stream chunk with malformed choices")
            return None

        content = chunk.content
        if not content:
            return None

        self._parts.append(content)
        return self._snapshot()

    def settle(self) -> SettledResponse:
        """End the stream and settle its usage without pricing it.

        Raises:
            EmptyResponseError: If no chunk carried content.
        """
        self._finished = True
        if not self._parts:
            raise EmptyResponseError(
                "Mistral API returned an empty response",
                details={"model": self._model, "chunks": len(self._raw_payloads)},
            )

        response = self.response
        usage, source = resolve_usage(self._usage, self._raw_payloads, response)
        return SettledResponse(response=response, usage=usage, usage_source=source)

    def finish(self) -> PartialResult:
        """Settle usage and return the priced final result.

        Raises:
            EmptyResponseError: If no chunk carried content.
        """
        return self.settle().to_result(list(self._prompt_messages), self._model, self._currency)

    def _snapshot(self) -> PartialResult:
        details = None
        if self._usage is not None:
            details = build_token_details(
                self._model, self._usage, UsageSource.INLINE, self._currency
            )
        return build_final_result(list(self._prompt_messages), self.response, details)
