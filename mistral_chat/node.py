"""The Mistral Chat node.

Declares the node's ports, editors and display text, and runs one chat
completion per invocation.
"""

import time
import uuid
from contextlib import aclosing
from typing import Any

from pydantic import BaseModel, Field

from mistral_chat.config import Settings, get_settings
from mistral_chat.exceptions import (
    EmptyResponseError,
    ErrorCode,
    InvocationCancelledError,
    MistralNodeError,
)
from mistral_chat.host import (
    DataValue,
    EditorDefinition,
    EditorOption,
    Inputs,
    NodeInputDefinition,
    NodeOutputDefinition,
    NodeUIData,
    Outputs,
    ProcessContext,
)
from mistral_chat.llm.accumulator import PartialResult, SettledResponse, StreamAccumulator
from mistral_chat.llm.cache import ResponseCache
from mistral_chat.llm.client import MistralClient
from mistral_chat.llm.messages import ChatMessage, from_wire_message
from mistral_chat.llm.request import (
    MAX_TOKENS_PORT,
    MESSAGES_PORT,
    MODEL_PORT,
    PROMPT_PORT,
    SYSTEM_PROMPT_PORT,
    TEMPERATURE_PORT,
    TOP_P_PORT,
    CompletionRequest,
    MistralChatNodeData,
    build_request,
)
from mistral_chat.logging_config import get_logger
from mistral_chat.observability.metrics import (
    track_cache_lookup,
    track_llm_request,
    track_stream_chunk,
)
from mistral_chat.pricing.models import Currency, format_price, get_model_info, model_options
from mistral_chat.usage import UsageSource, estimate_usage

logger = get_logger(__name__)

NODE_TYPE = "mistralChat"
NODE_TITLE = "Mistral Chat"
API_KEY_CONFIG = "mistralApiKey"

# Output port ids
RESPONSE_PORT = "response"
MESSAGE_PORT = "message"
ALL_MESSAGES_PORT = "messages"
TOKEN_DETAILS_PORT = "tokenDetails"


class NodeRecord(BaseModel):
    """A node instance as stored in a graph."""

    id: str
    type: str
    title: str
    data: MistralChatNodeData
    visual_data: dict[str, Any] = Field(default_factory=dict)


def result_to_outputs(result: PartialResult) -> Outputs:
    """Map a result onto the node's output ports."""
    outputs: Outputs = {
        RESPONSE_PORT: DataValue(type="string", value=result.response),
        MESSAGE_PORT: DataValue(type="chat-message", value=result.message),
        ALL_MESSAGES_PORT: DataValue(type="chat-message[]", value=list(result.messages)),
    }
    if result.token_details is not None:
        outputs[TOKEN_DETAILS_PORT] = DataValue(
            type="object", value=result.token_details.to_output()
        )
    return outputs


class MistralChatNode:
    """Calls the Mistral chat completions API from a workflow graph.

    Args:
        client: API client; one is created from settings when omitted.
        cache: Response cache shared by the host, used by nodes that enable it.
        settings: Plugin settings.
    """

    def __init__(
        self,
        client: MistralClient | None = None,
        cache: ResponseCache[SettledResponse] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or MistralClient(settings=self._settings.mistral)
        self._cache = cache

    def create(self) -> NodeRecord:
        """Create a node with default settings."""
        return NodeRecord(
            id=uuid.uuid4().hex,
            type=NODE_TYPE,
            title=NODE_TITLE,
            data=MistralChatNodeData(),
            visual_data={"x": 0, "y": 0, "width": 300},
        )

    def get_input_definitions(self, data: MistralChatNodeData) -> list[NodeInputDefinition]:
        """Input ports for the node's current settings."""
        inputs: list[NodeInputDefinition] = []

        if data.use_model_input:
            inputs.append(NodeInputDefinition(id=MODEL_PORT, title="Model", data_type="string"))
        if data.use_system_prompt_input:
            inputs.append(
                NodeInputDefinition(
                    id=SYSTEM_PROMPT_PORT, title="System Prompt", data_type="string"
                )
            )
        if data.use_temperature_input:
            inputs.append(
                NodeInputDefinition(id=TEMPERATURE_PORT, title="Temperature", data_type="number")
            )
        if data.use_top_p_input:
            inputs.append(NodeInputDefinition(id=TOP_P_PORT, title="Top P", data_type="number"))
        if data.use_max_tokens_input:
            inputs.append(
                NodeInputDefinition(id=MAX_TOKENS_PORT, title="Max Tokens", data_type="number")
            )

        if data.use_messages_input:
            inputs.append(
                NodeInputDefinition(
                    id=MESSAGES_PORT, title="Messages", data_type="chat-message[]"
                )
            )
        else:
            inputs.append(
                NodeInputDefinition(
                    id=PROMPT_PORT,
                    title="Prompt",
                    data_type=["chat-message", "chat-message[]", "string", "string[]"],
                )
            )

        return inputs

    def get_output_definitions(self) -> list[NodeOutputDefinition]:
        """Output ports."""
        return [
            NodeOutputDefinition(id=RESPONSE_PORT, title="Response", data_type="string"),
            NodeOutputDefinition(id=MESSAGE_PORT, title="Message", data_type="chat-message"),
            NodeOutputDefinition(
                id=ALL_MESSAGES_PORT, title="All Messages", data_type="chat-message[]"
            ),
            NodeOutputDefinition(id=TOKEN_DETAILS_PORT, title="Token Details", data_type="object"),
        ]

    def get_editors(self) -> list[EditorDefinition]:
        """Settings panel fields."""
        return [
            EditorDefinition(
                type="dropdown",
                label="Model",
                data_key="model",
                use_input_toggle_data_key="useModelInput",
                options=[EditorOption(value=v, label=label) for v, label in model_options()],
            ),
            EditorDefinition(
                type="string",
                label="System Prompt",
                data_key="systemPrompt",
                use_input_toggle_data_key="useSystemPromptInput",
            ),
            EditorDefinition(
                type="number",
                label="Temperature",
                data_key="temperature",
                use_input_toggle_data_key="useTemperatureInput",
                min=0,
                max=1.5,
                step=0.1,
            ),
            EditorDefinition(
                type="number",
                label="Top P",
                data_key="topP",
                use_input_toggle_data_key="useTopPInput",
                min=0,
                max=1,
                step=0.1,
            ),
            EditorDefinition(
                type="number",
                label="Max Tokens",
                data_key="maxTokens",
                use_input_toggle_data_key="useMaxTokensInput",
                min=0,
                step=1,
            ),
            EditorDefinition(type="toggle", label="Use Messages Input", data_key="useMessagesInput"),
            EditorDefinition(type="toggle", label="Stream Responses", data_key="useStream"),
            EditorDefinition(type="toggle", label="Use Safe Prompt", data_key="useSafePrompt"),
            EditorDefinition(type="toggle", label="Use Random Seed", data_key="useRandomSeed"),
            EditorDefinition(
                type="number", label="Random Seed", data_key="randomSeed", min=0, step=1
            ),
            EditorDefinition(
                type="dropdown",
                label="Currency",
                data_key="currency",
                options=[
                    EditorOption(value=Currency.USD.value, label="USD ($)"),
                    EditorOption(value=Currency.EUR.value, label="EUR (€)"),
                ],
            ),
            EditorDefinition(type="toggle", label="Cache Responses", data_key="useCache"),
        ]

    def get_ui_data(self) -> NodeUIData:
        """Context menu entry and info box."""
        return NodeUIData(
            context_menu_title=NODE_TITLE,
            group="AI/Chat (Mistral)",
            info_box_title="Mistral Chat Node",
            info_box_body=(
                "Makes a call to Mistral AI's chat completion API. Supports all available "
                "Mistral models and includes various parameters for fine-tuning the response."
            ),
        )

    def get_body(self, data: MistralChatNodeData) -> str:
        """Summary text shown on the node."""
        info = get_model_info(data.model)
        display_name = info.display_name if info else data.model
        prompt_price = format_price(data.model, "prompt", data.currency)
        completion_price = format_price(data.model, "completion", data.currency)
        return (
            f"Model: {display_name}\n"
            f"Temperature: {data.temperature}\n"
            f"Max Tokens: {data.max_tokens}\n"
            f"Top P: {data.top_p}\n"
            f"{prompt_price}/1M prompt tokens\n"
            f"{completion_price}/1M completion tokens"
        )

    def _api_key(self, context: ProcessContext) -> str | None:
        configured = context.get_plugin_config(API_KEY_CONFIG)
        if configured:
            return configured
        fallback = self._settings.mistral.api_key
        return fallback.get_secret_value() if fallback else None

    async def process(
        self,
        data: MistralChatNodeData,
        inputs: Inputs,
        context: ProcessContext,
    ) -> Outputs:
        """Run one chat completion.

        Args:
            data: Node settings.
            inputs: Port values.
            context: Host services for this invocation.

        Returns:
            Values for the ``response``, ``message``, ``messages`` and
            ``tokenDetails`` ports.

        Raises:
            ConfigurationError: If no API key is configured.
            InputError: If the prompt or messages input is invalid.
            TransportError: If the API call fails after retries.
            EmptyResponseError: If the API returned no content.
            InvocationCancelledError: If the graph run was aborted.
            MistralNodeError: With code ``INTERNAL_ERROR`` if anything else fails.
        """
        request = build_request(data, inputs, self._api_key(context))
        prompt_messages = [from_wire_message(message) for message in request.messages]

        if context.signal.is_set():
            raise InvocationCancelledError()

        cache_key = request.cache_key() if data.use_cache and self._cache is not None else None
        if cache_key is not None:
            cached = self._cache.get(cache_key)
            track_cache_lookup(hit=cached is not None)
            if cached is not None:
                logger.info(f"Using cached Mistral response for model {request.model}")
                return result_to_outputs(
                    cached.to_result(prompt_messages, request.model, data.currency)
                )

        logger.info(
            f"Calling Mistral model {request.model} "
            f"({len(request.messages)} messages, stream={request.stream})"
        )
        start = time.perf_counter()
        try:
            if request.stream:
                settled = await self._process_stream(request, prompt_messages, data, context)
            else:
                settled = await self._process_complete(request, context)
        except InvocationCancelledError:
            track_llm_request(request.model, time.perf_counter() - start, status="cancelled")
            logger.info(f"Mistral call to {request.model} was cancelled")
            raise
        except MistralNodeError as e:
            track_llm_request(request.model, time.perf_counter() - start, status="error")
            logger.error(
                f"Mistral chat failed: {e.message}",
                extra={"model": request.model, "error_code": e.code.value},
            )
            raise
        except Exception as e:
            track_llm_request(request.model, time.perf_counter() - start, status="error")
            logger.exception(
                f"Mistral chat failed unexpectedly: {e}",
                extra={"model": request.model, "error_code": ErrorCode.INTERNAL_ERROR.value},
            )
            raise MistralNodeError(
                f"Mistral chat failed unexpectedly: {e}",
                code=ErrorCode.INTERNAL_ERROR,
                details={"model": request.model, "error_type": type(e).__name__},
            ) from e

        result = settled.to_result(prompt_messages, request.model, data.currency)
        details = result.token_details
        duration = time.perf_counter() - start
        if details is not None:
            track_llm_request(
                request.model,
                duration,
                prompt_tokens=details.prompt,
                completion_tokens=details.completion,
                cost_cents=details.estimated_cost_cents,
                currency=details.currency.value,
                estimated=details.kind == "estimated",
            )
            logger.info(
                f"Mistral call to {request.model}: prompt={details.prompt} "
                f"completion={details.completion} total={details.total} "
                f"cost={details.estimated_cost_cents} {details.currency.value} cents "
                f"({details.kind})",
                extra={
                    "model": request.model,
                    "stream": request.stream,
                    "usage_source": details.kind,
                    "duration_ms": round(duration * 1000),
                },
            )

        if cache_key is not None:
            self._cache.set(cache_key, settled)

        return result_to_outputs(result)

    async def _process_stream(
        self,
        request: CompletionRequest,
        prompt_messages: list[ChatMessage],
        data: MistralChatNodeData,
        context: ProcessContext,
    ) -> SettledResponse:
        accumulator = StreamAccumulator(prompt_messages, request.model, data.currency)
        emit = context.on_partial_outputs if data.emit_partial_outputs else None

        async with aclosing(self._client.stream(request, context.signal)) as chunks:
            async for chunk in chunks:
                track_stream_chunk(request.model)
                snapshot = accumulator.add(chunk)
                if snapshot is None or emit is None:
                    continue
                if context.signal.is_set():
                    raise InvocationCancelledError()
                emit(result_to_outputs(snapshot))

        return accumulator.settle()

    async def _process_complete(
        self,
        request: CompletionRequest,
        context: ProcessContext,
    ) -> SettledResponse:
        completion = await self._client.complete(request, context.signal)
        if not completion.content:
            raise EmptyResponseError(
                "Mistral API returned an empty response",
                details={"model": request.model},
            )

        usage, source = completion.usage, UsageSource.RESPONSE
        if usage is None:
            logger.warning("Mistral response carried no usage, using estimates")
            usage, source = estimate_usage(completion.content), UsageSource.ESTIMATED

        return SettledResponse(
            response=completion.content,
            usage=usage,
            usage_source=source,
            tool_calls=tuple(completion.tool_calls or ()),
        )
