"""Node configuration, input resolution and request construction."""

import hashlib
import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError
from pydantic.alias_generators import to_camel

from mistral_chat.exceptions import ConfigurationError, InputError
from mistral_chat.host import DataValue, Inputs
from mistral_chat.llm.messages import (
    ChatMessage,
    WireMessage,
    create_system_message,
    create_user_message,
    to_wire_message,
)
from mistral_chat.logging_config import get_logger
from mistral_chat.pricing.models import DEFAULT_MODEL, Currency

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

# Port ids
MODEL_PORT = "model"
SYSTEM_PROMPT_PORT = "systemPrompt"
TEMPERATURE_PORT = "temperature"
TOP_P_PORT = "top_p"
MAX_TOKENS_PORT = "maxTokens"
MESSAGES_PORT = "messages"
PROMPT_PORT = "prompt"


class MistralChatNodeData(BaseModel):
    """Settings stored on a Mistral Chat node.

    Each ``use_*_input`` toggle exposes an input port that, when connected,
    takes precedence over the stored value of the same name.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    model: str = DEFAULT_MODEL
    use_model_input: bool = False
    temperature: float = 0.5
    use_temperature_input: bool = False
    max_tokens: int = 4096
    use_max_tokens_input: bool = False
    top_p: float = 1.0
    use_top_p_input: bool = False
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    use_system_prompt_input: bool = True
    use_messages_input: bool = False
    use_stream: bool = True
    use_safe_prompt: bool = False
    use_random_seed: bool = False
    random_seed: int | None = None
    currency: Currency = Currency.USD
    use_cache: bool = False
    emit_partial_outputs: bool = True


class ResolvedParameters(BaseModel):
    """Sampling parameters after applying input-over-default precedence."""

    model: str
    temperature: float
    max_tokens: int
    top_p: float
    system_prompt: str


class CompletionRequest(BaseModel):
    """A chat completion request, immutable once built.

    The credential is kept out of the body; the cache key holds only its digest.
    """

    model_config = ConfigDict(frozen=True)

    model: str
    messages: tuple[WireMessage, ...]
    temperature: float
    max_tokens: int
    top_p: float
    stream: bool
    safe_prompt: bool = False
    random_seed: int | None = None
    api_key: SecretStr = Field(repr=False)

    def body(self) -> dict[str, Any]:
        """Return the JSON body for ``/chat/completions``."""
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_payload() for message in self.messages],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
            "stream": self.stream,
            "safe_prompt": self.safe_prompt,
        }
        if self.random_seed is not None:
            body["random_seed"] = self.random_seed
        return body

    def headers(self) -> dict[str, str]:
        """Return request headers including the bearer credential."""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key.get_secret_value()}",
        }
        if self.stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def cache_key(self) -> str:
        """Return a digest of the serialized request.

        Any change to a request field, the credential included, yields a
        different key. Only a digest of the credential enters the key.
        """
        credential = hashlib.sha256(self.api_key.get_secret_value().encode("utf-8")).hexdigest()
        serialized = json.dumps(
            {"body": self.body(), "credential": credential},
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def _input_value(inputs: Inputs, port: str, enabled: bool) -> Any:
    if not enabled:
        return None
    data_value = inputs.get(port)
    if data_value is None:
        return None
    return data_value.value


def _as_number(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float | str):
        raise InputError(f"Input '{field}' must be a number", details={"field": field})
    try:
        return float(value)
    except ValueError as e:
        raise InputError(
            f"Input '{field}' must be a number, got {value!r}",
            details={"field": field},
        ) from e


def resolve_parameters(data: MistralChatNodeData, inputs: Inputs) -> ResolvedParameters:
    """Apply input-over-default precedence to each sampling parameter.

    Args:
        data: Stored node settings.
        inputs: Port values for this invocation.

    Returns:
        Resolved parameters.

    Raises:
        InputError: If a connected numeric input is not a number.
    """
    model = _input_value(inputs, MODEL_PORT, data.use_model_input)
    temperature = _input_value(inputs, TEMPERATURE_PORT, data.use_temperature_input)
    max_tokens = _input_value(inputs, MAX_TOKENS_PORT, data.use_max_tokens_input)
    top_p = _input_value(inputs, TOP_P_PORT, data.use_top_p_input)
    system_prompt = _input_value(inputs, SYSTEM_PROMPT_PORT, data.use_system_prompt_input)

    return ResolvedParameters(
        model=str(model) if model is not None else data.model,
        temperature=(
            _as_number(temperature, TEMPERATURE_PORT)
            if temperature is not None
            else data.temperature
        ),
        max_tokens=(
            int(_as_number(max_tokens, MAX_TOKENS_PORT))
            if max_tokens is not None
            else data.max_tokens
        ),
        top_p=_as_number(top_p, TOP_P_PORT) if top_p is not None else data.top_p,
        system_prompt=str(system_prompt) if system_prompt is not None else data.system_prompt,
    )


def _as_chat_message(value: Any) -> ChatMessage:
    if isinstance(value, ChatMessage):
        return value
    return ChatMessage.model_validate(value)


def _coerce_to_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return None


def _chat_messages(data_value: DataValue) -> list[ChatMessage] | None:
    value = data_value.value
    if data_value.type == "chat-message":
        return [_as_chat_message(value)]
    if data_value.type == "chat-message[]":
        return [_as_chat_message(item) for item in value]
    if data_value.type == "string":
        return [create_user_message(value)]
    if data_value.type == "string[]":
        return [create_user_message(item) for item in value]
    return None


def normalize_prompt(data_value: DataValue) -> list[ChatMessage]:
    """Turn a prompt input into an ordered list of chat messages.

    Accepts one chat message, a list of chat messages, a string, or a list of
    strings. Any other type is accepted only when its value is a scalar that
    reads as text, and becomes a single user message.

    Raises:
        InputError: If the value cannot be turned into messages.
    """
    try:
        messages = _chat_messages(data_value)
    except (ValidationError, TypeError) as e:
        raise InputError(
            f"Invalid prompt input of type '{data_value.type}': {e}",
            details={"field": PROMPT_PORT, "type": data_value.type},
        ) from e
    if messages is not None:
        return messages

    text = _coerce_to_text(data_value.value)
    if text is None:
        raise InputError(
            f"Invalid prompt format: {data_value.type}",
            details={"field": PROMPT_PORT, "type": data_value.type},
        )
    return [create_user_message(text)]


def coerce_chat_messages(data_value: DataValue | None) -> list[ChatMessage] | None:
    """Read a messages input as a chat message list, or None if it is not one."""
    if data_value is None or data_value.value is None:
        return None
    try:
        return _chat_messages(data_value)
    except (ValidationError, TypeError):
        logger.warning(f"Messages input of type '{data_value.type}' is not a chat message list")
        return None


def build_request(
    data: MistralChatNodeData,
    inputs: Inputs,
    api_key: str | None,
) -> CompletionRequest:
    """Build the completion request for one invocation.

    Args:
        data: Stored node settings.
        inputs: Port values for this invocation.
        api_key: Resolved credential.

    Returns:
        The request.

    Raises:
        ConfigurationError: If no credential is configured.
        InputError: If the prompt or messages input is missing or invalid.
    """
    if not api_key:
        raise ConfigurationError(
            "Mistral API key not configured. Please add your API key in the plugin "
            "configuration or set the MISTRAL_API_KEY environment variable.",
            details={"field": "mistralApiKey"},
        )

    params = resolve_parameters(data, inputs)

    if data.use_messages_input:
        messages = coerce_chat_messages(inputs.get(MESSAGES_PORT))
        if messages is None:
            raise InputError("Invalid messages input format", details={"field": MESSAGES_PORT})
    else:
        prompt = inputs.get(PROMPT_PORT)
        if prompt is None or prompt.value is None:
            raise InputError("No prompt provided", details={"field": PROMPT_PORT})
        messages = normalize_prompt(prompt)
        if params.system_prompt.strip():
            messages = [create_system_message(params.system_prompt), *messages]

    return CompletionRequest(
        model=params.model,
        messages=tuple(to_wire_message(message) for message in messages),
        temperature=params.temperature,
        max_tokens=params.max_tokens,
        top_p=params.top_p,
        stream=data.use_stream,
        safe_prompt=data.use_safe_prompt,
        random_seed=data.random_seed if data.use_random_seed else None,
        api_key=SecretStr(api_key),
    )
