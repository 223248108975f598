"""Tests for input resolution and request building."""

import pytest

from mistral_chat.exceptions import ConfigurationError, ErrorCode, InputError
from mistral_chat.host import DataValue
from mistral_chat.llm.messages import ChatMessage, WireRole, create_user_message
from mistral_chat.llm.request import (
    DEFAULT_SYSTEM_PROMPT,
    MistralChatNodeData,
    build_request,
    coerce_chat_messages,
    normalize_prompt,
    resolve_parameters,
)


def prompt(text: str) -> dict[str, DataValue]:
    return {"prompt": DataValue(type="string", value=text)}


class TestMistralChatNodeData:
    """Tests for stored node settings."""

    def test_defaults(self) -> None:
        """Defaults match a freshly created node."""
        data = MistralChatNodeData()
        assert data.model == "mistral-large-latest"
        assert data.temperature == 0.5
        assert data.max_tokens == 4096
        assert data.top_p == 1.0
        assert data.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert data.use_system_prompt_input is True
        assert data.use_stream is True
        assert data.use_cache is False

    def test_camel_case_keys(self) -> None:
        """Stored graphs use camelCase keys."""
        data = MistralChatNodeData.model_validate(
            {"maxTokens": 100, "useTopPInput": True, "systemPrompt": "Hi"}
        )
        assert data.max_tokens == 100
        assert data.use_top_p_input is True
        assert data.system_prompt == "Hi"


class TestResolveParameters:
    """Tests for input-over-default precedence."""

    def test_defaults_without_inputs(self) -> None:
        """Stored values are used when no inputs are connected."""
        params = resolve_parameters(MistralChatNodeData(), {})
        assert params.model == "mistral-large-latest"
        assert params.temperature == 0.5

    def test_inputs_override_when_enabled(self) -> None:
        """Enabled inputs take precedence."""
        data = MistralChatNodeData(
            use_model_input=True,
            use_temperature_input=True,
            use_max_tokens_input=True,
            use_top_p_input=True,
        )
        params = resolve_parameters(
            data,
            {
                "model": DataValue(type="string", value="mistral-small-latest"),
                "temperature": DataValue(type="number", value=0.9),
                "maxTokens": DataValue(type="number", value=256),
                "top_p": DataValue(type="number", value=0.7),
            },
        )
        assert params.model == "mistral-small-latest"
        assert params.temperature == 0.9
        assert params.max_tokens == 256
        assert params.top_p == 0.7

    def test_inputs_ignored_when_disabled(self) -> None:
        """Inputs whose toggle is off are ignored."""
        params = resolve_parameters(
            MistralChatNodeData(),
            {"temperature": DataValue(type="number", value=0.9)},
        )
        assert params.temperature == 0.5

    def test_null_input_falls_back(self) -> None:
        """An enabled input without a value falls back to the stored one."""
        data = MistralChatNodeData(use_temperature_input=True)
        params = resolve_parameters(data, {"temperature": DataValue(type="number", value=None)})
        assert params.temperature == 0.5

    def test_numeric_string_accepted(self) -> None:
        """Numeric strings are read as numbers."""
        data = MistralChatNodeData(use_max_tokens_input=True)
        params = resolve_parameters(data, {"maxTokens": DataValue(type="string", value="512")})
        assert params.max_tokens == 512

    def test_non_numeric_rejected(self) -> None:
        """Non-numeric values on numeric inputs are input errors."""
        data = MistralChatNodeData(use_temperature_input=True)
        with pytest.raises(InputError) as exc_info:
            resolve_parameters(data, {"temperature": DataValue(type="string", value="warm")})
        assert exc_info.value.details["field"] == "temperature"


class TestNormalizePrompt:
    """Tests for prompt normalization."""

    def test_string(self) -> None:
        """A string becomes one user message."""
        assert normalize_prompt(DataValue(type="string", value="Hi")) == [
            create_user_message("Hi")
        ]

    def test_string_list(self) -> None:
        """Each string becomes a user message, in order."""
        messages = normalize_prompt(DataValue(type="string[]", value=["a", "b"]))
        assert [m.message for m in messages] == ["a", "b"]
        assert all(m.type == "user" for m in messages)

    def test_chat_message(self) -> None:
        """A chat message is passed through."""
        message = ChatMessage(type="assistant", message="Earlier reply")
        assert normalize_prompt(DataValue(type="chat-message", value=message)) == [message]

    def test_chat_message_dicts(self) -> None:
        """Chat messages may arrive as plain mappings."""
        messages = normalize_prompt(
            DataValue(
                type="chat-message[]",
                value=[{"type": "system", "message": "s"}, {"type": "user", "message": "u"}],
            )
        )
        assert [m.type for m in messages] == ["system", "user"]

    def test_scalar_coerced(self) -> None:
        """Other types are accepted when the value reads as text."""
        assert normalize_prompt(DataValue(type="number", value=42))[0].message == "42"
        assert normalize_prompt(DataValue(type="boolean", value=True))[0].message == "true"

    def test_unsupported(self) -> None:
        """Values that do not read as text are rejected."""
        with pytest.raises(InputError) as exc_info:
            normalize_prompt(DataValue(type="object", value={"a": 1}))
        assert exc_info.value.message == "Invalid prompt format: object"

    def test_malformed_chat_message(self) -> None:
        """A chat-message value without the message fields is rejected."""
        with pytest.raises(InputError):
            normalize_prompt(DataValue(type="chat-message", value={"text": "nope"}))


class TestCoerceChatMessages:
    """Tests for messages input coercion."""

    def test_none(self) -> None:
        """Absent input gives None."""
        assert coerce_chat_messages(None) is None
        assert coerce_chat_messages(DataValue(type="chat-message[]", value=None)) is None

    def test_list(self) -> None:
        """A chat message list is read."""
        messages = coerce_chat_messages(
            DataValue(type="chat-message[]", value=[{"type": "user", "message": "Hi"}])
        )
        assert messages == [create_user_message("Hi")]

    def test_wrong_type(self) -> None:
        """Values that are not messages give None."""
        assert coerce_chat_messages(DataValue(type="object", value={"a": 1})) is None
        assert coerce_chat_messages(DataValue(type="chat-message[]", value=[1, 2])) is None


class TestBuildRequest:
    """Tests for request construction."""

    def test_missing_api_key(self) -> None:
        """A missing credential is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            build_request(MistralChatNodeData(), prompt("Hi"), None)
        assert exc_info.value.code == ErrorCode.CONFIGURATION_ERROR
        assert "MISTRAL_API_KEY" in exc_info.value.message

    def test_system_prompt_prepended(self) -> None:
        """The system prompt comes first in prompt mode."""
        request = build_request(MistralChatNodeData(), prompt("Hi"), "key")
        assert [m.role for m in request.messages] == [WireRole.SYSTEM, WireRole.USER]
        assert request.messages[0].content == DEFAULT_SYSTEM_PROMPT

    def test_blank_system_prompt_skipped(self) -> None:
        """A blank system prompt is not sent."""
        request = build_request(MistralChatNodeData(system_prompt="  "), prompt("Hi"), "key")
        assert [m.role for m in request.messages] == [WireRole.USER]

    def test_system_prompt_input(self) -> None:
        """The system prompt input overrides the stored prompt."""
        inputs = {**prompt("Hi"), "systemPrompt": DataValue(type="string", value="Be terse.")}
        request = build_request(MistralChatNodeData(), inputs, "key")
        assert request.messages[0].content == "Be terse."

    def test_missing_prompt(self) -> None:
        """Prompt mode requires a prompt."""
        with pytest.raises(InputError) as exc_info:
            build_request(MistralChatNodeData(), {}, "key")
        assert exc_info.value.message == "No prompt provided"

    def test_messages_mode(self) -> None:
        """Messages mode sends the list as given, without a system prompt."""
        data = MistralChatNodeData(use_messages_input=True)
        inputs = {
            "messages": DataValue(
                type="chat-message[]",
                value=[
                    {"type": "user", "message": "Hi"},
                    {"type": "assistant", "message": "Hello"},
                    {"type": "user", "message": "How are you?"},
                ],
            )
        }
        request = build_request(data, inputs, "key")
        assert [m.role for m in request.messages] == [
            WireRole.USER,
            WireRole.ASSISTANT,
            WireRole.USER,
        ]

    def test_messages_mode_invalid(self) -> None:
        """Messages mode rejects input that is not a message list."""
        data = MistralChatNodeData(use_messages_input=True)
        with pytest.raises(InputError) as exc_info:
            build_request(data, {"messages": DataValue(type="object", value={"a": 1})}, "key")
        assert exc_info.value.message == "Invalid messages input format"

    def test_body(self) -> None:
        """The body carries the resolved parameters."""
        data = MistralChatNodeData(use_safe_prompt=True, use_stream=False)
        body = build_request(data, prompt("Hi"), "key").body()
        assert body["model"] == "mistral-large-latest"
        assert body["temperature"] == 0.5
        assert body["max_tokens"] == 4096
        assert body["top_p"] == 1.0
        assert body["stream"] is False
        assert body["safe_prompt"] is True
        assert "random_seed" not in body

    def test_random_seed(self) -> None:
        """The seed is only sent when enabled."""
        data = MistralChatNodeData(use_random_seed=True, random_seed=7)
        assert build_request(data, prompt("Hi"), "key").body()["random_seed"] == 7

        data = MistralChatNodeData(use_random_seed=False, random_seed=7)
        assert "random_seed" not in build_request(data, prompt("Hi"), "key").body()

    def test_headers(self) -> None:
        """Streaming requests ask for an event stream."""
        request = build_request(MistralChatNodeData(), prompt("Hi"), "key")
        headers = request.headers()
        assert headers["Authorization"] == "Bearer key"
        assert headers["Accept"] == "text/event-stream"

    def test_api_key_hidden(self) -> None:
        """The credential does not appear in the repr or the body."""
        request = build_request(MistralChatNodeData(), prompt("Hi"), "secret-key")
        assert "secret-key" not in repr(request)
        assert "secret-key" not in str(request.body())

    def test_cache_key(self) -> None:
        """Equal requests share a key and any field change alters it."""
        first = build_request(MistralChatNodeData(), prompt("Hi"), "key-a")
        same = build_request(MistralChatNodeData(), prompt("Hi"), "key-a")
        other = build_request(MistralChatNodeData(temperature=0.6), prompt("Hi"), "key-a")
        assert first.cache_key() == same.cache_key()
        assert first.cache_key() != other.cache_key()

    def test_cache_key_per_credential(self) -> None:
        """Different API keys yield different cache keys without exposing either."""
        first = build_request(MistralChatNodeData(), prompt("Hi"), "key-a")
        second = build_request(MistralChatNodeData(), prompt("Hi"), "key-b")
        assert first.cache_key() != second.cache_key()
        assert "key-a" not in first.cache_key()
