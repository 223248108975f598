"""Chat message models and conversion to the Mistral wire format."""

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mistral_chat.logging_config import get_logger

logger = get_logger(__name__)


class ChatMessage(BaseModel):
    """A chat message as the host represents it.

    Attributes:
        type: Host message tag (``system``, ``user``, ``assistant`` or a tag
            introduced by a newer host).
        message: The text, or an ordered list of text segments.
        function_calls: Tool-call metadata, only populated when already present
            on a message produced elsewhere.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Host message tag")
    message: str | list[str] = Field(description="Message text or segments")
    function_calls: list[dict[str, Any]] | None = Field(
        default=None,
        description="Tool-call metadata passed through unchanged",
    )


class WireRole(str, Enum):
    """Message role accepted by the chat completions endpoint."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolCallFunction(BaseModel):
    """Function name and JSON-encoded arguments of a tool call."""

    name: str
    arguments: str


class ToolCall(BaseModel):
    """A tool call returned by the model."""

    id: str
    type: str = "function"
    function: ToolCallFunction


class WireMessage(BaseModel):
    """A message in the request body.

    Attributes:
        role: Message role.
        content: Message text.
        tool_calls: Tool calls carried by an assistant message.
        tool_call_id: Id of the call a tool message answers.
        name: Tool name for tool messages.
    """

    model_config = ConfigDict(frozen=True)

    role: WireRole = Field(description="Message role")
    content: str = Field(description="Message content")
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON object sent to the API."""
        return self.model_dump(mode="json", exclude_none=True)


_HOST_TAG_TO_ROLE = {
    "system": WireRole.SYSTEM,
    "user": WireRole.USER,
    "assistant": WireRole.ASSISTANT,
}


def create_system_message(content: str) -> ChatMessage:
    """Build a host system message."""
    return ChatMessage(type="system", message=content)


def create_user_message(content: str) -> ChatMessage:
    """Build a host user message."""
    return ChatMessage(type="user", message=content)


def create_assistant_message(content: str) -> ChatMessage:
    """Build a host assistant message.

    Tool-call fields are never attached here; generated text carries none.
    """
    return ChatMessage(type="assistant", message=content, function_calls=[])


def message_text(message: ChatMessage) -> str:
    """Return the message text as one string.

    Segments are joined with a single space. The join is lossy: the original
    segment boundaries cannot be recovered from the result.
    """
    if isinstance(message.message, str):
        return message.message
    return " ".join(message.message)


def to_wire_message(message: ChatMessage) -> WireMessage:
    """Convert a host message to the wire format.

    Tags other than system/user/assistant are sent as ``user``.
    """
    role = _HOST_TAG_TO_ROLE.get(message.type)
    if role is None:
        logger.debug(f"Sending message with unknown tag {message.type!r} as user")
        role = WireRole.USER
    return WireMessage(role=role, content=message_text(message))


def from_wire_role(role: WireRole | str) -> Callable[[str], ChatMessage]:
    """Return the host message constructor for a wire role.

    ``tool`` and unknown roles fall back to user messages.
    """
    value = role.value if isinstance(role, WireRole) else role
    if value == WireRole.SYSTEM.value:
        return create_system_message
    if value == WireRole.ASSISTANT.value:
        return create_assistant_message
    return create_user_message


def from_wire_message(message: WireMessage) -> ChatMessage:
    """Convert a wire message back to a host message."""
    return from_wire_role(message.role)(message.content)
