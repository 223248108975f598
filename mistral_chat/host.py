"""Interface to the workflow host.

The host owns graph execution, port typing and secret storage. This module
declares the shapes the node exchanges with it.
"""

import asyncio
from collections.abc import Callable
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field


class DataValue(BaseModel):
    """A typed value carried on a node port.

    Attributes:
        type: Host data type, e.g. ``string`` or ``chat-message[]``.
        value: The payload.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Host data type")
    value: Any = Field(default=None, description="Port payload")


Inputs = dict[str, DataValue]
Outputs = dict[str, DataValue]


class ProcessContext(Protocol):
    """Per-invocation services supplied by the host."""

    signal: asyncio.Event
    on_partial_outputs: Callable[[Outputs], None] | None

    def get_plugin_config(self, name: str) -> str | None: ...


class LocalProcessContext:
    """In-process context for running the node outside a host.

    Args:
        plugin_config: Plugin settings by name.
        on_partial_outputs: Receives each partial output snapshot.
        signal: Cancellation signal; a fresh one is created when omitted.
    """

    def __init__(
        self,
        plugin_config: dict[str, str] | None = None,
        on_partial_outputs: Callable[[Outputs], None] | None = None,
        signal: asyncio.Event | None = None,
    ) -> None:
        self._plugin_config = plugin_config or {}
        self.on_partial_outputs = on_partial_outputs
        self.signal = signal or asyncio.Event()

    def get_plugin_config(self, name: str) -> str | None:
        """Return a plugin setting, or None when unset."""
        return self._plugin_config.get(name)


class NodeInputDefinition(BaseModel):
    """Declares an input port."""

    id: str
    title: str
    data_type: str | list[str]
    required: bool = False


class NodeOutputDefinition(BaseModel):
    """Declares an output port."""

    id: str
    title: str
    data_type: str


class EditorOption(BaseModel):
    """One entry of a dropdown editor."""

    value: str
    label: str


class EditorDefinition(BaseModel):
    """Declares a field in the node's settings panel."""

    type: Literal["dropdown", "string", "number", "toggle"]
    label: str
    data_key: str
    use_input_toggle_data_key: str | None = None
    options: list[EditorOption] | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None


class NodeUIData(BaseModel):
    """Context menu and info box text."""

    context_menu_title: str
    group: str
    info_box_title: str
    info_box_body: str


class PluginConfigEntry(BaseModel):
    """A plugin-level setting the host stores on the user's behalf."""

    type: Literal["secret", "string"]
    label: str
    description: str
    pull_environment_variable: str | None = None
    helper_text: str | None = None


class ContextMenuGroup(BaseModel):
    """A group the host shows in the node context menu."""

    id: str
    label: str
