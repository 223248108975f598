"""Plugin definition registered with the workflow host."""

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

from mistral_chat.host import ContextMenuGroup, PluginConfigEntry
from mistral_chat.llm.accumulator import SettledResponse
from mistral_chat.llm.cache import ResponseCache
from mistral_chat.llm.client import MistralClient
from mistral_chat.logging_config import get_logger
from mistral_chat.node import API_KEY_CONFIG, MistralChatNode

logger = get_logger(__name__)

PLUGIN_ID = "mistral"
PLUGIN_NAME = "Mistral AI"
API_KEY_ENV_VAR = "MISTRAL_API_KEY"


class MistralPlugin(BaseModel):
    """The plugin's identity, settings and nodes."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = PLUGIN_ID
    name: str = PLUGIN_NAME
    config_spec: dict[str, PluginConfigEntry]
    context_menu_groups: list[ContextMenuGroup]
    nodes: list[MistralChatNode]

    def register(self, register_node: Callable[[MistralChatNode], None]) -> None:
        """Hand every node to the host's registration callback."""
        for node in self.nodes:
            logger.debug(f"Registering node {type(node).__name__}")
            register_node(node)


def create_plugin(
    client: MistralClient | None = None,
    cache: ResponseCache[SettledResponse] | None = None,
) -> MistralPlugin:
    """Build the plugin.

    Args:
        client: API client shared by the plugin's nodes.
        cache: Response cache owned by the host integration.

    Returns:
        The plugin, ready to register.
    """
    logger.info("Initializing Mistral plugin")
    return MistralPlugin(
        config_spec={
            API_KEY_CONFIG: PluginConfigEntry(
                type="secret",
                label="Mistral API Key",
                description="The API key for accessing Mistral AI.",
                pull_environment_variable=API_KEY_ENV_VAR,
                helper_text=f"You may also set the {API_KEY_ENV_VAR} environment variable.",
            ),
        },
        context_menu_groups=[ContextMenuGroup(id="ai-chat-mistral", label="AI/Chat (Mistral)")],
        nodes=[MistralChatNode(client=client, cache=cache)],
    )
