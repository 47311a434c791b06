"""
Built-in meta tools registered by every coordinator.

- ``activate_tools``: lets the model switch on on-demand tool categories for
  the current conversation. Core tools are always visible; domain tools
  (e.g. gmail, calendar) appear only after activation.
- ``summarize_conversation``: lets the model compact the conversation when
  the user asks for it.

One plugin instance of each kind is shared per registry. Coordinators bind
their conversation-scoped state to it, keyed by the ``_conversation_id``
argument the executor injects into every call, so concurrent conversations
never see each other's categories.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Generic, MutableSet, Optional, TypeVar

from ..constants import (
    ACTIVATE_TOOLS_PLUGIN_ID,
    ACTIVATE_TOOLS_TOOL_NAME,
    CONVERSATION_ID_ARG,
    CORE_CATEGORY,
    SUMMARIZATION_PLUGIN_ID,
    SUMMARIZE_TOOL_NAME,
    SUMMARIZE_TOOL_SCHEMA,
)
from ..tools.models import PluginMetadata, ToolDefinition, ToolFailure, ToolResult, ToolSuccess
from ..tools.plugin import LoadedPlugin, Plugin
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

B = TypeVar("B")


class ConversationBoundPlugin(Plugin, Generic[B]):
    """Plugin whose per-call state is looked up by conversation id."""

    tool_name: str = ""

    def __init__(self) -> None:
        self._bindings: Dict[str, B] = {}

    def bind(self, conversation_id: str, binding: B) -> None:
        self._bindings[conversation_id] = binding

    def unbind(self, conversation_id: str) -> int:
        """Drop the binding; returns how many conversations remain bound."""
        self._bindings.pop(conversation_id, None)
        return len(self._bindings)

    @property
    def bound_conversations(self) -> int:
        return len(self._bindings)

    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        if tool_name != self.tool_name:
            return ToolFailure(f"Unknown tool: {tool_name}")
        binding = self._bindings.get(arguments.get(CONVERSATION_ID_ARG) or "")
        if binding is None:
            return ToolFailure(f"{tool_name} is not available in this context")
        return await self.run(binding, arguments)

    async def run(self, binding: B, arguments: Dict[str, Any]) -> ToolResult:
        raise NotImplementedError


# ── activate_tools ──


class ActivateToolsPlugin(ConversationBoundPlugin[MutableSet[str]]):
    """Adds requested categories to the calling conversation's sticky set."""

    tool_name = ACTIVATE_TOOLS_TOOL_NAME

    def __init__(self, registry: ToolRegistry) -> None:
        super().__init__()
        self.registry = registry

    async def run(self, active_categories: MutableSet[str], arguments: Dict[str, Any]) -> ToolResult:
        raw = arguments.get("categories")
        if raw is None:
            return ToolFailure("Missing required field: categories")
        if isinstance(raw, str):
            raw = [raw]
        requested = [str(c) for c in raw]

        available = self.registry.get_on_demand_categories()
        valid = sorted({c for c in requested if c in available})
        invalid = sorted({c for c in requested if c not in available})

        if not valid:
            return ToolFailure(
                f"No valid categories found. Available: {', '.join(sorted(available))}"
            )

        active_categories.update(valid)
        logger.info(f"[Tool] activated categories {valid} (active: {sorted(active_categories)})")

        activated = [
            t.definition for t in self.registry.get_all_tools()
            if t.category in valid and self.registry.is_enabled(t.name)
        ]
        lines = [f"Activated {len(valid)} category(s): {', '.join(valid)}", "", "New tools now available:"]
        lines.extend(f"- {d.name}: {d.description[:100]}" for d in activated)
        output = "\n".join(lines) + "\n"
        if invalid:
            output += f"\nUnknown categories (ignored): {', '.join(invalid)}"
        return ToolSuccess(output)

    @staticmethod
    def metadata(registry: ToolRegistry) -> PluginMetadata:
        categories = sorted(registry.get_on_demand_categories())
        if categories:
            category_list = "\n".join(
                f"- {c}: {registry.get_category_description(c)}" for c in categories
            )
        else:
            category_list = "(none currently registered)"

        items: Dict[str, Any] = {"type": "string"}
        if categories:
            items["enum"] = categories

        return PluginMetadata(
            id=ACTIVATE_TOOLS_PLUGIN_ID,
            name="Tool Activator",
            description="Activates on-demand tool categories for the current conversation",
            category=CORE_CATEGORY,
            tools=[ToolDefinition(
                name=ACTIVATE_TOOLS_TOOL_NAME,
                description=(
                    "Activate additional tool categories for this conversation.\n\n"
                    "Core tools are always available. Call this to load domain-specific "
                    "tools when needed.\n\n"
                    f"Available categories:\n{category_list}\n\n"
                    "Once activated, the tools remain available for the rest of this conversation."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "categories": {
                            "type": "array",
                            "items": items,
                            "description": "Tool categories to activate",
                        },
                    },
                    "required": ["categories"],
                },
            )],
        )


# ── summarize_conversation ──

Summarizer = Callable[[], Awaitable[str]]


class SummarizationPlugin(ConversationBoundPlugin[Summarizer]):
    """Runs the calling conversation's summarizer and reports its status."""

    tool_name = SUMMARIZE_TOOL_NAME

    async def run(self, summarize: Summarizer, arguments: Dict[str, Any]) -> ToolResult:
        try:
            return ToolSuccess(await summarize())
        except Exception as e:
            logger.error(f"[Tool] summarization failed: {e}")
            return ToolFailure(f"Summarization failed: {e}", e)

    @staticmethod
    def metadata() -> PluginMetadata:
        return PluginMetadata(
            id=SUMMARIZATION_PLUGIN_ID,
            name="Conversation Summarization",
            description="Summarize and compact the conversation context",
            category=CORE_CATEGORY,
            tools=[ToolDefinition(
                name=SUMMARIZE_TOOL_NAME,
                description=(
                    "Summarize and compact the current conversation context.\n\n"
                    "Call this tool when the user asks to:\n"
                    "- Summarize the conversation\n"
                    "- Compact or compress the context\n"
                    "- Free up context space\n"
                    "- Start fresh while keeping key information\n\n"
                    "This replaces older messages with a concise summary, preserving\n"
                    "key topics, decisions, and pending tasks. Recent messages are kept intact.\n\n"
                    "No parameters are required."
                ),
                parameters=dict(SUMMARIZE_TOOL_SCHEMA),
            )],
        )


# ── Registration helpers ──


def bind_activate_tools(
    registry: ToolRegistry,
    conversation_id: str,
    active_categories: MutableSet[str],
) -> Optional[ActivateToolsPlugin]:
    """Bind *active_categories* to the registry's activate_tools plugin.

    Registers the plugin on first use and refreshes its metadata when the set
    of on-demand categories changed. Returns None when the registry has no
    on-demand categories.
    """
    if not registry.get_on_demand_categories():
        return None
    metadata = ActivateToolsPlugin.metadata(registry)
    plugin = registry.get_plugin(ACTIVATE_TOOLS_PLUGIN_ID)
    if not isinstance(plugin, ActivateToolsPlugin) or plugin.registry is not registry:
        plugin = ActivateToolsPlugin(registry)
        registry.register_plugin(LoadedPlugin(metadata, plugin))
    else:
        # disabled tools are invisible to get_tool but must not be re-registered
        current = next(
            (t for t in registry.get_all_tools() if t.name == ACTIVATE_TOOLS_TOOL_NAME), None
        )
        if current is None or current.definition != metadata.tools[0]:
            registry.register_plugin(LoadedPlugin(metadata, plugin))
    plugin.bind(conversation_id, active_categories)
    return plugin


def bind_summarization(
    registry: ToolRegistry,
    conversation_id: str,
    summarize: Summarizer,
) -> SummarizationPlugin:
    """Bind *summarize* to the registry's summarize_conversation plugin."""
    plugin = registry.get_plugin(SUMMARIZATION_PLUGIN_ID)
    if not isinstance(plugin, SummarizationPlugin):
        plugin = SummarizationPlugin()
        registry.register_plugin(LoadedPlugin(SummarizationPlugin.metadata(), plugin))
    plugin.bind(conversation_id, summarize)
    return plugin


def release_binding(
    registry: ToolRegistry,
    plugin: ConversationBoundPlugin,
    plugin_id: str,
    conversation_id: str,
) -> None:
    """Unbind *conversation_id*; unregister the plugin when nobody uses it."""
    remaining = plugin.unbind(conversation_id)
    if remaining == 0 and registry.get_plugin(plugin_id) is plugin:
        registry.unregister_plugin(plugin_id)
