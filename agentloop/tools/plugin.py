"""
agentloop Plugins - The single capability interface behind every tool

The registry is agnostic to which variant backs a tool. Two variants ship
with agentloop:

- Plugin subclasses implementing ``execute(tool_name, arguments)`` directly
  (the built-in meta tools are written this way)
- FunctionPlugin, which bundles ``@tool``-decorated Python callables

Usage:
    @tool(category="notes")
    async def add_note(text: Annotated[str, "Note body"]) -> str:
        '''Save a note'''
        ...

    plugin = FunctionPlugin("notes", "Notes", "Create and search notes",
                            tools=[add_note], category="notes")
    registry.register_plugin(plugin.loaded())
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..constants import CORE_CATEGORY
from .decorator import FunctionTool
from .models import PluginContext, PluginMetadata, ToolFailure, ToolResult

logger = logging.getLogger(__name__)


class Plugin(ABC):
    """Executable backend for one or more tools."""

    async def on_load(self, context: PluginContext) -> None:
        """Called once when the plugin is loaded."""

    @abstractmethod
    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        """Run *tool_name* with structured *arguments*."""

    async def on_unload(self) -> None:
        """Called once when the plugin is unloaded."""


@dataclass
class LoadedPlugin:
    """A plugin instance paired with its metadata, ready for registration."""

    metadata: PluginMetadata
    instance: Plugin

    @property
    def id(self) -> str:
        return self.metadata.id


class FunctionPlugin(Plugin):
    """Plugin made of ``@tool``-decorated Python callables."""

    def __init__(
        self,
        plugin_id: str,
        name: str,
        description: str = "",
        tools: Optional[List[FunctionTool]] = None,
        category: str = CORE_CATEGORY,
        version: str = "1.0.0",
    ):
        self.plugin_id = plugin_id
        self.name = name
        self.description = description
        self.category = category
        self.version = version
        self._tools: Dict[str, FunctionTool] = {}
        for t in tools or []:
            self._tools[t.definition.name] = t

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def metadata(self) -> PluginMetadata:
        return PluginMetadata(
            id=self.plugin_id,
            name=self.name,
            description=self.description,
            version=self.version,
            category=self.category,
            tools=[t.definition for t in self._tools.values()],
        )

    def loaded(self) -> LoadedPlugin:
        return LoadedPlugin(metadata=self.metadata(), instance=self)

    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        function_tool = self._tools.get(tool_name)
        if function_tool is None:
            return ToolFailure(f"Unknown tool: {tool_name}")
        return await function_tool.invoke(arguments)
