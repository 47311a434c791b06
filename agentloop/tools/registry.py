"""
agentloop Tool Registry - Tool definitions and their owning plugins

The registry maps tool names to the plugin that executes them and computes
filtered views for the model:

    visible = core tools ∪ tools of activated categories  [∩ allow-list]

It is process-scoped shared state: plugins may be loaded, unloaded, enabled
or disabled while a ReAct loop is running. Conversation-scoped state
(activated categories, allow-lists) is never stored here; callers pass it in.

Usage:
    registry = ToolRegistry()
    registry.register_plugin(loaded_plugin)

    definitions = registry.get_tool_definitions({"gmail"})
    tool = registry.get_tool("search_gmail")

    registry.unregister_plugin("gmail_api")
"""

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..constants import CORE_CATEGORY
from ..errors import DuplicateToolError
from .models import RegisteredTool, ToolDefinition
from .plugin import LoadedPlugin

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry of tools from loaded plugins."""

    def __init__(self) -> None:
        self._tools: Dict[str, RegisteredTool] = {}
        self._category_descriptions: Dict[str, str] = {}
        self._disabled: Set[str] = set()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_plugin(self, loaded_plugin: LoadedPlugin) -> None:
        """Register every tool of *loaded_plugin*.

        Re-registering the same plugin id replaces its tools. A tool name
        already owned by a different plugin raises DuplicateToolError and
        nothing from this plugin is registered.
        """
        metadata = loaded_plugin.metadata
        names = [d.name for d in metadata.tools]
        duplicates_in_plugin = {n for n in names if names.count(n) > 1}
        if duplicates_in_plugin:
            raise DuplicateToolError(
                f"Plugin '{metadata.id}' declares duplicate tool(s): "
                f"{', '.join(sorted(duplicates_in_plugin))}"
            )

        with self._lock:
            for name in names:
                existing = self._tools.get(name)
                if existing is not None and existing.plugin_id != metadata.id:
                    raise DuplicateToolError(
                        f"Tool '{name}' from plugin '{metadata.id}' is already "
                        f"registered by plugin '{existing.plugin_id}'"
                    )

            still_disabled: Set[str] = set()
            if any(t.plugin_id == metadata.id for t in self._tools.values()):
                logger.warning(f"Plugin '{metadata.id}' re-registered, replacing its tools")
                still_disabled = {
                    n for n in self._disabled if self._tools[n].plugin_id == metadata.id
                }
                self._remove_plugin_tools(metadata.id)

            for definition in metadata.tools:
                self._tools[definition.name] = RegisteredTool(
                    plugin_id=metadata.id,
                    definition=definition,
                    plugin=loaded_plugin.instance,
                    category=definition.category or metadata.category,
                )
            # a reload keeps tools that were disabled hidden
            self._disabled.update(n for n in still_disabled if n in self._tools)

            if metadata.category != CORE_CATEGORY:
                self._category_descriptions[metadata.category] = metadata.description

        logger.info(
            f"Registered plugin '{metadata.id}' ({len(names)} tools, category={metadata.category})"
        )

    def unregister_plugin(self, plugin_id: str) -> int:
        """Remove every tool owned by *plugin_id*. Returns the number removed."""
        with self._lock:
            removed = self._remove_plugin_tools(plugin_id)
        if removed:
            logger.info(f"Unregistered plugin '{plugin_id}' ({removed} tools)")
        return removed

    def _remove_plugin_tools(self, plugin_id: str) -> int:
        names = [n for n, t in self._tools.items() if t.plugin_id == plugin_id]
        for name in names:
            del self._tools[name]
            self._disabled.discard(name)
        return len(names)

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def disable_tool(self, name: str) -> bool:
        """Hide *name* from every view without unregistering it."""
        with self._lock:
            if name not in self._tools:
                return False
            self._disabled.add(name)
            return True

    def enable_tool(self, name: str) -> bool:
        with self._lock:
            if name not in self._tools:
                return False
            self._disabled.discard(name)
            return True

    def is_enabled(self, name: str) -> bool:
        with self._lock:
            return name in self._tools and name not in self._disabled

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        """Return the enabled tool named *name*, or None."""
        with self._lock:
            if name in self._disabled:
                return None
            return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return self.get_tool(name) is not None

    def get_plugin(self, plugin_id: str) -> Optional[Any]:
        """Return the instance backing *plugin_id*, or None if it has no tools here."""
        with self._lock:
            for registered in self._tools.values():
                if registered.plugin_id == plugin_id:
                    return registered.plugin
        return None

    def get_all_tools(self) -> List[RegisteredTool]:
        with self._lock:
            return list(self._tools.values())

    def size(self) -> int:
        with self._lock:
            return len(self._tools)

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, name: str) -> bool:
        return self.has_tool(name)

    def clear(self) -> None:
        with self._lock:
            self._tools.clear()
            self._category_descriptions.clear()
            self._disabled.clear()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_tool_definitions(
        self,
        active_categories: Optional[Iterable[str]] = None,
        allow: Optional[Iterable[str]] = None,
    ) -> List[ToolDefinition]:
        """Return definitions visible under the given categories and allow-list.

        Args:
            active_categories: Activated on-demand categories. Core tools are
                always included. None returns every enabled tool.
            allow: Optional allow-list of tool names intersected with the result.
        """
        categories = set(active_categories) if active_categories is not None else None
        allowed = set(allow) if allow is not None else None
        with self._lock:
            tools = [t for n, t in self._tools.items() if n not in self._disabled]
        definitions = []
        for t in tools:
            if categories is not None and t.category != CORE_CATEGORY and t.category not in categories:
                continue
            if allowed is not None and t.name not in allowed:
                continue
            definitions.append(t.definition)
        return definitions

    def get_on_demand_categories(self) -> Set[str]:
        """All non-core categories that have at least one enabled tool."""
        with self._lock:
            return {
                t.category for n, t in self._tools.items()
                if t.category != CORE_CATEGORY and n not in self._disabled
            }

    def get_category_description(self, category: str) -> str:
        with self._lock:
            return self._category_descriptions.get(category) or category

    def copy_filtered(self, predicate: Callable[[RegisteredTool], bool]) -> "ToolRegistry":
        """Create an isolated registry holding only the tools matching *predicate*.

        Used for delegated sub-agents, e.g. to deny the delegation tool itself
        and block recursive self-delegation.
        """
        copy = ToolRegistry()
        with self._lock:
            for name, registered in self._tools.items():
                if predicate(registered):
                    copy._tools[name] = registered
                    if name in self._disabled:
                        copy._disabled.add(name)
            copy._category_descriptions.update(self._category_descriptions)
        return copy
