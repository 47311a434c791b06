"""
agentloop Tools - Tool definitions, plugins, registry and executor

- ToolDefinition / RegisteredTool: what the LLM sees and who runs it
- Plugin / FunctionPlugin / @tool: the capability behind every tool
- ToolRegistry: process-scoped tool catalogue with category views
- ToolExecutor: runs tool calls with timeouts and persists observations
"""

from .models import (
    PluginContext,
    PluginMetadata,
    RegisteredTool,
    ToolDefinition,
    ToolExecutionFailure,
    ToolExecutionResult,
    ToolExecutionSuccess,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)
from .decorator import FunctionTool, build_json_schema, tool
from .plugin import FunctionPlugin, LoadedPlugin, Plugin
from .registry import ToolRegistry
from .executor import ToolExecutor, truncate_for_storage

__all__ = [
    "PluginContext",
    "PluginMetadata",
    "RegisteredTool",
    "ToolDefinition",
    "ToolExecutionFailure",
    "ToolExecutionResult",
    "ToolExecutionSuccess",
    "ToolFailure",
    "ToolResult",
    "ToolSuccess",
    "FunctionTool",
    "build_json_schema",
    "tool",
    "FunctionPlugin",
    "LoadedPlugin",
    "Plugin",
    "ToolRegistry",
    "ToolExecutor",
    "truncate_for_storage",
]
