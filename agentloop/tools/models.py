"""
agentloop Tool Models - Data structures for tool registration and execution
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..constants import CORE_CATEGORY
from ..llm.base import ToolCall


@dataclass
class ToolDefinition:
    """
    Definition of a callable tool as presented to the LLM.

    Attributes:
        name: Tool name, unique within any view presented to the model
        description: What the tool does
        parameters: JSON Schema for the tool arguments
        timeout_seconds: Per-tool timeout; None or <= 0 falls back to the executor default
        category: Optional category overriding the owning plugin's category
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    timeout_seconds: Optional[float] = None
    category: Optional[str] = None

    def to_openai_schema(self) -> Dict[str, Any]:
        """Convert to OpenAI function-calling tool schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class PluginMetadata:
    """Static description of a plugin and the tools it provides."""

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    category: str = CORE_CATEGORY
    tools: List[ToolDefinition] = field(default_factory=list)


@dataclass
class RegisteredTool:
    """A tool together with the plugin that executes it."""

    plugin_id: str
    definition: ToolDefinition
    plugin: Any
    category: str = CORE_CATEGORY

    @property
    def name(self) -> str:
        return self.definition.name


# ── Plugin outcome ──


@dataclass
class ToolSuccess:
    output: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return True


@dataclass
class ToolFailure:
    error: str
    cause: Optional[BaseException] = None

    @property
    def is_success(self) -> bool:
        return False


ToolResult = Union[ToolSuccess, ToolFailure]


# ── Executor outcome ──


@dataclass
class ToolExecutionSuccess:
    tool_call: ToolCall
    output: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return True

    @property
    def observation(self) -> str:
        """Content of the tool-role message fed back to the model."""
        return self.output


@dataclass
class ToolExecutionFailure:
    tool_call: ToolCall
    error: str
    cause: Optional[BaseException] = None

    @property
    def is_success(self) -> bool:
        return False

    @property
    def observation(self) -> str:
        return f"Error: {self.error}"


ToolExecutionResult = Union[ToolExecutionSuccess, ToolExecutionFailure]


@dataclass
class PluginContext:
    """Passed to Plugin.on_load; carries app-level settings a plugin may need."""

    plugin_id: str
    settings: Dict[str, Any] = field(default_factory=dict)
