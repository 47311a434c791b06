"""
agentloop - An agent execution engine built around a ReAct loop

Given a user instruction, a set of callable tools and a language-model
backend, agentloop drives an iterative reason/act/observe cycle until the
model produces a final answer.

Key Features:
- ReAct loop with mid-loop message injection and context trimming
- Plugin-based tools with on-demand category activation
- Per-tool timeouts; tool failures are fed back to the model
- Conversation summarization and cooperative cancellation
- Built-in LLM client (powered by litellm), in-memory and Postgres storage

Quick Start:
    from typing import Annotated
    from agentloop import AgentLoopApp, FunctionPlugin, tool

    @tool
    async def get_time(city: Annotated[str, "City name"]) -> str:
        '''Get the local time in a city'''
        return "09:41"

    app = AgentLoopApp("config.yaml")
    await app.register_plugin(FunctionPlugin("clock", "Clock", tools=[get_time]))
    outcome = await app.chat("conv1", "What time is it in Tokyo?")

Embedding the engine directly:
    registry = ToolRegistry()
    store = InMemoryMessageStore()
    coordinator = AgentCoordinator(
        client_provider=lambda: llm_client,
        tool_registry=registry,
        tool_executor=ToolExecutor(registry, store),
        message_store=store,
        conversation_id="conv1",
    )
    outcome = await coordinator.execute("Hello!", "You are a helpful assistant.")
"""

__version__ = "0.1.0"

from .errors import (
    AgentCancelledError,
    AgentLoopError,
    ArgumentParseError,
    ConfigError,
    ContextOverflowError,
    DuplicateToolError,
    IterationLimitExceededError,
    LLMTransportError,
    ProtocolViolationError,
    ToolNotFoundError,
    ToolRuntimeError,
    ToolTimeoutError,
)
from .result import Failure, Outcome, Success
from .protocols import LLMClientProtocol, MessageStoreProtocol
from .llm import (
    BaseLLMClient,
    LiteLLMClient,
    LLMConfig,
    LLMResponse,
    MediaData,
    Message,
    ToolCall,
    Usage,
)
from .storage import InMemoryMessageStore, MessageRecord, PostgresMessageStore
from .tools import (
    FunctionPlugin,
    LoadedPlugin,
    Plugin,
    PluginMetadata,
    ToolDefinition,
    ToolExecutor,
    ToolFailure,
    ToolRegistry,
    ToolSuccess,
    tool,
)
from .agent import (
    AgentCoordinator,
    AgentProfile,
    AgentState,
    CancellationToken,
    DelegateAgentPlugin,
    ExecutionContext,
    ReActLoop,
    ReactLoopConfig,
    StateFlow,
)
from .config import AppConfig, load_config
from .app import AgentLoopApp

__all__ = [
    "__version__",
    # Errors
    "AgentCancelledError",
    "AgentLoopError",
    "ArgumentParseError",
    "ConfigError",
    "ContextOverflowError",
    "DuplicateToolError",
    "IterationLimitExceededError",
    "LLMTransportError",
    "ProtocolViolationError",
    "ToolNotFoundError",
    "ToolRuntimeError",
    "ToolTimeoutError",
    # Outcome
    "Failure",
    "Outcome",
    "Success",
    # Protocols
    "LLMClientProtocol",
    "MessageStoreProtocol",
    # LLM
    "BaseLLMClient",
    "LiteLLMClient",
    "LLMConfig",
    "LLMResponse",
    "MediaData",
    "Message",
    "ToolCall",
    "Usage",
    # Storage
    "InMemoryMessageStore",
    "MessageRecord",
    "PostgresMessageStore",
    # Tools
    "FunctionPlugin",
    "LoadedPlugin",
    "Plugin",
    "PluginMetadata",
    "ToolDefinition",
    "ToolExecutor",
    "ToolFailure",
    "ToolRegistry",
    "ToolSuccess",
    "tool",
    # Agent
    "AgentCoordinator",
    "AgentProfile",
    "AgentState",
    "CancellationToken",
    "DelegateAgentPlugin",
    "ExecutionContext",
    "ReActLoop",
    "ReactLoopConfig",
    "StateFlow",
    # App
    "AppConfig",
    "load_config",
    "AgentLoopApp",
]
