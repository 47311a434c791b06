"""
Agent delegation - hand a self-contained task to a specialized sub-agent.

The sub-agent runs in its own temporary conversation with an isolated copy
of the tool registry. The copy never contains ``delegate_to_agent`` itself,
which blocks recursive self-delegation.

Usage:
    profiles = [AgentProfile(name="researcher", description="Web research",
                             system_prompt="You research topics thoroughly.",
                             allowed_tools=["web_search", "web_fetch"])]
    plugin = DelegateAgentPlugin(profiles, lambda: llm_client, registry, store)
    registry.register_plugin(plugin.loaded())
"""

import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..constants import DELEGATE_PLUGIN_ID, DELEGATE_TOOL_NAME
from ..protocols import LLMClientProtocol, MessageStoreProtocol
from ..tools.executor import ToolExecutor
from ..tools.models import PluginMetadata, ToolDefinition, ToolFailure, ToolResult, ToolSuccess
from ..tools.plugin import LoadedPlugin, Plugin
from ..tools.registry import ToolRegistry
from .coordinator import AgentCoordinator
from .react_config import ReactLoopConfig

logger = logging.getLogger(__name__)

DELEGATION_TIMEOUT_SECONDS = 600.0
MAX_DELEGATE_ITERATIONS = 50


@dataclass
class AgentProfile:
    """A named sub-agent: its prompt, model and the tools it may use."""

    name: str
    description: str = ""
    system_prompt: str = "You are a helpful assistant."
    model: Optional[str] = None
    allowed_tools: Optional[List[str]] = None
    """None means every tool of the parent registry (except delegation)."""
    max_iterations: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentProfile":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            system_prompt=data.get("system_prompt", "You are a helpful assistant."),
            model=data.get("model"),
            allowed_tools=data.get("allowed_tools"),
            max_iterations=data.get("max_iterations"),
        )


class DelegateAgentPlugin(Plugin):
    """Exposes ``delegate_to_agent(agent, task)``."""

    def __init__(
        self,
        profiles: List[AgentProfile],
        client_provider: Callable[[], LLMClientProtocol],
        registry: ToolRegistry,
        message_store: MessageStoreProtocol,
        config: Optional[ReactLoopConfig] = None,
        default_model: str = "",
    ):
        self.profiles = {p.name: p for p in profiles}
        self.client_provider = client_provider
        self.registry = registry
        self.message_store = message_store
        self.config = config or ReactLoopConfig()
        self.default_model = default_model

    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        if tool_name != DELEGATE_TOOL_NAME:
            return ToolFailure(f"Unknown tool: {tool_name}")

        agent_name = arguments.get("agent")
        if not agent_name:
            return ToolFailure("Missing required field: agent")
        task = arguments.get("task")
        if not task:
            return ToolFailure("Missing required field: task")

        profile = self.profiles.get(agent_name)
        if profile is None:
            return ToolFailure(f"Agent profile '{agent_name}' not found")

        return await self._delegate(profile, task)

    async def _delegate(self, profile: AgentProfile, task: str) -> ToolResult:
        logger.info(f"[Tool] delegating to agent '{profile.name}': {task[:100]}")
        allowed = set(profile.allowed_tools) if profile.allowed_tools is not None else None
        sub_registry = self.registry.copy_filtered(
            lambda t: t.name != DELEGATE_TOOL_NAME and (allowed is None or t.name in allowed)
        )
        sub_executor = ToolExecutor(
            sub_registry,
            self.message_store,
            default_timeout=self.config.tool_execution_timeout,
        )
        conversation_id = f"delegate_{profile.name}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        child = AgentCoordinator(
            client_provider=self.client_provider,
            tool_registry=sub_registry,
            tool_executor=sub_executor,
            message_store=self.message_store,
            conversation_id=conversation_id,
            config=self.config,
            tool_filter=allowed,
            owns_registry=True,
        )
        if allowed is not None:
            # the allow-list hides activate_tools, so allowed category tools start active
            child.active_categories.update(sub_registry.get_on_demand_categories())
        max_iterations = min(
            self.config.max_iterations if profile.max_iterations is None else profile.max_iterations,
            MAX_DELEGATE_ITERATIONS,
        )
        try:
            outcome = await child.execute(
                user_message=task,
                system_prompt=profile.system_prompt,
                model=profile.model or self.default_model,
                max_iterations=max_iterations,
                temperature=self.config.temperature,
            )
        finally:
            child.cleanup()

        if outcome.is_success:
            logger.info(f"[Tool] agent '{profile.name}' completed")
            return ToolSuccess(outcome.value, {"agent": profile.name})
        logger.warning(f"[Tool] agent '{profile.name}' failed: {outcome.error}")
        return ToolFailure(f"Agent '{profile.name}' failed: {outcome.error}", outcome.error)

    def metadata(self) -> PluginMetadata:
        delegatable = [p for p in self.profiles.values() if p.name != "main"]
        if delegatable:
            profile_list = "\n".join(f"- {p.name}: {p.description}" for p in delegatable)
        else:
            profile_list = "(no agent profiles available for delegation)"

        agent_schema: Dict[str, Any] = {
            "type": "string",
            "description": "Name of the agent profile to delegate to",
        }
        if delegatable:
            agent_schema["enum"] = [p.name for p in delegatable]

        return PluginMetadata(
            id=DELEGATE_PLUGIN_ID,
            name="Agent Delegation",
            description="Delegate tasks to specialized agent profiles",
            tools=[ToolDefinition(
                name=DELEGATE_TOOL_NAME,
                description=(
                    "Delegate a task to a specialized agent profile.\n\n"
                    "The sub-agent runs independently with its own system prompt and tools.\n"
                    "It does NOT see the current conversation history -- you must describe\n"
                    "the task fully in the 'task' parameter.\n\n"
                    f"Available agents for delegation:\n{profile_list}\n\n"
                    "IMPORTANT: Only delegate ONCE per task. After receiving the sub-agent's\n"
                    "result, use it directly in your response to the user."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "agent": agent_schema,
                        "task": {
                            "type": "string",
                            "description": (
                                "Complete description of the task. Be specific -- "
                                "the sub-agent has no access to the current conversation."
                            ),
                        },
                    },
                    "required": ["agent", "task"],
                },
                timeout_seconds=DELEGATION_TIMEOUT_SECONDS,
            )],
        )

    def loaded(self) -> LoadedPlugin:
        return LoadedPlugin(metadata=self.metadata(), instance=self)
