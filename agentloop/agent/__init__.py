"""
agentloop Agent - ReAct loop, coordinator and built-in meta tools
"""

from .react_config import ReactLoopConfig
from .context_manager import ContextManager
from .cancellation import CancellationToken
from .state import (
    AgentState,
    Cancelled,
    Completed,
    Error,
    ExecutingTool,
    Idle,
    StateFlow,
    StateSubscription,
    Thinking,
)
from .react_loop import ReActLoop
from .builtin_tools import ActivateToolsPlugin, SummarizationPlugin
from .coordinator import AgentCoordinator, ExecutionContext
from .delegate import AgentProfile, DelegateAgentPlugin

__all__ = [
    "ReactLoopConfig",
    "ContextManager",
    "CancellationToken",
    "AgentState",
    "Cancelled",
    "Completed",
    "Error",
    "ExecutingTool",
    "Idle",
    "StateFlow",
    "StateSubscription",
    "Thinking",
    "ReActLoop",
    "ActivateToolsPlugin",
    "SummarizationPlugin",
    "AgentCoordinator",
    "ExecutionContext",
    "AgentProfile",
    "DelegateAgentPlugin",
]
