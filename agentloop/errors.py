"""
agentloop Errors - Exception taxonomy for the execution engine

Tool-level errors (ToolNotFoundError, ArgumentParseError, ToolTimeoutError,
ToolRuntimeError) are recovered locally: the executor turns them into
observations that are fed back to the model.

Turn-level errors (LLMTransportError, ProtocolViolationError,
IterationLimitExceededError, AgentCancelledError) terminate the turn and are
surfaced to the caller inside a Failure outcome.
"""

from typing import Optional


class AgentLoopError(Exception):
    """Base class for every error raised or reported by agentloop."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


# ── Tool-level (locally recovered) ──


class ToolError(AgentLoopError):
    """Base class for errors confined to a single tool call."""


class ToolNotFoundError(ToolError):
    pass


class ArgumentParseError(ToolError):
    pass


class ToolTimeoutError(ToolError):
    pass


class ToolRuntimeError(ToolError):
    pass


# ── Turn-level (terminal) ──


class TurnError(AgentLoopError):
    """Base class for errors that end the current turn."""


class LLMTransportError(TurnError):
    """The LLM call failed (network, auth, provider error)."""


class ContextOverflowError(LLMTransportError):
    """The request exceeded the model's context window."""


class ProtocolViolationError(TurnError):
    """The LLM response broke the function-calling contract."""


class IterationLimitExceededError(TurnError):
    pass


class AgentCancelledError(TurnError):
    """The turn was cancelled cooperatively.

    Kept distinct from ordinary failures so callers can render "stopped"
    rather than "error".
    """

    def __init__(self, message: str = "Execution cancelled", cause: Optional[BaseException] = None):
        super().__init__(message, cause)


# ── Registry / configuration ──


class DuplicateToolError(AgentLoopError):
    """A plugin tried to register a tool name owned by another plugin."""


class ConfigError(AgentLoopError):
    pass
