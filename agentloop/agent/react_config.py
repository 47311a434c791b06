"""ReAct loop configuration.

Centralizes all tunable parameters for the ReAct loop and the coordinator
that drives it.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..constants import DEFAULT_TOOL_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class ReactLoopConfig:
    """All ReAct loop configuration centralized in one place."""

    # Loop control
    max_iterations: int = 200
    temperature: float = 0.2

    # Tool execution
    tool_execution_timeout: float = DEFAULT_TOOL_TIMEOUT_SECONDS
    """Default tool timeout in seconds (tools may override)."""

    # Context management
    context_window: int = 200_000
    """Context window size in tokens."""
    summarization_threshold: float = 0.8
    """Summarize conversation history before a turn when usage exceeds this fraction."""
    mid_loop_trim_threshold: float = 0.85
    """Trim working messages inside a turn when usage exceeds this fraction."""
    keep_recent_messages: int = 6
    """Messages always kept at the tail of a mid-loop trim."""
    summary_keep_share: float = 0.3
    """Share of the window reserved for recent messages kept verbatim by summarization."""

    # Overflow recovery
    max_overflow_retries: int = 2
    overflow_trim_share: float = 0.5
    """Trim target, as a fraction of the window, after a context-overflow error."""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReactLoopConfig":
        """Build from a config mapping, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown agent config keys: {', '.join(sorted(unknown))}")
        return cls(**{k: v for k, v in data.items() if k in known})
