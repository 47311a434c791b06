"""
Shared constants for the agentloop engine.

Centralizes values needed by the tool executor, the ReAct loop and the
coordinator so they stay in one place and avoid circular imports.
"""

from typing import Any, Dict

# ── Tool categories ──

CORE_CATEGORY = "core"
"""Tools in this category are always visible to the model."""

# ── Tool execution ──

DEFAULT_TOOL_TIMEOUT_SECONDS = 30.0

MAX_STORED_RESULT_CHARS = 16_384
"""Persisted tool-result content is capped at this many characters."""

MAX_LLM_TOOL_RESULT_CHARS = 32_768
"""A single tool observation sent back to the LLM is capped at this many characters."""

CONVERSATION_ID_ARG = "_conversation_id"
"""Implicit argument injected into every tool call before dispatch."""

# ── Finish signals ──

FINISH_STOP = "stop"
FINISH_TOOL_CALLS = "tool_calls"

# ── Message roles ──

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_TOOL = "tool"
ROLE_META = "meta"

# ── Built-in tools ──

ACTIVATE_TOOLS_TOOL_NAME = "activate_tools"
ACTIVATE_TOOLS_PLUGIN_ID = "activate_tools"

SUMMARIZE_TOOL_NAME = "summarize_conversation"
SUMMARIZATION_PLUGIN_ID = "summarization"

DELEGATE_TOOL_NAME = "delegate_to_agent"
DELEGATE_PLUGIN_ID = "delegate_agent"

# ── Meta record markers ──

SUMMARY_MARKER = "summary"
STOPPED_MARKER = "stopped"

SUMMARIZE_TOOL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {},
}
