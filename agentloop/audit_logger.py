"""
Structured audit logging for engine decisions.

Produces JSON log entries via Python's standard logging module under
the ``agentloop.audit`` logger name. Each entry includes a timestamp,
event_type, optional conversation_id, and event-specific fields.

Usage::

    audit = AuditLogger(conversation_id="conv1")
    audit.log_tool_execution(
        tool_name="search_notes",
        args_summary={"query": "groceries"},
        success=True,
        duration_ms=12,
    )
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_audit_logger = logging.getLogger("agentloop.audit")


def summarize_args(arguments: Dict[str, Any], limit: int = 100) -> Dict[str, str]:
    """Truncated argument snapshot for observability."""
    return {k: str(v)[:limit] for k, v in arguments.items() if not k.startswith("_")}


class AuditLogger:
    """Structured audit logger for key engine decisions."""

    def __init__(self, conversation_id: Optional[str] = None) -> None:
        self._default_conversation_id = conversation_id

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> None:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
        }
        entry.update(fields)
        _audit_logger.info(json.dumps(entry, default=str))

    def _cid(self, conversation_id: Optional[str] = None) -> str:
        return conversation_id or self._default_conversation_id or ""

    def log_tool_execution(
        self,
        tool_name: str,
        args_summary: Dict[str, Any],
        success: bool,
        duration_ms: int,
        error: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> None:
        """Log a tool execution result."""
        fields: Dict[str, Any] = {
            "conversation_id": self._cid(conversation_id),
            "tool_name": tool_name,
            "args_summary": args_summary,
            "success": success,
            "duration_ms": duration_ms,
        }
        if error is not None:
            fields["error"] = error
        self._emit("tool_execution", fields)

    def log_react_turn(
        self,
        turn: int,
        tool_calls: List[str],
        final_answer: bool,
        conversation_id: Optional[str] = None,
    ) -> None:
        """Log a ReAct iteration summary."""
        self._emit("react_turn", {
            "conversation_id": self._cid(conversation_id),
            "turn": turn,
            "tool_calls": tool_calls,
            "tool_calls_count": len(tool_calls),
            "final_answer": final_answer,
        })

    def log_state_change(
        self,
        old_state: str,
        new_state: str,
        conversation_id: Optional[str] = None,
    ) -> None:
        self._emit("state_change", {
            "conversation_id": self._cid(conversation_id),
            "old_state": old_state,
            "new_state": new_state,
        })

    def log_summarization(
        self,
        summarized_messages: int,
        kept_messages: int,
        summary_chars: int,
        forced: bool = False,
        conversation_id: Optional[str] = None,
    ) -> None:
        self._emit("summarization", {
            "conversation_id": self._cid(conversation_id),
            "summarized_messages": summarized_messages,
            "kept_messages": kept_messages,
            "summary_chars": summary_chars,
            "forced": forced,
        })
