"""
agentloop Storage Models - Persisted message records
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class MessageRecord:
    """
    Persisted form of a conversation message.

    Attributes:
        conversation_id: Conversation this record belongs to
        role: user, assistant, system, tool or meta
        content: Text content (tool results are already truncated)
        id: Unique record id
        timestamp: Epoch milliseconds
        tool_call_id: For tool records, the answered call id
        tool_name: Tool name, or a marker such as "summary" / "stopped" for meta records
        tool_calls: JSON-encoded list of tool calls for assistant records
    """
    conversation_id: str
    role: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: int = field(default_factory=_now_ms)
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_calls: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
            "tool_call_id": self.tool_call_id,
            "tool_name": self.tool_name,
            "tool_calls": self.tool_calls,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageRecord":
        return cls(
            id=data["id"],
            conversation_id=data["conversation_id"],
            role=data["role"],
            content=data.get("content") or "",
            timestamp=data.get("timestamp") or _now_ms(),
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name"),
            tool_calls=data.get("tool_calls"),
        )
