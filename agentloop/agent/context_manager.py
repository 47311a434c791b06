"""Lightweight context management for the ReAct loop and the coordinator.

Layer 1 -- Single tool-result truncation (before an observation enters the context).
Layer 2 -- Mid-loop trimming of older tool interactions (before each LLM call).
Layer 3 -- Aggressive trim after a context overflow error.
Between turns the coordinator summarizes old history instead
(see split_for_summarization).
"""

import logging
from typing import List, Optional, Sequence, Tuple

from ..constants import MAX_LLM_TOOL_RESULT_CHARS, ROLE_SYSTEM, ROLE_TOOL, ROLE_USER
from ..llm.base import Message
from .react_config import ReactLoopConfig

logger = logging.getLogger(__name__)


def _message_chars(msg: Message) -> int:
    chars = len(msg.content or "")
    for call in msg.tool_calls or []:
        chars += len(call.function.name) + len(call.function.arguments or "")
    return chars


class ContextManager:
    """Manages working-context size for one coordinator or loop."""

    def __init__(self, config: Optional[ReactLoopConfig] = None) -> None:
        self.config = config or ReactLoopConfig()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def estimate_tokens(messages: Sequence[Message]) -> int:
        """Estimate token count from messages using ~4 chars per token."""
        return sum(_message_chars(m) for m in messages) // 4

    # ------------------------------------------------------------------
    # Layer 1: Single tool-result truncation
    # ------------------------------------------------------------------

    @staticmethod
    def truncate_tool_output(output: str, limit: int = MAX_LLM_TOOL_RESULT_CHARS) -> str:
        """Cap a tool observation before it is sent to the LLM."""
        if len(output) <= limit:
            return output
        logger.debug(f"[Context] truncating tool output: {len(output)} -> {limit} chars")
        return (
            output[:limit]
            + f"\n\n[Output truncated: {len(output)} chars total, showing first {limit}]"
        )

    # ------------------------------------------------------------------
    # Layer 2/3: Working-message trimming
    # ------------------------------------------------------------------

    def should_trim(self, messages: Sequence[Message], known_tokens: int = 0) -> bool:
        """True when the working context crossed the mid-loop trim threshold.

        *known_tokens* is the prompt+completion count of the last LLM call; when
        zero the estimate falls back to chars / 4.
        """
        if len(messages) <= self.config.keep_recent_messages:
            return False
        estimated = known_tokens if known_tokens > 0 else self.estimate_tokens(messages)
        return estimated > self.mid_loop_target()

    def mid_loop_target(self) -> int:
        return int(self.config.context_window * self.config.mid_loop_trim_threshold)

    def overflow_target(self) -> int:
        return int(self.config.context_window * self.config.overflow_trim_share)

    def trim_working_messages(
        self,
        messages: Sequence[Message],
        target_tokens: int,
        current_tokens: int = 0,
    ) -> List[Message]:
        """Drop the oldest middle messages until the context fits *target_tokens*.

        *current_tokens* is the size reported by the provider for this context,
        if known; otherwise it is estimated from characters.

        Preserves system messages, the first user message and the last
        ``keep_recent_messages`` messages. Removal of an assistant tool-call
        message extends over the tool results that answer it, so no tool
        result is ever left without its call. A placeholder user message
        marks where messages were dropped.
        """
        keep = self.config.keep_recent_messages
        messages = list(messages)
        if len(messages) <= keep + 2:
            return messages

        first_user = next((i for i, m in enumerate(messages) if m.role == ROLE_USER), -1)
        if first_user < 0:
            return messages
        head_end = first_user + 1
        tail_start = max(len(messages) - keep, head_end)
        # never start the preserved tail on an orphaned tool result
        while tail_start < len(messages) and messages[tail_start].role == ROLE_TOOL:
            tail_start += 1
        if tail_start <= head_end:
            return messages

        current = current_tokens if current_tokens > 0 else self.estimate_tokens(messages)
        if current <= target_tokens:
            return messages

        needed = current - target_tokens
        freed = 0
        removed = set()
        i = head_end
        while i < tail_start and freed < needed:
            if messages[i].role == ROLE_SYSTEM:
                i += 1
                continue
            removed.add(i)
            freed += _message_chars(messages[i]) // 4
            i += 1
            # keep a call and its results together
            while i < tail_start and messages[i].role == ROLE_TOOL:
                removed.add(i)
                freed += _message_chars(messages[i]) // 4
                i += 1

        if not removed:
            return messages

        kept = [m for idx, m in enumerate(messages) if idx not in removed]
        insert_at = sum(1 for idx in range(head_end) if idx not in removed)
        kept.insert(
            insert_at,
            Message(
                role=ROLE_USER,
                content=f"[System: {len(removed)} earlier tool interactions were "
                "trimmed to fit context window]",
            ),
        )
        logger.info(f"[Context] trimmed {len(removed)} messages, freed ~{freed} tokens")
        return kept

    # ------------------------------------------------------------------
    # Summarization split
    # ------------------------------------------------------------------

    def split_for_summarization(
        self,
        history: Sequence[Message],
        context_window: Optional[int] = None,
    ) -> Optional[Tuple[List[Message], List[Message]]]:
        """Split history into (old, recent) for summarization.

        Recent messages that fit ``summary_keep_share`` of the window are kept
        verbatim, always at least the last two. Returns None when there is
        nothing old enough to summarize.
        """
        history = list(history)
        if len(history) <= 2:
            return None

        window = context_window or self.config.context_window
        budget_chars = window * self.config.summary_keep_share * 4
        recent_chars = 0
        split = len(history)
        for i in range(len(history) - 1, -1, -1):
            chars = len(history[i].content or "")
            if recent_chars + chars > budget_chars:
                break
            recent_chars += chars
            split = i
        split = min(split, len(history) - 2)
        if split <= 0:
            return None
        return history[:split], history[split:]

    @staticmethod
    def split_keep_last(
        history: Sequence[Message],
        keep: int = 2,
    ) -> Optional[Tuple[List[Message], List[Message]]]:
        """Split everything but the last *keep* messages off for a forced summary."""
        history = list(history)
        if len(history) <= keep:
            return None
        return history[:-keep], history[-keep:]
