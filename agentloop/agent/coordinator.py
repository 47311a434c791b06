"""
agentloop Agent Coordinator - Per-conversation turn orchestration

The coordinator owns one conversation:
- Builds the working context (system prompt, summary, history, user message)
- Decides which tools the model sees (core + activated categories [∩ allow-list])
- Summarizes old history when the context window fills up
- Runs the ReAct loop and tracks token usage
- Publishes its AgentState and owns cancellation

Usage:
    coordinator = AgentCoordinator(
        client_provider=lambda: llm_client,
        tool_registry=registry,
        tool_executor=ToolExecutor(registry, store),
        message_store=store,
        conversation_id="conv1",
    )
    outcome = await coordinator.execute("Summarize my inbox", "You are a helpful assistant.")
    coordinator.cleanup()
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from ..audit_logger import AuditLogger
from ..constants import (
    ACTIVATE_TOOLS_PLUGIN_ID,
    ROLE_ASSISTANT,
    ROLE_META,
    ROLE_SYSTEM,
    ROLE_USER,
    STOPPED_MARKER,
    SUMMARIZATION_PLUGIN_ID,
    SUMMARY_MARKER,
)
from ..errors import AgentCancelledError, AgentLoopError
from ..llm.base import MediaData, Message
from ..protocols import LLMClientProtocol, MessageStoreProtocol
from ..result import Failure, Outcome
from ..storage.models import MessageRecord
from ..tools.executor import ToolExecutor
from ..tools.models import ToolDefinition
from ..tools.registry import ToolRegistry
from .builtin_tools import (
    ActivateToolsPlugin,
    SummarizationPlugin,
    bind_activate_tools,
    bind_summarization,
    release_binding,
)
from .cancellation import CancellationToken
from .context_manager import ContextManager
from .react_config import ReactLoopConfig
from .react_loop import ReActLoop
from .state import AgentState, Cancelled, Completed, Error, Idle, StateFlow, Thinking

logger = logging.getLogger(__name__)

SCHEDULED_NOTICE = (
    "\n\nIMPORTANT: You are executing a scheduled task. Do not ask clarification "
    "questions. Use your best judgment and proceed autonomously. If you need to "
    "inform the user of something, include it in your response."
)

SUMMARY_PROMPT = (
    "Summarize the following conversation concisely, preserving key topics, "
    "decisions, user preferences, and any pending tasks.\n\n"
)


class ExecutionContext(str, Enum):
    """How a turn was started."""

    INTERACTIVE = "interactive"
    SCHEDULED = "scheduled"


def format_for_summary(messages: Iterable[Message]) -> str:
    """Render messages as ``Role: content`` lines."""
    lines = []
    for msg in messages:
        label = {ROLE_USER: "User", ROLE_ASSISTANT: "Assistant"}.get(msg.role, msg.role.capitalize())
        lines.append(f"{label}: {msg.content or ''}")
    return "\n".join(lines)


class AgentCoordinator:
    """
    Orchestrates turns for a single conversation.

    Args:
        client_provider: Returns the current LLM client (re-read every turn)
        tool_registry: Shared tool registry
        tool_executor: Executor bound to the same registry
        message_store: Sink for assistant, summary and stopped records
        conversation_id: Conversation this coordinator owns
        config: Loop and context tuning
        tool_filter: Optional allow-list of tool names
        on_before_summarize: Awaited before history is summarized
        owns_registry: Clear the registry on cleanup (derived sub-registries)
    """

    def __init__(
        self,
        client_provider: Callable[[], LLMClientProtocol],
        tool_registry: ToolRegistry,
        tool_executor: ToolExecutor,
        message_store: MessageStoreProtocol,
        conversation_id: str,
        config: Optional[ReactLoopConfig] = None,
        tool_filter: Optional[Iterable[str]] = None,
        on_before_summarize: Optional[Callable[[], Awaitable[None]]] = None,
        owns_registry: bool = False,
    ):
        self.client_provider = client_provider
        self.tool_registry = tool_registry
        self.tool_executor = tool_executor
        self.message_store = message_store
        self.conversation_id = conversation_id
        self.config = config or ReactLoopConfig()
        self.tool_filter: Optional[Set[str]] = set(tool_filter) if tool_filter is not None else None
        self.on_before_summarize = on_before_summarize
        self.owns_registry = owns_registry

        self.state = StateFlow(Idle())
        self.context = ContextManager(self.config)
        self._audit = AuditLogger(conversation_id)

        # Categories activated via activate_tools; sticky for the conversation
        self.active_categories: Set[str] = set()

        self._history: List[Message] = []
        self._summary: Optional[str] = None
        self._last_tokens = 0
        self._last_model = ""
        self._loop: Optional[ReActLoop] = None
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._closed = False

        self._summarization: SummarizationPlugin = bind_summarization(
            tool_registry, conversation_id, self.force_summarize
        )
        self._activation: Optional[ActivateToolsPlugin] = bind_activate_tools(
            tool_registry, conversation_id, self.active_categories
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _set_state(self, new_state: AgentState) -> None:
        old = self.state.value
        if self.state.set(new_state):
            logger.debug(f"[Coordinator] state {old.name} -> {new_state.name}")
            self._audit.log_state_change(old.name, new_state.name)

    def _state_listener(self, token: CancellationToken) -> Callable[[AgentState], None]:
        def listener(new_state: AgentState) -> None:
            if self._token is token:
                self._set_state(new_state)
        return listener

    # ------------------------------------------------------------------
    # Loop / tools
    # ------------------------------------------------------------------

    def _get_loop(self) -> ReActLoop:
        if self._loop is None:
            self._loop = ReActLoop(
                llm_client=self.client_provider(),
                tool_executor=self.tool_executor,
                message_store=self.message_store,
                config=self.config,
                audit=self._audit,
            )
        return self._loop

    def _tools_provider(self) -> List[ToolDefinition]:
        if not self._closed:
            # categories may have been registered since the last call
            activation = bind_activate_tools(
                self.tool_registry, self.conversation_id, self.active_categories
            )
            if activation is not None:
                self._activation = activation
        return self.tool_registry.get_tool_definitions(
            self.active_categories, allow=self.tool_filter
        )

    def _build_messages(
        self,
        user_message: str,
        system_prompt: str,
        context: ExecutionContext,
    ) -> List[Message]:
        prompt = system_prompt or ""
        if context == ExecutionContext.SCHEDULED:
            prompt += SCHEDULED_NOTICE
        if self._summary:
            prompt += (
                f"\n\n--- Earlier conversation summary ---\n{self._summary}"
                "\n--- End of summary ---"
            )
        messages: List[Message] = []
        if prompt.strip():
            messages.append(Message(role=ROLE_SYSTEM, content=prompt.lstrip("\n")))
        messages.extend(self._history)
        messages.append(Message(role=ROLE_USER, content=user_message))
        return messages

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        user_message: str,
        system_prompt: str = "",
        model: str = "",
        max_iterations: Optional[int] = None,
        temperature: Optional[float] = None,
        media: Optional[List[MediaData]] = None,
        context: ExecutionContext = ExecutionContext.INTERACTIVE,
    ) -> Outcome[str]:
        """Run one turn. Returns Success(answer) or Failure(error)."""
        if self._token is not None:
            logger.info("[Coordinator] cancelling previous turn")
            self._token.cancel()

        token = CancellationToken()
        self._token = token
        self._last_model = model
        if max_iterations is None:
            max_iterations = self.config.max_iterations
        temperature = self.config.temperature if temperature is None else temperature
        logger.info(f"[Coordinator] execute: conversation={self.conversation_id} model={model or '(default)'}")

        try:
            self._set_state(Thinking())
            await self._maybe_summarize(model, token)

            messages = self._build_messages(user_message, system_prompt, context)
            # history keeps the text only; media belongs to this turn
            self._history.append(Message(role=ROLE_USER, content=user_message))

            loop = self._get_loop()
            loop.llm_client = self.client_provider()
            outcome = await loop.step(
                messages=messages,
                tools_provider=self._tools_provider,
                conversation_id=self.conversation_id,
                model=model,
                max_iterations=max_iterations,
                temperature=temperature,
                cancellation=token,
                media=media or None,
                on_state=self._state_listener(token),
            )
        except AgentCancelledError as e:
            await self._mark_stopped(token)
            return Failure(e)
        except asyncio.CancelledError:
            await self._mark_stopped(token)
            raise
        except Exception as e:
            logger.error(f"[Coordinator] unexpected error: {e}", exc_info=True)
            error = e if isinstance(e, AgentLoopError) else AgentLoopError(f"Unexpected error: {e}", e)
            if self._token is token:
                self._set_state(Error(error.message, e))
            return Failure(error)
        finally:
            if self._token is token:
                self._token = None

        usage = loop.last_usage
        if usage is not None:
            # the completion becomes part of the next turn's prompt
            self._last_tokens = usage.prompt_tokens + usage.completion_tokens

        if outcome.is_success:
            self._history.append(Message(role=ROLE_ASSISTANT, content=outcome.value))
            self._set_state(Completed(outcome.value))
            logger.info(f"[Coordinator] turn completed ({len(outcome.value)} chars)")
        else:
            logger.error(f"[Coordinator] turn failed: {outcome.error}")
            self._set_state(Error(outcome.error.message, outcome.error))
        return outcome

    def execute_in_background(
        self,
        user_message: str,
        system_prompt: str = "",
        model: str = "",
        max_iterations: Optional[int] = None,
        temperature: Optional[float] = None,
        media: Optional[List[MediaData]] = None,
        context: ExecutionContext = ExecutionContext.INTERACTIVE,
        on_complete: Optional[Callable[[Outcome[str]], None]] = None,
    ) -> "asyncio.Task[Outcome[str]]":
        """Schedule ``execute`` on the running loop and return its task.

        State changes can be observed through ``state`` meanwhile.
        """
        task = asyncio.create_task(self.execute(
            user_message,
            system_prompt,
            model=model,
            max_iterations=max_iterations,
            temperature=temperature,
            media=media,
            context=context,
        ))
        if on_complete is not None:
            def _done(t: asyncio.Task) -> None:
                if not t.cancelled() and t.exception() is None:
                    on_complete(t.result())
            task.add_done_callback(_done)
        self._task = task
        return task

    async def _mark_stopped(self, token: CancellationToken) -> None:
        logger.info(f"[Coordinator] turn cancelled: conversation={self.conversation_id}")
        try:
            await self.message_store.insert(MessageRecord(
                conversation_id=self.conversation_id,
                role=ROLE_META,
                content=STOPPED_MARKER,
                tool_name=STOPPED_MARKER,
            ))
        except Exception as e:
            logger.error(f"[Coordinator] failed to persist stopped marker: {e}")
        if self._token is token:
            self._set_state(Cancelled())

    def cancel(self) -> None:
        """Cancel the in-flight turn, if any. Safe to call repeatedly."""
        if self._token is not None:
            self._token.cancel()

    def inject_message(self, text: str) -> None:
        """Queue a user message for the running loop's next iteration."""
        self._get_loop().inject_message(text)

    # ------------------------------------------------------------------
    # Summarization
    # ------------------------------------------------------------------

    def _estimated_tokens(self) -> int:
        if self._last_tokens > 0:
            return self._last_tokens
        return self.context.estimate_tokens(self._history)

    async def _maybe_summarize(self, model: str, token: CancellationToken) -> None:
        threshold = int(self.config.context_window * self.config.summarization_threshold)
        estimated = self._estimated_tokens()
        if estimated > threshold and len(self._history) > 2:
            logger.info(
                f"[Coordinator] context at {estimated} tokens (threshold {threshold}), summarizing"
            )
            split = self.context.split_for_summarization(self._history)
            await self._summarize(split, model, token=token)

    async def _summarize(
        self,
        split: Optional[Tuple[List[Message], List[Message]]],
        model: str,
        token: Optional[CancellationToken] = None,
        forced: bool = False,
    ) -> bool:
        if split is None:
            return False
        old, recent = split

        if self.on_before_summarize is not None:
            try:
                await self.on_before_summarize()
            except Exception as e:
                logger.warning(f"[Coordinator] pre-summarize callback failed, continuing: {e}")

        request = [Message(role=ROLE_USER, content=SUMMARY_PROMPT + format_for_summary(old))]
        try:
            call = self.client_provider().complete(messages=request, model=model)
            outcome = await (token.run(call) if token is not None else call)
        except AgentCancelledError:
            raise
        except Exception as e:
            logger.warning(f"[Coordinator] summarization failed, continuing without: {e}")
            return False

        if not outcome.is_success:
            logger.warning(f"[Coordinator] summarization failed, continuing without: {outcome.error}")
            return False
        choice = outcome.value.first_choice
        summary = choice.message.content if choice is not None else None
        if not summary or not summary.strip():
            logger.warning("[Coordinator] summarization returned no content")
            return False

        self._summary = summary
        self._history = list(recent)
        self._last_tokens = 0

        try:
            await self.message_store.insert(MessageRecord(
                conversation_id=self.conversation_id,
                role=ROLE_META,
                content=summary,
                tool_name=SUMMARY_MARKER,
            ))
        except Exception as e:
            logger.error(f"[Coordinator] failed to persist summary: {e}")

        self._audit.log_summarization(len(old), len(recent), len(summary), forced=forced)
        logger.info(f"[Coordinator] summarized {len(old)} messages, keeping {len(recent)}")
        return True

    async def force_summarize(self, model: Optional[str] = None) -> str:
        """Summarize everything but the last two messages, regardless of size."""
        if len(self._history) <= 2:
            return "Not enough conversation history to summarize."
        split = self.context.split_keep_last(self._history, keep=2)
        if await self._summarize(split, model or self._last_model, forced=True):
            return "Conversation summarized successfully."
        return "Summarization failed -- conversation unchanged."

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Cancel any in-flight turn and forget the conversation."""
        self.cancel()
        self._history.clear()
        self._summary = None
        self._last_tokens = 0
        self.active_categories.clear()
        self._set_state(Idle())

    def seed_history(self, messages: Iterable[Message], summary: Optional[str] = None) -> None:
        """Load persisted history, e.g. when reopening a conversation."""
        self._history = list(messages)
        self._summary = summary
        self._last_tokens = 0

    def get_conversation_history(self) -> List[Message]:
        return list(self._history)

    def get_conversation_size(self) -> int:
        return len(self._history)

    @property
    def summary(self) -> Optional[str]:
        return self._summary

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cleanup(self) -> None:
        """Release per-conversation built-ins; must be called when the coordinator is done."""
        if self._closed:
            return
        self._closed = True
        self.cancel()
        release_binding(
            self.tool_registry, self._summarization, SUMMARIZATION_PLUGIN_ID, self.conversation_id
        )
        if self._activation is not None:
            release_binding(
                self.tool_registry, self._activation, ACTIVATE_TOOLS_PLUGIN_ID, self.conversation_id
            )
        if self.owns_registry:
            self.tool_registry.clear()
        logger.debug(f"[Coordinator] cleaned up conversation={self.conversation_id}")
