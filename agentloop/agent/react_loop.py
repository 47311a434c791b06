"""
agentloop ReAct Loop - Reason, act, observe until a final answer

Each iteration:
1. Drain user messages injected while the previous iteration ran
2. Refresh the tool list from ``tools_provider`` (dynamic activation)
3. Trim the working context if it approaches the window
4. Call the LLM and branch on the finish signal:
   - "stop"       -> final answer (or continue if an injection is pending)
   - "tool_calls" -> persist the call, execute tools, feed observations back
   - other        -> content if any, otherwise a protocol violation

Tool failures are observations; only LLM transport failures, protocol
violations and the iteration cap end a turn with a Failure. Cancellation
raises AgentCancelledError out of ``step``.

Usage:
    loop = ReActLoop(llm_client, tool_executor, message_store)
    outcome = await loop.step(
        messages=[Message(role="user", content="What's on my calendar?")],
        tools_provider=lambda: registry.get_tool_definitions(active_categories),
        conversation_id="conv1",
        model="gpt-4o",
    )
"""

import dataclasses
import json
import logging
import queue
from typing import Callable, List, Optional, Sequence

from ..audit_logger import AuditLogger
from ..constants import (
    FINISH_STOP,
    FINISH_TOOL_CALLS,
    ROLE_ASSISTANT,
    ROLE_TOOL,
    ROLE_USER,
)
from ..errors import (
    AgentCancelledError,
    ContextOverflowError,
    IterationLimitExceededError,
    LLMTransportError,
    ProtocolViolationError,
)
from ..llm.base import LLMResponse, MediaData, Message, Usage
from ..protocols import LLMClientProtocol, MessageStoreProtocol
from ..result import Failure, Outcome, Success
from ..storage.models import MessageRecord
from ..tools.executor import ToolExecutor
from ..tools.models import ToolDefinition
from .cancellation import CancellationToken
from .context_manager import ContextManager
from .react_config import ReactLoopConfig
from .state import AgentState, ExecutingTool, Thinking

logger = logging.getLogger(__name__)

ToolsProvider = Callable[[], Sequence[ToolDefinition]]
StateListener = Callable[[AgentState], None]


class ReActLoop:
    """
    Drives one turn of the reasoning/acting cycle.

    Args:
        llm_client: Client returning Outcome[LLMResponse]
        tool_executor: Executor used for every tool batch
        message_store: Sink for intermediate assistant records
        context_window: Context window size in tokens (overrides config)
        config: Loop tuning; defaults to ReactLoopConfig()
    """

    def __init__(
        self,
        llm_client: LLMClientProtocol,
        tool_executor: ToolExecutor,
        message_store: MessageStoreProtocol,
        context_window: Optional[int] = None,
        config: Optional[ReactLoopConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.llm_client = llm_client
        self.tool_executor = tool_executor
        self.message_store = message_store
        config = config or ReactLoopConfig()
        if context_window is not None:
            config = dataclasses.replace(config, context_window=context_window)
        self.config = config
        self.context = ContextManager(config)
        self._audit = audit or AuditLogger()
        self._pending: "queue.SimpleQueue[str]" = queue.SimpleQueue()
        self.last_usage: Optional[Usage] = None

    # ------------------------------------------------------------------
    # Injection
    # ------------------------------------------------------------------

    def inject_message(self, text: str) -> None:
        """Queue a user message; it joins the context at the next iteration boundary."""
        self._pending.put(text)

    @property
    def has_pending_injection(self) -> bool:
        return not self._pending.empty()

    def _drain_injections(self, working: List[Message]) -> int:
        count = 0
        while True:
            try:
                text = self._pending.get_nowait()
            except queue.Empty:
                return count
            logger.debug(f"[ReAct] injecting user message: {text[:100]}")
            working.append(Message(role=ROLE_USER, content=text))
            count += 1

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def step(
        self,
        messages: Sequence[Message],
        tools_provider: ToolsProvider,
        conversation_id: str,
        model: str = "",
        max_iterations: int = 200,
        temperature: float = 0.2,
        cancellation: Optional[CancellationToken] = None,
        media: Optional[List[MediaData]] = None,
        on_state: Optional[StateListener] = None,
    ) -> Outcome[str]:
        """Run the loop until a final answer, a terminal error or the iteration cap."""
        token = cancellation or CancellationToken()
        working: List[Message] = list(messages)
        iteration = 0
        known_tokens = 0
        overflow_retries = 0
        logger.debug(f"[ReAct] step: {len(working)} messages, model={model or '(default)'}")

        while iteration < max_iterations:
            token.raise_if_cancelled()
            iteration += 1

            self._drain_injections(working)

            tools = list(tools_provider())
            tool_schemas = [t.to_openai_schema() for t in tools]
            logger.debug(f"[ReAct] iteration {iteration}/{max_iterations}: {len(tools)} tools")

            if self.context.should_trim(working, known_tokens):
                logger.info(
                    f"[ReAct] context above {self.config.mid_loop_trim_threshold:.0%} "
                    f"of {self.config.context_window} tokens, trimming"
                )
                working = self.context.trim_working_messages(
                    working, self.context.mid_loop_target(), known_tokens
                )
                known_tokens = 0

            request = self._with_media(working, media) if iteration == 1 and media else working

            try:
                result = await token.run(
                    self.llm_client.complete(
                        messages=request,
                        model=model,
                        temperature=temperature,
                        tools=tool_schemas or None,
                    )
                )
            except AgentCancelledError:
                raise
            except Exception as e:
                logger.error(f"[ReAct] LLM call raised on iteration {iteration}: {e}")
                return Failure(LLMTransportError(str(e) or type(e).__name__, cause=e))

            if not result.is_success:
                error = result.error
                if (
                    isinstance(error, ContextOverflowError)
                    and overflow_retries < self.config.max_overflow_retries
                    and iteration > 1
                ):
                    overflow_retries += 1
                    logger.warning(
                        f"[ReAct] context overflow on iteration {iteration}, retry "
                        f"{overflow_retries}/{self.config.max_overflow_retries}"
                    )
                    working = self.context.trim_working_messages(
                        working, self.context.overflow_target()
                    )
                    known_tokens = 0
                    iteration -= 1
                    continue
                logger.warning(f"[ReAct] LLM call failed on iteration {iteration}: {error}")
                if not isinstance(error, LLMTransportError):
                    error = LLMTransportError(str(error), cause=error)
                return Failure(error)

            response: LLMResponse = result.value
            self.last_usage = response.usage
            if response.usage is not None:
                # the completion becomes part of the next prompt
                known_tokens = response.usage.prompt_tokens + response.usage.completion_tokens

            if not response.choices:
                return Failure(ProtocolViolationError("No choices in LLM response"))

            choice = response.choices[0]
            message = choice.message
            finish_reason = choice.finish_reason
            logger.debug(f"[ReAct] finish_reason={finish_reason}")

            if finish_reason == FINISH_STOP:
                content = message.content
                if self.has_pending_injection:
                    logger.debug("[ReAct] pending user messages, continuing loop")
                    if content and content.strip():
                        working.append(Message(role=ROLE_ASSISTANT, content=content))
                        await self._persist(token, MessageRecord(
                            conversation_id=conversation_id,
                            role=ROLE_ASSISTANT,
                            content=content,
                        ))
                    self._audit.log_react_turn(iteration, [], False, conversation_id)
                    continue

                self._audit.log_react_turn(iteration, [], True, conversation_id)
                if not content or not content.strip():
                    return Failure(ProtocolViolationError("Empty final response from LLM"))
                logger.info(f"[ReAct] final answer after {iteration} iteration(s)")
                return Success(content)

            if finish_reason == FINISH_TOOL_CALLS:
                tool_calls = message.tool_calls
                if not tool_calls:
                    return Failure(ProtocolViolationError(
                        "finish_reason=tool_calls but no tool_calls in message"
                    ))

                names = [tc.function.name for tc in tool_calls]
                logger.info(f"[ReAct] iteration {iteration}: executing {names}")
                self._audit.log_react_turn(iteration, names, False, conversation_id)

                await self._persist(token, MessageRecord(
                    conversation_id=conversation_id,
                    role=ROLE_ASSISTANT,
                    content=message.content or "",
                    tool_calls=json.dumps([tc.to_dict() for tc in tool_calls]),
                ))
                working.append(Message(
                    role=ROLE_ASSISTANT,
                    content=message.content,
                    tool_calls=list(tool_calls),
                ))

                if on_state is not None:
                    on_state(ExecutingTool(tuple(names)))
                results = await token.run(
                    self.tool_executor.execute_batch(conversation_id, list(tool_calls))
                )
                if on_state is not None:
                    on_state(Thinking())

                for tool_result in results:
                    working.append(Message(
                        role=ROLE_TOOL,
                        content=self.context.truncate_tool_output(tool_result.observation),
                        tool_call_id=tool_result.tool_call.id,
                        name=tool_result.tool_call.function.name,
                    ))
                continue

            content = message.content
            self._audit.log_react_turn(iteration, [], True, conversation_id)
            if content and content.strip():
                return Success(content)
            return Failure(ProtocolViolationError(f"Unknown finish_reason: {finish_reason}"))

        logger.warning(f"[ReAct] max iterations ({max_iterations}) reached")
        return Failure(IterationLimitExceededError(
            f"Max iterations ({max_iterations}) reached without a final answer"
        ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _with_media(working: List[Message], media: List[MediaData]) -> List[Message]:
        """Copy of *working* with *media* attached to the last user message."""
        request = list(working)
        for i in range(len(request) - 1, -1, -1):
            if request[i].role == ROLE_USER:
                request[i] = dataclasses.replace(request[i], media=list(media))
                break
        return request

    async def _persist(self, token: CancellationToken, record: MessageRecord) -> None:
        try:
            await token.run(self.message_store.insert(record))
        except AgentCancelledError:
            raise
        except Exception as e:
            logger.error(f"[ReAct] failed to persist {record.role} message: {e}")
