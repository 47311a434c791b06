"""
agentloop Tool Executor - Execute tool calls against the registry

The executor bridges the ReAct loop and the plugins:
1. Receives a ToolCall from the LLM
2. Looks the tool up in the ToolRegistry
3. Parses and enriches the arguments
4. Runs the plugin under a timeout with error isolation
5. Persists a tool-role MessageRecord (truncated) and returns the full result

Every tool-level problem (unknown tool, bad JSON, timeout, plugin crash) is
returned as a ToolExecutionFailure; only cancellation propagates.

Usage:
    executor = ToolExecutor(registry, message_store)
    result = await executor.execute("conv1", tool_call)
    results = await executor.execute_batch("conv1", tool_calls)
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from ..audit_logger import AuditLogger, summarize_args
from ..constants import (
    CONVERSATION_ID_ARG,
    DEFAULT_TOOL_TIMEOUT_SECONDS,
    MAX_STORED_RESULT_CHARS,
    ROLE_TOOL,
)
from ..errors import ArgumentParseError, ToolNotFoundError, ToolRuntimeError, ToolTimeoutError
from ..llm.base import ToolCall
from ..protocols import MessageStoreProtocol
from ..storage.models import MessageRecord
from .models import (
    RegisteredTool,
    ToolExecutionFailure,
    ToolExecutionResult,
    ToolExecutionSuccess,
    ToolFailure,
    ToolSuccess,
)
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


def truncate_for_storage(content: str, limit: int = MAX_STORED_RESULT_CHARS) -> str:
    """Cap persisted tool-result content, appending a marker with the original length."""
    if len(content) <= limit:
        return content
    return content[:limit] + f"\n\n[Truncated: {len(content)} chars total]"


class ToolExecutor:
    """
    Executes tool calls from the LLM.

    Args:
        registry: ToolRegistry to resolve tool names against
        message_store: Sink for tool-role MessageRecords
        default_timeout: Timeout in seconds when a tool does not define its own
        audit: Optional AuditLogger (one is created if omitted)
    """

    def __init__(
        self,
        registry: ToolRegistry,
        message_store: MessageStoreProtocol,
        default_timeout: float = DEFAULT_TOOL_TIMEOUT_SECONDS,
        audit: Optional[AuditLogger] = None,
    ):
        self.registry = registry
        self.message_store = message_store
        self.default_timeout = default_timeout
        self._audit = audit or AuditLogger()

    def resolve_timeout(self, registered: RegisteredTool) -> float:
        """Per-tool timeout when positive, otherwise the executor default."""
        timeout = registered.definition.timeout_seconds
        if timeout is not None and timeout > 0:
            return timeout
        return self.default_timeout

    async def execute(self, conversation_id: str, tool_call: ToolCall) -> ToolExecutionResult:
        """Execute a single tool call and persist its observation."""
        tool_name = tool_call.function.name
        logger.debug(f"[Tool] executing {tool_name} (call_id={tool_call.id})")
        start = time.monotonic()

        result, arguments = await self._run(conversation_id, tool_call)

        duration_ms = int((time.monotonic() - start) * 1000)
        if result.is_success:
            logger.info(f"[Tool] {tool_name} OK ({len(result.output)} chars, {duration_ms}ms)")
        else:
            logger.warning(f"[Tool] {tool_name} FAILED: {result.error}")
        self._audit.log_tool_execution(
            tool_name=tool_name,
            args_summary=summarize_args(arguments),
            success=result.is_success,
            duration_ms=duration_ms,
            error=None if result.is_success else result.error,
            conversation_id=conversation_id,
        )

        await self._persist(conversation_id, tool_call, result.observation)
        return result

    async def execute_batch(
        self,
        conversation_id: str,
        tool_calls: List[ToolCall],
    ) -> List[ToolExecutionResult]:
        """
        Execute multiple tool calls sequentially.

        Sequential execution keeps persistence order deterministic and avoids
        concurrent writers to the same conversation. ``results[i]`` always
        corresponds to ``tool_calls[i]``.
        """
        logger.debug(f"[Tool] execute_batch with {len(tool_calls)} calls")
        results: List[ToolExecutionResult] = []
        for tool_call in tool_calls:
            results.append(await self.execute(conversation_id, tool_call))
        return results

    async def _run(self, conversation_id: str, tool_call: ToolCall):
        """Returns (result, parsed_arguments)."""
        tool_name = tool_call.function.name

        registered = self.registry.get_tool(tool_name)
        if registered is None:
            error = ToolNotFoundError(f"Tool '{tool_name}' not found")
            return ToolExecutionFailure(tool_call, error.message, error), {}

        try:
            arguments = self._parse_arguments(tool_call.function.arguments)
        except ArgumentParseError as e:
            return ToolExecutionFailure(tool_call, e.message, e.cause or e), {}

        enriched = {**arguments, CONVERSATION_ID_ARG: conversation_id}
        timeout = self.resolve_timeout(registered)

        try:
            outcome = await asyncio.wait_for(
                registered.plugin.execute(tool_name, enriched),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            error = ToolTimeoutError(f"Tool execution timed out ({timeout:g}s)", cause=e)
            return ToolExecutionFailure(tool_call, error.message, e), arguments
        except Exception as e:
            logger.error(f"[Tool] {tool_name} raised: {e}", exc_info=True)
            error = ToolRuntimeError(f"Unexpected error: {e}", cause=e)
            return ToolExecutionFailure(tool_call, error.message, e), arguments

        if isinstance(outcome, ToolSuccess):
            output = "" if outcome.output is None else str(outcome.output)
            return ToolExecutionSuccess(tool_call, output, dict(outcome.metadata)), arguments
        if isinstance(outcome, ToolFailure):
            return ToolExecutionFailure(tool_call, outcome.error, outcome.cause), arguments

        error = ToolRuntimeError(
            f"Plugin returned unsupported result type {type(outcome).__name__}"
        )
        return ToolExecutionFailure(tool_call, error.message, error), arguments

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return dict(raw)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return {}
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise ArgumentParseError(f"Invalid JSON arguments: {e}", cause=e)
        if not isinstance(parsed, dict):
            raise ArgumentParseError(
                f"Invalid JSON arguments: expected an object, got {type(parsed).__name__}"
            )
        return parsed

    async def _persist(self, conversation_id: str, tool_call: ToolCall, content: str) -> None:
        record = MessageRecord(
            conversation_id=conversation_id,
            role=ROLE_TOOL,
            content=truncate_for_storage(content),
            tool_call_id=tool_call.id,
            tool_name=tool_call.function.name,
        )
        try:
            await self.message_store.insert(record)
        except Exception as e:
            logger.error(f"[Tool] failed to persist result of {tool_call.function.name}: {e}")
