"""
agentloop Protocols - Abstract interfaces for dependency injection

These protocols define the contracts that external collaborators must
fulfill. The engine depends only on these narrow interfaces, never on a
concrete LLM vendor or database.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .llm.base import LLMResponse, Message
from .result import Outcome
from .storage.models import MessageRecord


@runtime_checkable
class LLMClientProtocol(Protocol):
    """
    Abstract interface for LLM clients

    Implement this protocol to integrate any LLM provider. Expected failures
    (network, auth, context overflow) are returned as a Failure outcome,
    never raised.

    Example:
        class MyLLMClient:
            async def complete(self, messages, model="", temperature=None,
                               max_tokens=None, tools=None):
                response = await my_vendor.chat(...)
                return Success(to_llm_response(response))
    """

    async def complete(
        self,
        messages: List[Message],
        model: str = "",
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Outcome[LLMResponse]:
        ...


@runtime_checkable
class MessageStoreProtocol(Protocol):
    """
    Abstract interface for message persistence

    A durable, append-only sink. The engine never reads history back through
    this interface; history is seeded into the coordinator before a turn.
    """

    async def insert(self, record: MessageRecord) -> None:
        ...
