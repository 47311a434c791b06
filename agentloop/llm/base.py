"""
agentloop LLM Client Base - Base class and common types for LLM clients

This module provides:
- Message: Unit of conversational context sent to the LLM
- ToolCall / FunctionCall: Vendor function-calling wire shape
- LLMResponse / Choice / MessageResponse / Usage: Standardized response format
- LLMConfig: Configuration dataclass
- BaseLLMClient: Abstract base class implementing LLMClientProtocol
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import AgentLoopError, LLMTransportError
from ..result import Failure, Outcome, Success

logger = logging.getLogger(__name__)


@dataclass
class MediaData:
    """An inline media attachment (image) for vision-capable models."""

    data: str
    """Base64 payload or an http(s) URL."""
    media_type: str = "image/jpeg"

    def to_content_part(self) -> Dict[str, Any]:
        if self.data.startswith(("http://", "https://")):
            url = self.data
        else:
            url = f"data:{self.media_type};base64,{self.data}"
        return {"type": "image_url", "image_url": {"url": url}}


@dataclass
class FunctionCall:
    name: str
    arguments: str
    """JSON-encoded argument object, exactly as emitted by the model."""


@dataclass
class ToolCall:
    """A tool call emitted by the LLM: ``{id, type, function{name, arguments}}``."""

    id: str
    function: FunctionCall
    type: str = "function"

    @property
    def name(self) -> str:
        return self.function.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        func = data.get("function") or {}
        arguments = func.get("arguments", "")
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=data.get("id", ""),
            type=data.get("type", "function"),
            function=FunctionCall(name=func.get("name", ""), arguments=arguments),
        )

    @classmethod
    def create(cls, id: str, name: str, arguments: Any = "{}") -> "ToolCall":
        """Convenience constructor accepting either a JSON string or a dict."""
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(id=id, function=FunctionCall(name=name, arguments=arguments))


@dataclass
class Message:
    """
    A single message of LLM conversational context.

    Attributes:
        role: One of user, assistant, system, tool, meta
        content: Text content (may be None for pure tool-call messages)
        tool_calls: Tool calls requested by an assistant message
        tool_call_id: For tool messages, the call this observation answers
        name: For tool messages, the tool name
        media: Attachments for the current user turn only
    """
    role: str
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    media: Optional[List[MediaData]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to an OpenAI chat message dict."""
        msg: Dict[str, Any] = {"role": self.role}
        if self.media:
            parts: List[Dict[str, Any]] = []
            if self.content:
                parts.append({"type": "text", "text": self.content})
            parts.extend(m.to_content_part() for m in self.media)
            msg["content"] = parts
        else:
            msg["content"] = self.content
        if self.tool_calls:
            msg["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            msg["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            msg["name"] = self.name
        return msg


@dataclass
class Usage:
    """Token usage information"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class MessageResponse:
    role: str = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCall]] = None


@dataclass
class Choice:
    message: MessageResponse
    finish_reason: Optional[str] = None
    index: int = 0


@dataclass
class LLMResponse:
    """
    Standardized LLM response format.

    All provider clients return this format for consistency. Only the
    ``"stop"`` and ``"tool_calls"`` finish signals drive the ReAct loop;
    anything else is treated as unrecognized.
    """
    choices: List[Choice] = field(default_factory=list)
    usage: Optional[Usage] = None
    id: str = ""
    model: Optional[str] = None

    # Raw response for debugging
    raw_response: Optional[Any] = None

    @property
    def first_choice(self) -> Optional[Choice]:
        return self.choices[0] if self.choices else None


@dataclass
class LLMConfig:
    """
    Configuration for LLM clients.

    Attributes:
        api_key: API key for the provider
        model: Default model name (e.g., "gpt-4o-mini")
        base_url: Optional base URL override for API
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens in response
        timeout: Request timeout in seconds
        context_window: Context window size in tokens
    """
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: Optional[int] = None
    timeout: int = 60
    context_window: int = 200_000

    # Extra provider-specific config (e.g., api_version for Azure)
    extra: Dict[str, Any] = field(default_factory=dict)


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    Subclasses implement ``_call_api``; ``complete`` converts messages to
    wire dicts and wraps every failure into a Failure outcome so the ReAct
    loop never sees a raw provider exception.

    Example:
        class MyClient(BaseLLMClient):
            async def _call_api(self, messages, model, temperature, max_tokens, tools):
                ...
    """

    provider: str = "unknown"

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)
        self.config = config

    @property
    def context_window(self) -> int:
        return self.config.context_window

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        tools: Optional[List[Dict[str, Any]]],
    ) -> LLMResponse:
        """Make the actual API call (provider-specific)."""

    def _classify_error(self, error: Exception) -> AgentLoopError:
        """Map a provider exception to the agentloop taxonomy."""
        return LLMTransportError(str(error) or type(error).__name__, cause=error)

    async def complete(
        self,
        messages: List[Message],
        model: str = "",
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Outcome[LLMResponse]:
        """
        Send a chat completion request.

        Args:
            messages: Conversation context
            model: Model override (defaults to config.model)
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            tools: OpenAI-format tool schemas

        Returns:
            Success(LLMResponse) or Failure(LLMTransportError)
        """
        wire_messages = [m.to_dict() if isinstance(m, Message) else m for m in messages]
        try:
            response = await self._call_api(
                wire_messages,
                model or self.config.model,
                self.config.temperature if temperature is None else temperature,
                max_tokens if max_tokens is not None else self.config.max_tokens,
                tools or None,
            )
        except AgentLoopError as e:
            return Failure(e)
        except Exception as e:
            logger.warning(f"[LLM] {self.provider} call failed: {e}")
            return Failure(self._classify_error(e))
        return Success(response)

    async def close(self) -> None:
        """Release resources held by the client."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
