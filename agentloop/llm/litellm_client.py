"""
agentloop LiteLLM Client - Unified LLM client powered by litellm

Supports all providers through a single client:
- OpenAI (GPT-4o, o-series, etc.)
- Anthropic (Claude)
- Azure OpenAI
- Google Gemini
- Ollama (local models)
- DashScope (Qwen, Deepseek via OpenAI-compatible mode)
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from ..errors import AgentLoopError, ContextOverflowError, LLMTransportError
from .base import (
    BaseLLMClient,
    Choice,
    FunctionCall,
    LLMConfig,
    LLMResponse,
    MessageResponse,
    ToolCall,
    Usage,
)

logger = logging.getLogger(__name__)

# Provider -> default environment variable for API key
_PROVIDER_ENV_VARS: Dict[str, Optional[str]] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
    "dashscope": "DASHSCOPE_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "ollama": None,
}

_CONTEXT_OVERFLOW_HINTS = ("context_length_exceeded", "context window", "maximum context length")


def build_litellm_model_string(provider: str, model: str) -> str:
    """Map provider + model to the litellm model string.

    litellm uses prefixed model strings to route to the correct provider.
    See https://docs.litellm.ai/docs/providers
    """
    provider = provider.lower()
    if provider == "openai":
        return model
    if provider in ("anthropic", "azure", "gemini", "ollama"):
        return f"{provider}/{model}"
    if provider == "dashscope":
        # DashScope uses OpenAI-compatible mode via base_url
        return f"openai/{model}"
    return model


class LiteLLMClient(BaseLLMClient):
    """
    Unified LLM client powered by litellm.

    Example:
        config = LLMConfig(model="gpt-4o-mini", api_key="sk-xxx")
        client = LiteLLMClient(config=config, provider_name="openai")
        outcome = await client.complete([Message(role="user", content="Hello!")])
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        provider_name: str = "openai",
        **kwargs,
    ):
        super().__init__(config, **kwargs)

        self.provider = provider_name.lower()

        # Resolve API key: explicit config > env var
        api_key = self.config.api_key
        if not api_key:
            env_var = _PROVIDER_ENV_VARS.get(self.provider)
            if env_var:
                api_key = os.environ.get(env_var)

        self._base_kwargs: Dict[str, Any] = {"timeout": self.config.timeout}
        if self.config.base_url:
            self._base_kwargs["api_base"] = self.config.base_url
        if api_key:
            self._base_kwargs["api_key"] = api_key
        self._base_kwargs.update(self.config.extra)

        logger.info(
            f"LiteLLMClient initialized: provider={self.provider}, "
            f"model={build_litellm_model_string(self.provider, self.config.model)}"
        )

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: float,
        max_tokens: Optional[int],
        tools: Optional[List[Dict[str, Any]]],
    ) -> LLMResponse:
        """Make a non-streaming call via litellm.acompletion."""
        import litellm

        params: Dict[str, Any] = {
            "model": build_litellm_model_string(self.provider, model),
            "messages": messages,
            "temperature": temperature,
            **self._base_kwargs,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        logger.info(
            f"[LiteLLM] model={params['model']}, tools={len(tools) if tools else 0}, "
            f"messages={len(messages)}"
        )

        response = await litellm.acompletion(**params)
        return self._parse_response(response)

    @staticmethod
    def _parse_response(response: Any) -> LLMResponse:
        """Convert a litellm ModelResponse (OpenAI format) into LLMResponse."""
        choices: List[Choice] = []
        for index, choice in enumerate(response.choices or []):
            message = choice.message
            tool_calls = None
            if getattr(message, "tool_calls", None):
                tool_calls = []
                for tc in message.tool_calls:
                    arguments = tc.function.arguments
                    if not isinstance(arguments, str):
                        arguments = json.dumps(arguments or {}, ensure_ascii=False)
                    tool_calls.append(ToolCall(
                        id=tc.id,
                        function=FunctionCall(name=tc.function.name, arguments=arguments),
                    ))
            choices.append(Choice(
                index=getattr(choice, "index", index),
                message=MessageResponse(
                    role=getattr(message, "role", "assistant") or "assistant",
                    content=message.content,
                    tool_calls=tool_calls,
                ),
                finish_reason=choice.finish_reason,
            ))

        usage = None
        if getattr(response, "usage", None):
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return LLMResponse(
            id=getattr(response, "id", "") or "",
            choices=choices,
            usage=usage,
            model=getattr(response, "model", None),
            raw_response=response,
        )

    def _classify_error(self, error: Exception) -> AgentLoopError:
        import litellm

        overflow_type = getattr(litellm, "ContextWindowExceededError", None)
        text = str(error).lower()
        if (overflow_type is not None and isinstance(error, overflow_type)) or any(
            hint in text for hint in _CONTEXT_OVERFLOW_HINTS
        ):
            return ContextOverflowError(str(error), cause=error)
        return LLMTransportError(str(error) or type(error).__name__, cause=error)
