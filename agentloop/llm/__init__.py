"""
agentloop LLM - Message model and LLM client adapters

Provides:
- Message, ToolCall, FunctionCall, MediaData: conversational context types
- LLMResponse, Choice, MessageResponse, Usage: standardized response format
- BaseLLMClient: base class for clients returning Outcome[LLMResponse]
- LiteLLMClient: multi-provider client powered by litellm
"""

from .base import (
    BaseLLMClient,
    Choice,
    FunctionCall,
    LLMConfig,
    LLMResponse,
    MediaData,
    Message,
    MessageResponse,
    ToolCall,
    Usage,
)
from .litellm_client import LiteLLMClient, build_litellm_model_string

__all__ = [
    "BaseLLMClient",
    "Choice",
    "FunctionCall",
    "LLMConfig",
    "LLMResponse",
    "MediaData",
    "Message",
    "MessageResponse",
    "ToolCall",
    "Usage",
    "LiteLLMClient",
    "build_litellm_model_string",
]
