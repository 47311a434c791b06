"""Tests for agentloop.llm - message wire format, BaseLLMClient and LiteLLMClient"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from agentloop.errors import ContextOverflowError, LLMTransportError
from agentloop.llm.base import (
    BaseLLMClient,
    LLMConfig,
    LLMResponse,
    MediaData,
    Message,
    ToolCall,
)
from agentloop.llm.litellm_client import LiteLLMClient, build_litellm_model_string


# ── Concrete subclass for testing ──


class StubLLMClient(BaseLLMClient):
    provider = "stub"

    def __init__(self, *args, result=None, error=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.result = result or LLMResponse(id="stub")
        self.error = error
        self.calls = []

    async def _call_api(self, messages, model, temperature, max_tokens, tools):
        self.calls.append(dict(messages=messages, model=model, temperature=temperature,
                               max_tokens=max_tokens, tools=tools))
        if self.error is not None:
            raise self.error
        return self.result


# =========================================================================
# Wire format
# =========================================================================


class TestMessage:

    def test_plain_message(self):
        assert Message(role="user", content="hi").to_dict() == {"role": "user", "content": "hi"}

    def test_assistant_tool_calls(self):
        call = ToolCall.create("call_1", "get_time", {"city": "Tokyo"})
        msg = Message(role="assistant", tool_calls=[call]).to_dict()

        assert msg["content"] is None
        assert msg["tool_calls"] == [{
            "id": "call_1",
            "type": "function",
            "function": {"name": "get_time", "arguments": '{"city": "Tokyo"}'},
        }]

    def test_tool_result(self):
        msg = Message(role="tool", content="09:41", tool_call_id="call_1", name="get_time").to_dict()
        assert msg == {"role": "tool", "content": "09:41", "tool_call_id": "call_1", "name": "get_time"}

    def test_media_becomes_content_parts(self):
        msg = Message(role="user", content="what is this?", media=[
            MediaData("AAAA", "image/png"),
            MediaData("https://example.com/cat.jpg"),
        ]).to_dict()

        assert msg["content"] == [
            {"type": "text", "text": "what is this?"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
            {"type": "image_url", "image_url": {"url": "https://example.com/cat.jpg"}},
        ]


class TestToolCall:

    def test_from_dict_round_trip(self):
        data = {"id": "c1", "type": "function", "function": {"name": "f", "arguments": "{}"}}
        assert ToolCall.from_dict(data).to_dict() == data

    def test_from_dict_with_object_arguments(self):
        call = ToolCall.from_dict({"id": "c1", "function": {"name": "f", "arguments": {"a": 1}}})
        assert json.loads(call.function.arguments) == {"a": 1}
        assert call.name == "f"


# =========================================================================
# BaseLLMClient
# =========================================================================


class TestBaseClient:

    @pytest.mark.asyncio
    async def test_success_wrapped(self):
        client = StubLLMClient(model="gpt-4o")

        outcome = await client.complete([Message(role="user", content="hi")])

        assert outcome.is_success
        assert outcome.value.id == "stub"
        call = client.calls[0]
        assert call["messages"] == [{"role": "user", "content": "hi"}]
        assert call["model"] == "gpt-4o"
        assert call["temperature"] == 0.2
        assert call["tools"] is None

    @pytest.mark.asyncio
    async def test_overrides(self):
        client = StubLLMClient(model="gpt-4o", max_tokens=100)
        tools = [{"type": "function", "function": {"name": "f"}}]

        await client.complete([], model="other", temperature=0.9, max_tokens=5, tools=tools)

        call = client.calls[0]
        assert (call["model"], call["temperature"], call["max_tokens"]) == ("other", 0.9, 5)
        assert call["tools"] == tools

    @pytest.mark.asyncio
    async def test_exception_becomes_failure(self):
        client = StubLLMClient(error=ConnectionError("connection reset"))

        outcome = await client.complete([Message(role="user", content="hi")])

        assert outcome.is_failure
        assert isinstance(outcome.error, LLMTransportError)
        assert outcome.error.message == "connection reset"
        assert isinstance(outcome.error.cause, ConnectionError)

    @pytest.mark.asyncio
    async def test_taxonomy_errors_passed_through(self):
        client = StubLLMClient(error=ContextOverflowError("too long"))
        outcome = await client.complete([])
        assert isinstance(outcome.error, ContextOverflowError)

    def test_config_kwargs_override(self):
        config = LLMConfig(model="a", context_window=8_000)
        client = StubLLMClient(config, model="b")
        assert client.config.model == "b"
        assert client.context_window == 8_000


# =========================================================================
# LiteLLMClient
# =========================================================================


class TestModelString:

    @pytest.mark.parametrize("provider, model, expected", [
        ("openai", "gpt-4o", "gpt-4o"),
        ("anthropic", "claude-sonnet-4", "anthropic/claude-sonnet-4"),
        ("Gemini", "gemini-2.0-flash", "gemini/gemini-2.0-flash"),
        ("ollama", "llama3", "ollama/llama3"),
        ("dashscope", "qwen-max", "openai/qwen-max"),
        ("mystery", "m", "m"),
    ])
    def test_mapping(self, provider, model, expected):
        assert build_litellm_model_string(provider, model) == expected


def _litellm_response(content=None, tool_calls=None, finish_reason="stop", usage=True):
    message = SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-4o",
        choices=[SimpleNamespace(index=0, message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15) if usage else None,
    )


class TestLiteLLMClient:

    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        return LiteLLMClient(LLMConfig(model="gpt-4o", api_key="sk-test", timeout=30), provider_name="openai")

    def test_parse_text_response(self):
        parsed = LiteLLMClient._parse_response(_litellm_response("Hello"))

        assert parsed.first_choice.message.content == "Hello"
        assert parsed.first_choice.finish_reason == "stop"
        assert parsed.usage.total_tokens == 15
        assert parsed.id == "chatcmpl-1"

    def test_parse_tool_calls(self):
        raw_call = SimpleNamespace(
            id="call_1",
            function=SimpleNamespace(name="get_time", arguments={"city": "Paris"}),
        )
        parsed = LiteLLMClient._parse_response(
            _litellm_response(tool_calls=[raw_call], finish_reason="tool_calls", usage=False)
        )

        call = parsed.first_choice.message.tool_calls[0]
        assert call.id == "call_1"
        assert json.loads(call.function.arguments) == {"city": "Paris"}
        assert parsed.usage is None

    @pytest.mark.asyncio
    async def test_complete_calls_litellm(self, client):
        with patch("litellm.acompletion", new=AsyncMock(return_value=_litellm_response("Hi"))) as acompletion:
            outcome = await client.complete(
                [Message(role="user", content="hello")],
                tools=[{"type": "function", "function": {"name": "f"}}],
            )

        assert outcome.value.first_choice.message.content == "Hi"
        params = acompletion.await_args.kwargs
        assert params["model"] == "gpt-4o"
        assert params["api_key"] == "sk-test"
        assert params["timeout"] == 30
        assert params["tool_choice"] == "auto"
        assert params["messages"] == [{"role": "user", "content": "hello"}]

    @pytest.mark.asyncio
    async def test_context_overflow_classified(self, client):
        error = Exception("This model's maximum context length is 128000 tokens")
        with patch("litellm.acompletion", new=AsyncMock(side_effect=error)):
            outcome = await client.complete([Message(role="user", content="hello")])

        assert isinstance(outcome.error, ContextOverflowError)

    @pytest.mark.asyncio
    async def test_other_errors_are_transport_errors(self, client):
        with patch("litellm.acompletion", new=AsyncMock(side_effect=RuntimeError("401 Unauthorized"))):
            outcome = await client.complete([Message(role="user", content="hello")])

        assert type(outcome.error) is LLMTransportError

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        client = LiteLLMClient(LLMConfig(model="claude"), provider_name="anthropic")
        assert client._base_kwargs["api_key"] == "env-key"
