"""Shared fixtures for agentloop tests."""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from agentloop.llm.base import Choice, LLMResponse, MessageResponse, ToolCall, Usage
from agentloop.result import Success
from agentloop.storage.memory import InMemoryMessageStore
from agentloop.tools.models import PluginMetadata, ToolDefinition, ToolResult, ToolSuccess
from agentloop.tools.plugin import LoadedPlugin, Plugin
from agentloop.tools.registry import ToolRegistry


def build_response(
    content: Optional[str] = None,
    finish_reason: Optional[str] = "stop",
    tool_calls: Optional[List[ToolCall]] = None,
    usage: Optional[Usage] = None,
) -> LLMResponse:
    return LLMResponse(
        id="resp",
        choices=[Choice(
            message=MessageResponse(content=content, tool_calls=tool_calls),
            finish_reason=finish_reason,
        )],
        usage=usage,
    )


class RecordingPlugin(Plugin):
    """Plugin that records calls and answers from a name -> output map."""

    def __init__(self, outputs: Optional[Dict[str, Any]] = None):
        self.outputs = outputs or {}
        self.calls: List[tuple] = []

    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResult:
        self.calls.append((tool_name, dict(arguments)))
        output = self.outputs.get(tool_name, f"{tool_name} ok")
        if callable(output):
            return await output(arguments)
        if isinstance(output, BaseException):
            raise output
        return ToolSuccess(output)


def loaded_plugin(
    plugin_id: str,
    tools: List[ToolDefinition],
    instance: Optional[Plugin] = None,
    category: str = "core",
    description: str = "",
) -> LoadedPlugin:
    return LoadedPlugin(
        metadata=PluginMetadata(
            id=plugin_id,
            name=plugin_id,
            description=description,
            category=category,
            tools=tools,
        ),
        instance=instance or RecordingPlugin(),
    )


@pytest.fixture
def make_response():
    return build_response


@pytest.fixture
def make_plugin():
    return loaded_plugin


@pytest.fixture
def recording_plugin():
    return RecordingPlugin


@pytest.fixture
def store():
    return InMemoryMessageStore()


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def scripted_llm():
    """LLM client whose complete() returns the given responses in order."""

    def _make(*responses: LLMResponse) -> AsyncMock:
        client = AsyncMock()
        client.complete = AsyncMock(side_effect=[Success(r) for r in responses])
        return client

    return _make
