"""Tests for agentloop.app - wiring, plugin loading and conversation lifecycle"""

from typing import Annotated
from unittest.mock import AsyncMock

import pytest

from agentloop.app import AgentLoopApp
from agentloop.config import AppConfig
from agentloop.errors import ConfigError
from agentloop.llm.base import ToolCall
from agentloop.tools import FunctionPlugin, tool
from agentloop.tools.models import PluginMetadata, ToolDefinition, ToolSuccess
from agentloop.tools.plugin import LoadedPlugin, Plugin


def _config(**overrides):
    data = {"llm": {"provider": "openai", "model": "gpt-4o-mini"}}
    data.update(overrides)
    return AppConfig.from_dict(data)


@tool
async def get_time(city: Annotated[str, "City name"]) -> str:
    """Get the local time in a city"""
    return f"09:41 in {city}"


class TestAgentLoopApp:

    def test_unknown_plugin_rejected(self):
        with pytest.raises(ConfigError, match="Unknown plugin 'nope'"):
            AgentLoopApp(_config(plugins=["nope"]))

    def test_loads_yaml_path(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("llm:\n  provider: openai\n  model: gpt-4o\nsystem_prompt: Be terse.\n")

        app = AgentLoopApp(str(config_file))

        assert app.config.system_prompt == "Be terse."

    @pytest.mark.asyncio
    async def test_chat_with_registered_tool(self, scripted_llm, make_response):
        llm = scripted_llm(
            make_response(None, finish_reason="tool_calls", tool_calls=[
                ToolCall.create("c1", "get_time", {"city": "Tokyo"}),
            ]),
            make_response("It is 09:41 in Tokyo."),
        )
        app = AgentLoopApp(_config(system_prompt="You tell the time."), llm_client=llm)
        await app.register_plugin(FunctionPlugin("clock", "Clock", tools=[get_time]))

        outcome = await app.chat("conv1", "What time is it in Tokyo?")

        assert outcome.value == "It is 09:41 in Tokyo."
        first = llm.complete.await_args_list[0].kwargs
        assert first["model"] == "gpt-4o-mini"
        assert first["messages"][0].content == "You tell the time."
        tool_records = [r for r in app.message_store.get_messages("conv1") if r.role == "tool"]
        assert tool_records[0].content == "09:41 in Tokyo"
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_coordinator_reused_per_conversation(self, scripted_llm):
        app = AgentLoopApp(_config(), llm_client=scripted_llm())

        first = await app.coordinator("conv1")
        again = await app.coordinator("conv1")
        other = await app.coordinator("conv2")

        assert first is again
        assert other is not first
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_bundled_web_plugin_and_delegation(self, scripted_llm):
        app = AgentLoopApp(
            _config(plugins=["web"], agents=[{"name": "researcher", "allowed_tools": ["web_fetch"]}]),
            llm_client=scripted_llm(),
        )

        await app.coordinator("conv1")

        assert app.registry.get_tool("web_fetch").category == "web"
        assert app.registry.has_tool("delegate_to_agent")
        assert app.registry.has_tool("activate_tools")
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_close_conversation_releases_builtins(self, scripted_llm):
        app = AgentLoopApp(_config(), llm_client=scripted_llm())
        await app.coordinator("conv1")
        assert app.registry.has_tool("summarize_conversation")

        await app.close_conversation("conv1")

        assert not app.registry.has_tool("summarize_conversation")
        # closing twice is harmless
        await app.close_conversation("conv1")
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_llm_client(self, scripted_llm):
        llm = scripted_llm()
        app = AgentLoopApp(_config(), llm_client=llm)
        await app.coordinator("conv1")

        await app.shutdown()

        llm.close.assert_awaited_once()


class _LifecyclePlugin(Plugin):
    """Records lifecycle hook calls."""

    def __init__(self, fail_unload=False):
        self.events = []
        self.context = None
        self.fail_unload = fail_unload

    async def on_load(self, context):
        self.context = context
        self.events.append("load")

    async def execute(self, tool_name, arguments):
        return ToolSuccess("ok")

    async def on_unload(self):
        self.events.append("unload")
        if self.fail_unload:
            raise RuntimeError("socket already closed")


def _lifecycle(plugin_id, instance, tool_name="ping"):
    metadata = PluginMetadata(
        id=plugin_id, name=plugin_id, tools=[ToolDefinition(tool_name, "Ping")],
    )
    return LoadedPlugin(metadata, instance)


class TestPluginLifecycle:

    @pytest.mark.asyncio
    async def test_load_and_unregister_call_hooks(self, scripted_llm):
        app = AgentLoopApp(_config(), llm_client=scripted_llm())
        plugin = _LifecyclePlugin()

        await app.register_plugin(_lifecycle("pinger", plugin), settings={"interval": 5})

        assert plugin.events == ["load"]
        assert plugin.context.plugin_id == "pinger"
        assert plugin.context.settings == {"interval": 5}
        assert app.registry.has_tool("ping")

        assert await app.unregister_plugin("pinger") == 1
        assert plugin.events == ["load", "unload"]
        assert not app.registry.has_tool("ping")
        assert await app.unregister_plugin("pinger") == 0

    @pytest.mark.asyncio
    async def test_failed_load_registers_nothing(self, scripted_llm):
        app = AgentLoopApp(_config(), llm_client=scripted_llm())
        plugin = _LifecyclePlugin()
        plugin.on_load = AsyncMock(side_effect=ConnectionError("no credentials"))

        with pytest.raises(ConnectionError):
            await app.register_plugin(_lifecycle("pinger", plugin))

        assert not app.registry.has_tool("ping")

    @pytest.mark.asyncio
    async def test_reload_unloads_previous_instance(self, scripted_llm):
        app = AgentLoopApp(_config(), llm_client=scripted_llm())
        old, new = _LifecyclePlugin(), _LifecyclePlugin()

        await app.register_plugin(_lifecycle("pinger", old))
        await app.register_plugin(_lifecycle("pinger", new))

        assert old.events == ["load", "unload"]
        assert new.events == ["load"]
        assert app.registry.get_plugin("pinger") is new

    @pytest.mark.asyncio
    async def test_shutdown_unloads_every_plugin(self, scripted_llm):
        app = AgentLoopApp(_config(plugins=["web"]), llm_client=scripted_llm())
        broken, healthy = _LifecyclePlugin(fail_unload=True), _LifecyclePlugin()
        await app.register_plugin(_lifecycle("broken", broken, "a"))
        await app.register_plugin(_lifecycle("healthy", healthy, "b"))
        await app.coordinator("conv1")
        assert app.registry.has_tool("web_fetch")

        await app.shutdown()

        assert broken.events == ["load", "unload"]
        assert healthy.events == ["load", "unload"]
        assert not app.registry.has_tool("web_fetch")
        assert app.registry.size() == 0
