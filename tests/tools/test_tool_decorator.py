"""
Tests for the @tool decorator and FunctionPlugin

Tests cover:
- Schema generation from type hints and Annotated descriptions
- Name/description resolution
- Invocation of async and sync functions
- Conversation id injection
- FunctionPlugin metadata and dispatch
"""

from typing import Annotated, Dict, List, Optional

import pytest

from agentloop.tools import FunctionPlugin, ToolFailure, ToolSuccess, build_json_schema, tool


# =============================================================================
# Schema generation
# =============================================================================


class TestSchema:
    """Tests for JSON Schema derived from signatures"""

    def test_basic_types(self):
        def fn(text: str, count: int, ratio: float, flag: bool):
            pass

        schema = build_json_schema(fn)

        assert schema["type"] == "object"
        assert schema["properties"] == {
            "text": {"type": "string"},
            "count": {"type": "integer"},
            "ratio": {"type": "number"},
            "flag": {"type": "boolean"},
        }
        assert schema["required"] == ["text", "count", "ratio", "flag"]

    def test_annotated_description(self):
        def fn(query: Annotated[str, "Search keywords"]):
            pass

        prop = build_json_schema(fn)["properties"]["query"]
        assert prop == {"type": "string", "description": "Search keywords"}

    def test_defaults_and_optional_not_required(self):
        def fn(a: str, b: int = 3, c: Optional[str] = None):
            pass

        assert build_json_schema(fn)["required"] == ["a"]

    def test_containers(self):
        def fn(tags: List[str], extra: Dict[str, int]):
            pass

        props = build_json_schema(fn)["properties"]
        assert props["tags"] == {"type": "array", "items": {"type": "string"}}
        assert props["extra"] == {"type": "object"}

    def test_injected_and_variadic_params_hidden(self):
        def fn(url: str, *args, conversation_id: str, **kwargs):
            pass

        schema = build_json_schema(fn)
        assert list(schema["properties"]) == ["url"]

    def test_no_params_has_no_required(self):
        def fn():
            pass

        assert "required" not in build_json_schema(fn)


# =============================================================================
# Decorator
# =============================================================================


class TestDecorator:
    """Tests for @tool usage forms"""

    def test_bare_decorator_uses_name_and_docstring(self):
        @tool
        async def get_weather(city: str) -> str:
            """Get the weather for a city.

            Longer explanation that is not part of the description.
            """
            return "sunny"

        assert get_weather.name == "get_weather"
        assert get_weather.definition.description == "Get the weather for a city."
        assert get_weather.definition.category is None

    def test_parameterised_decorator(self):
        @tool(name="fetch", description="Fetch things", category="web", timeout_seconds=60)
        def fetch_page(url: str) -> str:
            return url

        assert fetch_page.name == "fetch"
        assert fetch_page.definition.description == "Fetch things"
        assert fetch_page.definition.category == "web"
        assert fetch_page.definition.timeout_seconds == 60

    def test_missing_docstring_falls_back_to_name(self):
        @tool
        def nothing():
            return None

        assert nothing.definition.description == "nothing"

    def test_still_callable_directly(self):
        @tool
        def add(a: int, b: int) -> int:
            return a + b

        assert add(2, 3) == 5


class TestInvoke:
    """Tests for FunctionTool.invoke"""

    @pytest.mark.asyncio
    async def test_async_function(self):
        @tool
        async def echo(text: str) -> str:
            return text.upper()

        result = await echo.invoke({"text": "hi", "_conversation_id": "c1"})
        assert result == ToolSuccess("HI")

    @pytest.mark.asyncio
    async def test_sync_function_runs(self):
        @tool
        def add(a: int, b: int = 1) -> int:
            return a + b

        result = await add.invoke({"a": 2})
        assert result.output == "3"

    @pytest.mark.asyncio
    async def test_structured_return_serialized(self):
        @tool
        async def listing() -> list:
            return [{"id": 1}]

        result = await listing.invoke({})
        assert '"id": 1' in result.output

    @pytest.mark.asyncio
    async def test_none_return_is_empty_output(self):
        @tool
        async def noop() -> None:
            return None

        assert (await noop.invoke({})).output == ""

    @pytest.mark.asyncio
    async def test_tool_result_passthrough(self):
        @tool
        async def refuse() -> str:
            return ToolFailure("not allowed")

        result = await refuse.invoke({})
        assert isinstance(result, ToolFailure)
        assert result.error == "not allowed"

    @pytest.mark.asyncio
    async def test_missing_required_argument(self):
        @tool
        async def search(query: str, limit: int = 5) -> str:
            return query

        result = await search.invoke({"limit": 3})
        assert isinstance(result, ToolFailure)
        assert "query" in result.error

    @pytest.mark.asyncio
    async def test_conversation_id_injected(self):
        seen = {}

        @tool
        async def whoami(*, conversation_id: str) -> str:
            seen["cid"] = conversation_id
            return "ok"

        await whoami.invoke({"_conversation_id": "conv-42"})
        assert seen["cid"] == "conv-42"

    @pytest.mark.asyncio
    async def test_unknown_arguments_ignored(self):
        @tool
        async def echo(text: str) -> str:
            return text

        result = await echo.invoke({"text": "a", "bogus": 1})
        assert result.output == "a"


# =============================================================================
# FunctionPlugin
# =============================================================================


class TestFunctionPlugin:

    @pytest.fixture
    def plugin(self):
        @tool
        async def add_note(text: Annotated[str, "Note body"]) -> str:
            """Save a note"""
            return f"saved: {text}"

        @tool(category="search")
        async def search_notes(query: str) -> str:
            """Search notes"""
            return "none"

        return FunctionPlugin(
            "notes", "Notes", "Create and search notes",
            tools=[add_note, search_notes], category="notes",
        )

    def test_metadata(self, plugin):
        meta = plugin.metadata()
        assert meta.id == "notes"
        assert meta.category == "notes"
        assert [t.name for t in meta.tools] == ["add_note", "search_notes"]
        assert plugin.tool_names == ["add_note", "search_notes"]

    def test_loaded(self, plugin):
        loaded = plugin.loaded()
        assert loaded.id == "notes"
        assert loaded.instance is plugin

    def test_registers_with_category_override(self, plugin, registry):
        registry.register_plugin(plugin.loaded())
        assert registry.get_tool("add_note").category == "notes"
        assert registry.get_tool("search_notes").category == "search"

    @pytest.mark.asyncio
    async def test_dispatch(self, plugin):
        result = await plugin.execute("add_note", {"text": "milk"})
        assert result.output == "saved: milk"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, plugin):
        result = await plugin.execute("nope", {})
        assert isinstance(result, ToolFailure)
        assert result.error == "Unknown tool: nope"
