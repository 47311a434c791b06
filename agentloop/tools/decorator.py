"""
@tool decorator - build FunctionTool instances from typed Python functions.

Inspects the function signature and type hints to build JSON Schema for
parameters, then wraps the function so it can be invoked with the
structured arguments parsed by the ToolExecutor.

Usage::

    from typing import Annotated
    from agentloop.tools import tool

    @tool
    async def search_notes(
        query: Annotated[str, "Search keywords"],
        limit: Annotated[int, "Max results to return"] = 10,
    ) -> str:
        \"\"\"Search saved notes.\"\"\"
        ...

    @tool(category="web", timeout_seconds=60)
    def fetch_page(url: Annotated[str, "Page URL"], *, conversation_id: str) -> str:
        \"\"\"Fetch a web page.\"\"\"
        ...

Synchronous functions run in the event loop's default thread pool. A
keyword-only ``conversation_id`` parameter receives the conversation id the
executor injects into every call.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import types
from typing import (
    Annotated,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from ..constants import CONVERSATION_ID_ARG
from .models import ToolDefinition, ToolFailure, ToolResult, ToolSuccess

_NoneType = type(None)
_INJECTED_PARAMS = frozenset({"conversation_id"})


def _is_union(annotation: Any) -> bool:
    origin = get_origin(annotation)
    return origin is Union or origin is types.UnionType


def _is_optional(annotation: Any) -> bool:
    """Return True if *annotation* is ``Optional[X]`` / ``X | None``."""
    return _is_union(annotation) and _NoneType in get_args(annotation)


def _extract_base_type(annotation: Any) -> Any:
    """Unwrap ``Annotated[T, ...]`` to get ``T``."""
    if get_origin(annotation) is Annotated:
        return get_args(annotation)[0]
    return annotation


def _extract_annotated_description(annotation: Any) -> Optional[str]:
    """If *annotation* is ``Annotated[T, "desc"]``, return ``"desc"``."""
    if get_origin(annotation) is not Annotated:
        return None
    for a in get_args(annotation)[1:]:
        if isinstance(a, str):
            return a
    return None


def _python_type_to_json_schema(annotation: Any) -> Dict[str, Any]:
    """Map a Python type annotation to a JSON Schema dict."""
    base = _extract_base_type(annotation)

    if _is_union(base):
        args = [a for a in get_args(base) if a is not _NoneType]
        if len(args) == 1:
            return _python_type_to_json_schema(args[0])
        return {"type": "string"}

    if base is str:
        return {"type": "string"}
    if base is bool:
        return {"type": "boolean"}
    if base is int:
        return {"type": "integer"}
    if base is float:
        return {"type": "number"}

    origin = get_origin(base)
    if base is list or origin is list:
        schema: Dict[str, Any] = {"type": "array"}
        args = get_args(base)
        if args:
            schema["items"] = _python_type_to_json_schema(args[0])
        return schema

    if base is dict or origin is dict:
        return {"type": "object"}

    return {"type": "string"}


def _visible_parameters(func: Callable) -> List[inspect.Parameter]:
    params = []
    for name, param in inspect.signature(func).parameters.items():
        if name in _INJECTED_PARAMS:
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        params.append(param)
    return params


def build_json_schema(func: Callable) -> Dict[str, Any]:
    """Build a full JSON Schema ``{"type": "object", ...}`` from *func*'s signature."""
    try:
        hints = get_type_hints(func, include_extras=True)
    except Exception:
        hints = {}

    properties: Dict[str, Any] = {}
    required: List[str] = []

    for param in _visible_parameters(func):
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            annotation = str

        prop_schema = _python_type_to_json_schema(annotation)
        desc = _extract_annotated_description(annotation)
        if desc:
            prop_schema["description"] = desc
        properties[param.name] = prop_schema

        has_default = param.default is not inspect.Parameter.empty
        if not has_default and not _is_optional(_extract_base_type(annotation)):
            required.append(param.name)

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _to_tool_result(value: Any) -> ToolResult:
    if isinstance(value, (ToolSuccess, ToolFailure)):
        return value
    if value is None:
        return ToolSuccess("")
    if isinstance(value, (dict, list)):
        return ToolSuccess(json.dumps(value, ensure_ascii=False, indent=2))
    return ToolSuccess(str(value))


class FunctionTool:
    """A Python callable exposed as a tool."""

    def __init__(self, func: Callable, definition: ToolDefinition):
        self.func = func
        self.definition = definition
        self._params = _visible_parameters(func)
        self._wants_conversation_id = "conversation_id" in inspect.signature(func).parameters
        functools.update_wrapper(self, func)

    @property
    def name(self) -> str:
        return self.definition.name

    def _build_kwargs(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        kwargs = {p.name: arguments[p.name] for p in self._params if p.name in arguments}
        if self._wants_conversation_id:
            kwargs["conversation_id"] = arguments.get(CONVERSATION_ID_ARG)
        return kwargs

    async def invoke(self, arguments: Dict[str, Any]) -> ToolResult:
        """Call the wrapped function; missing required arguments are a ToolFailure."""
        missing = [
            p.name for p in self._params
            if p.default is inspect.Parameter.empty and p.name not in arguments
        ]
        if missing:
            return ToolFailure(f"Missing required argument(s): {', '.join(missing)}")

        kwargs = self._build_kwargs(arguments)
        if inspect.iscoroutinefunction(self.func):
            value = await self.func(**kwargs)
        else:
            loop = asyncio.get_running_loop()
            value = await loop.run_in_executor(None, functools.partial(self.func, **kwargs))
        return _to_tool_result(value)

    def __call__(self, *args, **kwargs):
        return self.func(*args, **kwargs)


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    category: Optional[str] = None,
    timeout_seconds: Optional[float] = None,
) -> Any:
    """Decorator that converts a typed function into a :class:`FunctionTool`.

    Supports both bare ``@tool`` and parameterised ``@tool(category="web")``.
    """

    def _make_tool(fn: Callable) -> FunctionTool:
        tool_name = name or fn.__name__
        doc = inspect.getdoc(fn) or ""
        desc = description or (doc.split("\n")[0].strip() if doc else tool_name)
        definition = ToolDefinition(
            name=tool_name,
            description=desc,
            parameters=build_json_schema(fn),
            timeout_seconds=timeout_seconds,
            category=category,
        )
        return FunctionTool(fn, definition)

    if func is not None:
        return _make_tool(func)
    return _make_tool
