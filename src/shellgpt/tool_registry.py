"""
Tool registry for automatic schema generation and tool dispatch.

Maps plugin callables to Chat Completions tool schemas and executes them by
name.
"""

import inspect
import logging
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union, get_args, get_origin, get_type_hints

logger = logging.getLogger(__name__)

_JSON_TYPES = {str: "string", int: "integer", float: "number", bool: "boolean", list: "array", dict: "object"}


class ToolCall(NamedTuple):
    """A tool call whose arguments have been decoded and checked."""

    name: str
    arguments: Dict[str, Any]


def _json_type(param_type: Any) -> str:
    # Optional[X] -> X
    if get_origin(param_type) is Union:
        candidates = [a for a in get_args(param_type) if a is not type(None)]
        param_type = candidates[0] if candidates else str
    param_type = get_origin(param_type) or param_type
    return _JSON_TYPES.get(param_type, "string")


def _parse_docstring(doc: str) -> tuple[str, Dict[str, str]]:
    """Split a Google-style docstring into summary and ``Args:`` descriptions."""
    summary_lines = []
    arg_docs: Dict[str, str] = {}
    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:", "Parameters:"):
            in_args = True
            continue
        if in_args:
            match = re.match(r"^(\w+)(?:\s*\([^)]*\))?:\s*(.+)$", stripped)
            if match:
                arg_docs[match.group(1)] = match.group(2)
            elif not stripped:
                in_args = False
            continue
        summary_lines.append(line)
    return "\n".join(summary_lines).strip(), arg_docs


def callable_to_tool_schema(
    callable_func: Callable, name: str, description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Convert a Python callable (function or method) to a Chat Completions tool schema.

    Args:
        callable_func: The callable to convert
        name: Tool name
        description: Optional description, defaults to the docstring summary

    Returns:
        Tool schema dictionary
    """
    sig = inspect.signature(callable_func)
    type_hints = get_type_hints(callable_func)

    doc = inspect.getdoc(callable_func) or ""
    summary, arg_docs = _parse_docstring(doc)
    if description is None:
        description = summary or f"Execute {name}"

    parameters: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

    for param_name, param in sig.parameters.items():
        if param_name == "self":
            continue

        param_schema = {
            "type": _json_type(type_hints.get(param_name, str)),
            "description": arg_docs.get(param_name, f"The {param_name} parameter"),
        }
        parameters["properties"][param_name] = param_schema

        if param.default is inspect.Parameter.empty:
            parameters["required"].append(param_name)

    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": parameters,
        },
    }


class ToolRegistry:
    """Tools the model may call, keyed by name, with schemas in registration order."""

    def __init__(self):
        self.tools: Dict[str, Callable] = {}  # name -> callable
        self.schemas: List[Dict[str, Any]] = []

    def register_callable(
        self,
        callable_func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        """
        Register a callable and auto-generate its tool schema.

        Args:
            callable_func: The callable to register
            name: Optional name override (defaults to callable name)
            description: Optional description
        """
        tool_name = name or callable_func.__name__
        schema = callable_to_tool_schema(callable_func, tool_name, description)

        if tool_name in self.tools:
            logger.warning(f"Tool '{tool_name}' registered twice, replacing previous definition")
            self.schemas = [s for s in self.schemas if s["function"]["name"] != tool_name]

        self.tools[tool_name] = callable_func
        self.schemas.append(schema)

    def get_schemas(self) -> List[Dict[str, Any]]:
        """Get all tool schemas for the Chat Completions API."""
        return self.schemas

    def get_tool_names(self) -> List[str]:
        return list(self.tools.keys())

    def has_tool(self, name: str) -> bool:
        return name in self.tools

    async def execute_tool(self, name: str, arguments: Dict[str, Any]) -> Any:
        """
        Call a registered tool with keyword arguments.

        Args:
            name: Name the model used in its tool call
            arguments: Decoded JSON arguments of the call

        Returns:
            Whatever the tool returns; search tools return a list of result dicts

        Raises:
            KeyError: If no tool with that name is registered
        """
        tool = self.tools.get(name)
        if tool is None:
            raise KeyError(f"Unknown tool: {name}")

        result = tool(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    def clear(self) -> None:
        """Clear all registered tools."""
        self.tools.clear()
        self.schemas.clear()

    def __len__(self) -> int:
        return len(self.tools)
