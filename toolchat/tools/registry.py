"""Tool registry — decorator-based tool declaration, immutable lookup, argument contracts.

Each tool declares its input contract once, as a list of ToolParam. The JSON
Schema shown to the model and the local argument validation are both derived
from that list.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from ..errors import DuplicateToolError, ToolArgumentError

logger = logging.getLogger(__name__)

_PY_TYPES = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


@dataclass
class ToolParam:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    enum: Optional[List[Any]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    properties: List["ToolParam"] = field(default_factory=list)  # for type="object"

    def to_json_schema(self) -> Dict[str, Any]:
        if self.type == "object" and self.properties:
            schema = _object_schema(self.properties)
        else:
            schema = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        return schema


def _object_schema(params: List[ToolParam]) -> Dict[str, Any]:
    schema = {
        "type": "object",
        "properties": {p.name: p.to_json_schema() for p in params},
        "additionalProperties": False,
    }
    required = [p.name for p in params if p.required]
    if required:
        schema["required"] = required
    return schema


@dataclass(frozen=True)
class ToolDef:
    name: str
    description: str
    params: List[ToolParam]
    handler: Callable[..., Awaitable[Any]]
    category: str = ""

    @property
    def input_schema(self) -> Dict[str, Any]:
        return _object_schema(self.params)

    def to_openai(self) -> Dict[str, Any]:
        """Function-tool entry for the chat completions `tools` list."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


_tools: Dict[str, ToolDef] = {}


def register_tool(
    name: str,
    description: str = "",
    params: Optional[List[ToolParam]] = None,
    category: str = "",
):
    """Decorator to declare a tool handler. Duplicate names fail at import time."""
    def decorator(func):
        if name in _tools:
            raise DuplicateToolError(name)
        _tools[name] = ToolDef(
            name=name,
            description=description or (func.__doc__ or "").strip(),
            params=params or [],
            handler=func,
            category=category,
        )
        logger.debug(f"Declared tool: {name}")
        return func
    return decorator


def all_tools() -> Dict[str, ToolDef]:
    return dict(_tools)


class ToolRegistry:
    """Immutable name -> ToolDef mapping, built once at startup."""

    def __init__(self, tools: Iterable[ToolDef]):
        by_name: Dict[str, ToolDef] = {}
        for tool in tools:
            if tool.name in by_name:
                raise DuplicateToolError(tool.name)
            by_name[tool.name] = tool
        self._tools: Mapping[str, ToolDef] = MappingProxyType(by_name)

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[Dict[str, Any]]:
        return [tool.to_openai() for tool in self._tools.values()]

    def describe(self) -> str:
        """One line per tool, for `--list-tools` and logs."""
        lines = []
        for name, tool in sorted(self._tools.items()):
            params = []
            for p in tool.params:
                req = "required" if p.required else "optional"
                params.append(f"{p.name}({req})")
            params_text = ", ".join(params) if params else "none"
            label = f"{name} [{tool.category}]" if tool.category else name
            lines.append(f"- {label}: {tool.description} | params: {params_text}")
        return "\n".join(lines)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


def build_registry() -> ToolRegistry:
    """Import the built-in tools and freeze them into a registry."""
    from . import builtin  # noqa: F401  (triggers @register_tool)
    registry = ToolRegistry(all_tools().values())
    logger.info(f"Tool registry ready: {', '.join(registry.names())}")
    return registry


def validate_args(tool: ToolDef, args: Mapping[str, Any]) -> None:
    """Check `args` against the tool's declared params. Raises ToolArgumentError."""
    _validate_object(tool.name, tool.params, args, path="")


def _validate_object(tool_name: str, params: List[ToolParam], args: Any, path: str) -> None:
    if not isinstance(args, dict):
        raise ToolArgumentError(tool_name, f"{path or 'arguments'} must be an object")

    declared = {p.name: p for p in params}
    unknown = sorted(set(args) - set(declared))
    if unknown:
        raise ToolArgumentError(tool_name, f"unexpected parameter(s): {', '.join(path + u for u in unknown)}")

    for param in params:
        key = path + param.name
        if param.name not in args or args[param.name] is None:
            if param.required:
                raise ToolArgumentError(tool_name, f"missing required parameter '{key}'")
            continue
        value = args[param.name]
        _validate_value(tool_name, param, value, key)
        if param.type == "object" and param.properties:
            _validate_object(tool_name, param.properties, value, path=f"{key}.")


def _validate_value(tool_name: str, param: ToolParam, value: Any, key: str) -> None:
    expected = _PY_TYPES.get(param.type)
    # bool is an int subclass; JSON keeps them apart
    is_bool = isinstance(value, bool)
    if expected and (not isinstance(value, expected) or (is_bool and param.type != "boolean")):
        raise ToolArgumentError(tool_name, f"'{key}' must be of type {param.type}")
    if param.enum and value not in param.enum:
        allowed = ", ".join(repr(v) for v in param.enum)
        raise ToolArgumentError(tool_name, f"'{key}' must be one of {allowed}")
    if param.minimum is not None and value < param.minimum:
        raise ToolArgumentError(tool_name, f"'{key}' must be >= {param.minimum}")
    if param.maximum is not None and value > param.maximum:
        raise ToolArgumentError(tool_name, f"'{key}' must be <= {param.maximum}")
