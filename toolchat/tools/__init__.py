"""Tool system — registry, executor, built-in tools."""
from .registry import register_tool, ToolParam, ToolDef, ToolRegistry, build_registry, validate_args
from .executor import execute_tool, execute_all, truncate_string
