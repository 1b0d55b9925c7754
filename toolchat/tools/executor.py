"""Tool executor — resolves tool calls against the registry and runs them.

A failing tool never raises out of here: unknown names, bad arguments and
handler exceptions all come back as error tool results the model can read.
"""
import asyncio
import logging
import time
from typing import Any, List, Sequence

from ..config import Settings
from ..errors import ToolArgumentError, UnknownToolError
from ..messages import TextBlock, ToolCallRequest, ToolResult
from .registry import ToolRegistry, validate_args

logger = logging.getLogger(__name__)

ELLIPSIS = "..."


def truncate_string(text: str, limit: int) -> str:
    """Cut `text` to exactly `limit` characters, the last three being '...'."""
    if limit <= 0 or len(text) <= limit:
        return text
    if limit <= len(ELLIPSIS):
        return text[:limit]
    return text[:limit - len(ELLIPSIS)] + ELLIPSIS


def normalize_content(output: Any) -> List[TextBlock]:
    """Coerce whatever a handler returned into a list of text blocks."""
    if output is None:
        return []
    if isinstance(output, (str, TextBlock, dict)):
        output = [output]
    blocks = []
    for item in output:
        if isinstance(item, TextBlock):
            blocks.append(item)
        elif isinstance(item, dict) and item.get("type", "text") == "text":
            blocks.append(TextBlock(str(item.get("text", ""))))
        else:
            blocks.append(TextBlock(str(item)))
    return blocks


def _error_result(request: ToolCallRequest, exc: Exception) -> ToolResult:
    return ToolResult(
        id=request.id,
        content=[TextBlock(f"Error calling {request.name}: {exc}")],
        is_error=True,
    )


async def execute_tool(request: ToolCallRequest, registry: ToolRegistry, settings: Settings) -> ToolResult:
    """Execute one tool call. Always returns a ToolResult tagged with `request.id`."""
    tool = registry.get(request.name)
    if not tool:
        logger.warning(f"Unknown tool: {request.name} (available: {', '.join(registry.names())})")
        return _error_result(request, UnknownToolError(request.name))

    try:
        validate_args(tool, request.arguments)
    except ToolArgumentError as e:
        logger.warning(f"Tool {request.name} rejected arguments: {e}")
        return _error_result(request, e)

    # null means "not given"; let the handler default apply
    args = {k: v for k, v in request.arguments.items() if v is not None}

    arg_str = ", ".join(f"{k}={v!r}" for k, v in args.items())
    logger.info(f"Executing tool: {request.name}({arg_str})")
    t0 = time.monotonic()

    try:
        output = await tool.handler(settings=settings, **args)
        result = ToolResult(
            id=request.id,
            content=[TextBlock(truncate_string(b.text, settings.tool_output_limit))
                     for b in normalize_content(output)],
        )
    except Exception as e:
        logger.error(f"Tool {request.name} failed: {e}", exc_info=True)
        result = _error_result(request, e)

    elapsed = time.monotonic() - t0
    logger.info(f"Tool {request.name}: {elapsed:.1f}s -> {'error' if result.is_error else 'ok'}")
    return result


async def execute_all(requests: Sequence[ToolCallRequest], registry: ToolRegistry,
                      settings: Settings) -> List[ToolResult]:
    """Run every request concurrently and wait for all of them. Order follows `requests`."""
    return list(await asyncio.gather(
        *(execute_tool(r, registry, settings) for r in requests)
    ))
