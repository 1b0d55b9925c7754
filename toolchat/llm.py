"""Model provider client — chat completions with function tools via OpenAI."""
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import ModelProviderError
from .messages import Message, TextBlock, ToolResultBlock, ToolUseBlock

logger = logging.getLogger(__name__)


def _get_client(settings: Settings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )


def to_openai_messages(messages: Sequence[Message], system_prompt: str = "") -> List[Dict[str, Any]]:
    """Translate the conversation into chat-completions messages.

    Tool results travel as one `tool` message each; any text sent alongside
    them follows as a plain user message.
    """
    out: List[Dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if isinstance(msg.content, str):
            out.append({"role": msg.role, "content": msg.content})
            continue

        if msg.role == "assistant":
            calls = msg.tool_calls
            # null content is only accepted next to tool_calls
            text = "\n".join(msg.texts) or (None if calls else "")
            entry: Dict[str, Any] = {"role": "assistant", "content": text}
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": c.id,
                        "type": "function",
                        "function": {"name": c.name, "arguments": json.dumps(c.arguments)},
                    }
                    for c in calls
                ]
            out.append(entry)
            continue

        for block in msg.blocks:
            if isinstance(block, ToolResultBlock):
                out.append({
                    "role": "tool",
                    "tool_call_id": block.tool_use_id,
                    "content": "\n".join(b.text for b in block.content),
                })
        texts = msg.texts
        if texts:
            out.append({"role": "user", "content": "\n".join(texts)})
    return out


def _decode_arguments(name: str, raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Tool call {name}: arguments are not valid JSON, using {{}}: {raw[:200]}")
        return {}
    if not isinstance(args, dict):
        logger.warning(f"Tool call {name}: arguments are not an object, using {{}}")
        return {}
    return args


def from_openai_message(message: Any) -> Message:
    """Turn a chat-completions assistant message into content blocks."""
    blocks = []
    if message.content:
        blocks.append(TextBlock(message.content))
    for call in message.tool_calls or []:
        fn = getattr(call, "function", None)
        if fn is None:
            logger.warning(f"Skipping non-function tool call {call.id}")
            continue
        blocks.append(ToolUseBlock(id=call.id, name=fn.name, arguments=_decode_arguments(fn.name, fn.arguments)))
    return Message(role="assistant", content=blocks)


async def complete(
    messages: Sequence[Message],
    tools: List[Dict[str, Any]],
    settings: Settings,
    client: Optional[AsyncOpenAI] = None,
) -> Message:
    """Request one completion for the conversation so far."""
    client = client or _get_client(settings)
    kwargs: Dict[str, Any] = dict(
        model=settings.model,
        messages=to_openai_messages(messages, settings.system_prompt),
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
    if tools:
        kwargs["tools"] = tools

    try:
        response = await client.chat.completions.create(**kwargs)
    except openai.OpenAIError as e:
        raise ModelProviderError(f"Model request failed: {e}") from e

    if not response.choices:
        raise ModelProviderError("Model returned no choices")

    choice = response.choices[0]
    reply = from_openai_message(choice.message)
    logger.info(f"Model reply: finish={choice.finish_reason}, "
                f"text={len(reply.texts)}, tool_calls={len(reply.tool_calls)}")
    return reply
