"""Shared fixtures: settings, fake tools, and a scripted model client."""
import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from toolchat.config import Settings
from toolchat.tools.registry import ToolDef, ToolParam, ToolRegistry


def make_settings(**overrides) -> Settings:
    values = dict(
        openai_api_key="sk-test-1234",
        openai_base_url="https://llm.test/v1",
        model="test-model",
        temperature=0.5,
        max_tokens=1024,
        system_prompt="",
        max_turns=25,
        tool_output_limit=100000,
        http_timeout=5.0,
        weather_api_key="weather-key",
        weather_api_base_url="https://weather.test/v1",
        song_api_key="song-key",
        song_api_base_url="https://song.test",
        confluence_base_url="https://acme.atlassian.net",
        confluence_email="bot@acme.test",
        confluence_api_token="conf-token",
        image_api_key="img-key",
        image_api_base_url="https://images.test/v1",
        image_model="dall-e-3",
        postman_api_key="PMAK-test",
        postman_base_url="https://postman.test",
        postman_team_domain="acme.postman.co",
    )
    values.update(overrides)
    return Settings(**values)


def completion(content=None, tool_calls=()):
    """Fake chat-completions response. tool_calls: (id, name, args) tuples."""
    calls = [
        SimpleNamespace(
            id=call_id,
            type="function",
            function=SimpleNamespace(name=name, arguments=args if isinstance(args, str) else json.dumps(args)),
        )
        for call_id, name, args in tool_calls
    ]
    message = SimpleNamespace(content=content, tool_calls=calls or None)
    finish = "tool_calls" if calls else "stop"
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish)])


def scripted_client(*responses):
    """Client whose completions return (or raise) `responses` in order."""
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def make_completion():
    return completion


@pytest.fixture
def make_client():
    return scripted_client


@pytest.fixture
def calls():
    """Log of fake tool invocations."""
    return []


@pytest.fixture
def fake_tools(calls):
    async def echo(text: str, settings=None, **kwargs):
        calls.append(("echo", text))
        return f"echo: {text}"

    async def add(a: int, b: int, settings=None, **kwargs):
        calls.append(("add", a, b))
        return [{"type": "text", "text": str(a + b)}]

    async def boom(settings=None, **kwargs):
        calls.append(("boom",))
        raise RuntimeError("kaboom")

    async def slow(tag: str, settings=None, **kwargs):
        calls.append(("slow", tag))
        await asyncio.sleep(0.01)
        return f"slow {tag} done"

    return [
        ToolDef("echo", "Echo text back", [ToolParam("text", description="text to echo")], echo),
        ToolDef("add", "Add two integers", [ToolParam("a", type="integer"), ToolParam("b", type="integer")], add),
        ToolDef("boom", "Always fails", [], boom),
        ToolDef("slow", "Sleeps then answers", [ToolParam("tag")], slow),
    ]


@pytest.fixture
def registry(fake_tools):
    return ToolRegistry(fake_tools)
