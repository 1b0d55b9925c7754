"""Tests for llm.py — message conversion and the completion call."""
from types import SimpleNamespace
from unittest.mock import patch

import openai
import pytest

from toolchat.errors import ModelProviderError
from toolchat.llm import _get_client, complete, from_openai_message, to_openai_messages
from toolchat.messages import Message, TextBlock, ToolResult, ToolUseBlock, tool_results_message, user_message


class TestToOpenAIMessages:
    def test_system_prompt_first(self):
        out = to_openai_messages([user_message("hi")], system_prompt="Be brief.")
        assert out == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
        ]

    def test_no_system_prompt(self):
        assert to_openai_messages([user_message("hi")]) == [{"role": "user", "content": "hi"}]

    def test_tool_round(self):
        messages = [
            user_message("weather?"),
            Message(role="assistant", content=[
                TextBlock("Checking."),
                ToolUseBlock(id="c1", name="get_weather", arguments={"location": "Paris"}),
            ]),
            tool_results_message([ToolResult(id="c1", content=[TextBlock("Sunny"), TextBlock("20C")])]),
        ]
        out = to_openai_messages(messages)
        assert out[1] == {
            "role": "assistant",
            "content": "Checking.",
            "tool_calls": [{
                "id": "c1",
                "type": "function",
                "function": {"name": "get_weather", "arguments": '{"location": "Paris"}'},
            }],
        }
        assert out[2] == {"role": "tool", "tool_call_id": "c1", "content": "Sunny\n20C"}

    def test_assistant_without_text(self):
        msg = Message(role="assistant", content=[ToolUseBlock(id="c1", name="x")])
        assert to_openai_messages([msg])[0]["content"] is None

    def test_empty_assistant_reply_has_string_content(self):
        out = to_openai_messages([Message(role="assistant", content=[])])
        assert out == [{"role": "assistant", "content": ""}]


class TestFromOpenAIMessage:
    def _call(self, call_id, name, arguments):
        return SimpleNamespace(id=call_id, type="function",
                               function=SimpleNamespace(name=name, arguments=arguments))

    def test_text_and_calls(self):
        msg = from_openai_message(SimpleNamespace(
            content="On it.",
            tool_calls=[self._call("a", "echo", '{"text": "x"}'), self._call("b", "add", '{"a": 1, "b": 2}')],
        ))
        assert msg.role == "assistant"
        assert msg.texts == ["On it."]
        assert [(c.id, c.name, c.arguments) for c in msg.tool_calls] == [
            ("a", "echo", {"text": "x"}),
            ("b", "add", {"a": 1, "b": 2}),
        ]

    def test_bad_json_arguments_become_empty(self):
        msg = from_openai_message(SimpleNamespace(content=None, tool_calls=[self._call("a", "echo", "{not json")]))
        assert msg.tool_calls[0].arguments == {}

    def test_non_object_arguments_become_empty(self):
        msg = from_openai_message(SimpleNamespace(content=None, tool_calls=[self._call("a", "echo", "[1, 2]")]))
        assert msg.tool_calls[0].arguments == {}

    def test_empty_reply(self):
        msg = from_openai_message(SimpleNamespace(content="", tool_calls=None))
        assert msg.blocks == []


class TestComplete:
    @pytest.mark.asyncio
    async def test_request_kwargs(self, settings_factory, make_client, make_completion):
        client = make_client(make_completion("hi"))
        settings = settings_factory(system_prompt="sys", temperature=0.2, max_tokens=64)
        tools = [{"type": "function", "function": {"name": "x", "parameters": {}}}]

        reply = await complete([user_message("hello")], tools, settings, client=client)

        assert reply.texts == ["hi"]
        client.chat.completions.create.assert_awaited_once_with(
            model="test-model",
            messages=[{"role": "system", "content": "sys"}, {"role": "user", "content": "hello"}],
            temperature=0.2,
            max_tokens=64,
            tools=tools,
        )

    @pytest.mark.asyncio
    async def test_no_tools_key_when_catalogue_empty(self, settings, make_client, make_completion):
        client = make_client(make_completion("hi"))
        await complete([user_message("hello")], [], settings, client=client)
        assert "tools" not in client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self, settings, make_client):
        client = make_client(openai.OpenAIError("boom"))
        with pytest.raises(ModelProviderError, match="Model request failed: boom"):
            await complete([user_message("hello")], [], settings, client=client)

    @pytest.mark.asyncio
    async def test_no_choices(self, settings, make_client):
        client = make_client(SimpleNamespace(choices=[]))
        with pytest.raises(ModelProviderError, match="no choices"):
            await complete([user_message("hello")], [], settings, client=client)

    @pytest.mark.asyncio
    async def test_default_client_built_from_settings(self, settings, make_client, make_completion):
        client = make_client(make_completion("hi"))
        with patch("toolchat.llm._get_client", return_value=client) as factory:
            await complete([user_message("hello")], [], settings)
        factory.assert_called_once_with(settings)


class TestGetClient:
    def test_uses_configured_endpoint(self, settings):
        with patch("toolchat.llm.AsyncOpenAI") as cls:
            _get_client(settings)
        cls.assert_called_once_with(api_key="sk-test-1234", base_url="https://llm.test/v1")
