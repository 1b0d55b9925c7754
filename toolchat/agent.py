"""Agent loop — drives model turns and tool dispatch for one user request.

One request runs as:

    user message -> model -> (tool calls -> run all concurrently -> results -> model)* -> text

Every tool call in a reply is started before any result is awaited, and the
next model call waits until all of them have produced a result.
"""
import logging
from typing import AsyncIterator, Optional

from openai import AsyncOpenAI

from . import llm
from .config import Settings
from .conversation import ConversationState
from .messages import TextBlock, tool_results_message, user_message
from .protocol import AgentEvent, FinalEvent, TextEvent, ToolCallEvent, ToolResultEvent
from .tools.executor import execute_all
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_TURNS_MESSAGE = "Maximum turns exceeded ({n}); stopping before the next model call."


class Agent:
    """Owns one conversation and runs user requests against it, one at a time."""

    def __init__(
        self,
        registry: ToolRegistry,
        settings: Settings,
        conversation: Optional[ConversationState] = None,
        client: Optional[AsyncOpenAI] = None,
        label: str = "cli",
    ):
        self.registry = registry
        self.settings = settings
        self.conversation = conversation if conversation is not None else ConversationState()
        self.label = label
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = llm._get_client(self.settings)
        return self._client

    async def stream(self, text: str) -> AsyncIterator[AgentEvent]:
        """Process one user request, yielding events as they happen.

        Raises ModelProviderError if a model call fails; whatever was appended
        to the conversation before that stays.
        """
        self.conversation.append(user_message(text))
        tools = self.registry.definitions()
        turns = 0

        while True:
            turns += 1
            logger.info(f"[{self.label}] Turn {turns}: {len(self.conversation)} messages")
            reply = await llm.complete(self.conversation.messages, tools, self.settings, client=self.client)
            self.conversation.append(reply)

            calls = reply.tool_calls
            if not calls:
                yield FinalEvent(text="\n".join(reply.texts), turns=turns)
                return

            for block in reply.blocks:
                if isinstance(block, TextBlock):
                    yield TextEvent(text=block.text)
                else:
                    yield ToolCallEvent(id=block.id, name=block.name, arguments=block.arguments)

            logger.info(f"[{self.label}] Dispatching {len(calls)} tool call(s): "
                        f"{', '.join(c.name for c in calls)}")
            results = await execute_all(calls, self.registry, self.settings)
            self.conversation.append(tool_results_message(results))

            for result in results:
                yield ToolResultEvent(id=result.id, text=result.text, is_error=result.is_error)

            if self.settings.max_turns and turns >= self.settings.max_turns:
                logger.warning(f"[{self.label}] Stopping after {turns} turns (TOOLCHAT_MAX_TURNS)")
                yield FinalEvent(text=MAX_TURNS_MESSAGE.format(n=turns), turns=turns, max_turns_exceeded=True)
                return

    async def run(self, text: str) -> str:
        """Process one user request and return the final text."""
        final = ""
        async for event in self.stream(text):
            if isinstance(event, FinalEvent):
                final = event.text
        return final
