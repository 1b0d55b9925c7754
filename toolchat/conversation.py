"""Append-only conversation history for one session."""
from typing import Iterator, List, Tuple

from .messages import Message, ToolResultBlock


class ConversationState:
    """Ordered message log sent to the model on every turn.

    Messages are only ever appended. A user message carrying tool results must
    answer the tool calls of the assistant message right before it: same ids,
    none missing, none extra.
    """

    def __init__(self):
        self._messages: List[Message] = []

    def append(self, message: Message) -> None:
        results = [b for b in message.blocks if isinstance(b, ToolResultBlock)]
        if results:
            self._check_correlation(results)
        self._messages.append(message)

    def _check_correlation(self, results: List[ToolResultBlock]) -> None:
        last = self._messages[-1] if self._messages else None
        if last is None or last.role != "assistant":
            raise ValueError("Tool results must follow an assistant message")
        expected = [c.id for c in last.tool_calls]
        got = [r.tool_use_id for r in results]
        if sorted(expected) != sorted(got):
            raise ValueError(f"Tool results {got} do not answer tool calls {expected}")

    @property
    def messages(self) -> Tuple[Message, ...]:
        """Read-only snapshot of the history."""
        return tuple(self._messages)

    @property
    def last(self) -> Message:
        return self._messages[-1]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))
