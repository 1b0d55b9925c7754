"""Conversation data model — messages, content blocks, tool requests and results."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Union


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool call requested by the model (a ToolCallRequest)."""
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_use"] = "tool_use"


@dataclass(frozen=True)
class ToolResultBlock:
    tool_use_id: str
    content: List[TextBlock] = field(default_factory=list)
    is_error: bool = False
    type: Literal["tool_result"] = "tool_result"


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]

# The model asks for tools with ToolUseBlocks; the alias keeps call sites readable
ToolCallRequest = ToolUseBlock


@dataclass(frozen=True)
class ToolResult:
    id: str
    content: List[TextBlock]
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_block(self) -> ToolResultBlock:
        return ToolResultBlock(tool_use_id=self.id, content=list(self.content), is_error=self.is_error)


@dataclass(frozen=True)
class Message:
    role: Literal["user", "assistant"]
    content: Union[str, List[ContentBlock]]

    @property
    def blocks(self) -> List[ContentBlock]:
        if isinstance(self.content, str):
            return [TextBlock(self.content)] if self.content else []
        return list(self.content)

    @property
    def tool_calls(self) -> List[ToolUseBlock]:
        """ToolUseBlocks in the order the model emitted them."""
        return [b for b in self.blocks if isinstance(b, ToolUseBlock)]

    @property
    def texts(self) -> List[str]:
        return [b.text for b in self.blocks if isinstance(b, TextBlock)]


def user_message(text: str) -> Message:
    return Message(role="user", content=text)


def tool_results_message(results: List[ToolResult]) -> Message:
    """Pack one round of tool results into the user message that answers it."""
    return Message(role="user", content=[r.to_block() for r in results])
