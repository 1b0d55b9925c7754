"""Events streamed to front ends, and the HTTP request bodies."""
from typing import Any, Dict, Literal, Union

from pydantic import BaseModel, Field


class EndpointEvent(BaseModel):
    type: Literal["endpoint"] = "endpoint"
    session_id: str
    url: str


class TextEvent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolCallEvent(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    id: str
    text: str
    is_error: bool = False


class FinalEvent(BaseModel):
    type: Literal["final"] = "final"
    text: str
    turns: int
    max_turns_exceeded: bool = False


class ErrorMsg(BaseModel):
    type: Literal["error"] = "error"
    message: str


AgentEvent = Union[TextEvent, ToolCallEvent, ToolResultEvent, FinalEvent]


class UserMessage(BaseModel):
    text: str
