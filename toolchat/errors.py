"""Typed errors for the agent loop, the tool layer and startup."""
from typing import Optional


class ToolchatError(Exception):
    """Base class for every error raised by toolchat."""


class ConfigurationError(ToolchatError):
    """A required setting is missing or the setup is inconsistent.

    Inside a tool call this becomes an error tool result. At startup it is
    fatal.
    """


class DuplicateToolError(ConfigurationError):
    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is already registered")
        self.name = name


class UnknownToolError(ToolchatError):
    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolArgumentError(ToolchatError):
    def __init__(self, tool: str, message: str):
        super().__init__(f"Invalid arguments for {tool}: {message}")
        self.tool = tool


class UpstreamHTTPError(ToolchatError):
    """A third-party API answered with a non-2xx status, bad JSON, or not at all."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        prefix = f"{self.service} returned {self.status_code}" if self.status_code else self.service
        return f"{prefix}: {self.args[0]}"


class ModelProviderError(ToolchatError):
    """The model completion request failed or returned something unusable."""
