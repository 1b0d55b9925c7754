"""Session state for server connections."""
import asyncio
import time
import uuid
from typing import Optional, Set

from pydantic import BaseModel

from .agent import Agent
from .config import Settings
from .tools.registry import ToolRegistry


class Session:
    """Per-connection state: its own conversation, agent and outbound event queue.

    The registry and settings are shared read-only with every other session.
    """

    def __init__(self, registry: ToolRegistry, settings: Settings, client=None):
        self.session_id = uuid.uuid4().hex
        self.agent = Agent(registry, settings, client=client, label=self.session_id[:8])
        self.events: "asyncio.Queue[Optional[BaseModel]]" = asyncio.Queue()
        # One request at a time per conversation
        self.lock = asyncio.Lock()
        self.tasks: Set[asyncio.Task] = set()
        self.closed = False
        self.requests_handled = 0
        self.last_activity_time = time.monotonic()

    @property
    def conversation(self):
        return self.agent.conversation

    def touch(self):
        """Update last activity timestamp."""
        self.last_activity_time = time.monotonic()

    def idle_seconds(self) -> float:
        """Seconds since last activity."""
        return time.monotonic() - self.last_activity_time

    def track(self, task: asyncio.Task) -> asyncio.Task:
        """Keep a request task so close() can cancel it."""
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)
        return task

    async def send(self, event: BaseModel):
        if not self.closed:
            await self.events.put(event)

    def close(self):
        """Mark closed, cancel in-flight requests and wake the stream so it can finish."""
        if self.closed:
            return
        self.closed = True
        for task in list(self.tasks):
            task.cancel()
        self.events.put_nowait(None)
