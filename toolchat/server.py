"""HTTP/SSE front end — one event stream and one conversation per connected client.

    GET  /sse                          open a stream; first event names the message endpoint
    POST /messages?session_id=<id>     submit a user request to that session
    GET  /health, GET /tools
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from .config import Settings, get_settings
from .errors import ConfigurationError, ToolchatError
from .protocol import EndpointEvent, ErrorMsg, UserMessage
from .session import Session
from .tools.registry import ToolRegistry, build_registry

logger = logging.getLogger(__name__)


def format_sse(event: BaseModel) -> str:
    return f"event: {event.type}\ndata: {event.model_dump_json()}\n\n"


class SessionManager:
    """Tracks open sessions and runs their requests in background tasks."""

    def __init__(self, registry: ToolRegistry, settings: Settings, client=None):
        self.registry = registry
        self.settings = settings
        self._client = client
        self._sessions: Dict[str, Session] = {}

    def open(self) -> Session:
        session = Session(self.registry, self.settings, client=self._client)
        self._sessions[session.session_id] = session
        logger.info(f"[{session.session_id[:8]}] Session opened ({len(self._sessions)} active)")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def close(self, session_id: str):
        """Drop the session and cancel whatever it is still running."""
        session = self._sessions.pop(session_id, None)
        if session:
            pending = len(session.tasks)
            session.close()
            logger.info(f"[{session_id[:8]}] Session closed after {session.requests_handled} request(s), "
                        f"idle {session.idle_seconds():.1f}s, {pending} in flight cancelled")

    def close_all(self):
        for session_id in list(self._sessions):
            self.close(session_id)

    def submit(self, session: Session, text: str) -> asyncio.Task:
        return session.track(asyncio.create_task(self.handle(session, text)))

    async def handle(self, session: Session, text: str):
        """Run one request; failures go to the client as an error event."""
        async with session.lock:
            session.touch()
            try:
                async for event in session.agent.stream(text):
                    await session.send(event)
            except ToolchatError as e:
                logger.error(f"[{session.session_id[:8]}] Request failed: {e}")
                await session.send(ErrorMsg(message=str(e)))
            except Exception as e:
                logger.error(f"[{session.session_id[:8]}] Request failed: {e}", exc_info=True)
                await session.send(ErrorMsg(message=f"Internal error: {e}"))
            finally:
                session.requests_handled += 1
                session.touch()

    def __len__(self) -> int:
        return len(self._sessions)


def create_app(registry: Optional[ToolRegistry] = None, settings: Optional[Settings] = None,
               client=None) -> FastAPI:
    """Build the app. Raises ConfigurationError when the model credential is missing."""
    settings = settings or get_settings()
    settings.require("openai_api_key")
    registry = registry or build_registry()
    manager = SessionManager(registry, settings, client=client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info(f"Shutting down, closing {len(manager)} session(s)")
        manager.close_all()

    app = FastAPI(title="toolchat", lifespan=lifespan)
    app.state.sessions = manager

    @app.get("/health")
    async def health():
        return {"ok": True, "sessions": len(manager)}

    @app.get("/tools")
    async def tools():
        return registry.definitions()

    @app.get("/sse")
    async def sse(request: Request):
        session = manager.open()

        async def event_stream():
            try:
                yield format_sse(EndpointEvent(
                    session_id=session.session_id,
                    url=f"/messages?session_id={session.session_id}",
                ))
                while True:
                    event = await session.events.get()
                    if event is None:
                        break
                    yield format_sse(event)
            finally:
                manager.close(session.session_id)

        return StreamingResponse(event_stream(), media_type="text/event-stream",
                                 headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})

    @app.post("/messages", status_code=202)
    async def post_message(payload: UserMessage, session_id: str):
        session = manager.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
        text = payload.text.strip()
        if not text:
            raise HTTPException(status_code=400, detail="text must not be empty")
        manager.submit(session, text)
        return {"ok": True}

    return app


def serve():
    """Console entry point: start uvicorn, exit 1 on startup failure."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        settings = get_settings()
        app = create_app(settings=settings)
    except ConfigurationError as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    logger.info(f"Server will run on http://{settings.host}:{settings.port}")
    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_level="info",
                            timeout_graceful_shutdown=5)
    server = uvicorn.Server(config)
    asyncio.run(server.serve())
    if not server.started:
        logger.error("Server failed to start")
        sys.exit(1)
