"""Tests for server.py — routes, SSE framing and the session manager."""
import asyncio
import json
from unittest.mock import MagicMock

import openai
import pytest
from fastapi.testclient import TestClient

from toolchat.errors import ConfigurationError
from toolchat.protocol import ErrorMsg, FinalEvent, TextEvent
from toolchat.server import SessionManager, create_app, format_sse


def _drain(session):
    events = []
    while not session.events.empty():
        events.append(session.events.get_nowait())
    return events


class TestFormatSse:
    def test_frame(self):
        frame = format_sse(TextEvent(text="hi"))
        assert frame.startswith("event: text\ndata: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame.split("data: ", 1)[1]) == {"type": "text", "text": "hi"}


class TestCreateApp:
    def test_requires_model_key(self, registry, settings_factory):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            create_app(registry=registry, settings=settings_factory(openai_api_key=""))


class TestRoutes:
    @pytest.fixture(autouse=True)
    def _app(self, registry, settings, make_client):
        self.app = create_app(registry=registry, settings=settings, client=make_client())
        self.client = TestClient(self.app)
        self.manager = self.app.state.sessions

    def test_health(self):
        resp = self.client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "sessions": 0}

    def test_tools(self):
        resp = self.client.get("/tools")
        assert [t["function"]["name"] for t in resp.json()] == ["echo", "add", "boom", "slow"]

    def test_sse_stream(self):
        opened = []
        open_session = self.manager.open

        def open_and_finish():
            session = open_session()
            opened.append((session, len(self.manager)))
            session.events.put_nowait(TextEvent(text="hello"))
            # Ends the stream once the queued event is delivered
            session.close()
            return session

        self.manager.open = open_and_finish
        with self.client.stream("GET", "/sse") as resp:
            assert resp.status_code == 200
            assert resp.headers["content-type"].startswith("text/event-stream")
            body = "".join(resp.iter_text())

        session, active = opened[0]
        frames = [f for f in body.split("\n\n") if f]
        assert frames[0].startswith("event: endpoint\ndata: ")
        assert json.loads(frames[0].split("data: ", 1)[1]) == {
            "type": "endpoint",
            "session_id": session.session_id,
            "url": f"/messages?session_id={session.session_id}",
        }
        assert frames[1] == 'event: text\ndata: {"type":"text","text":"hello"}'
        assert len(frames) == 2

        assert active == 1
        assert self.manager.get(session.session_id) is None
        assert self.client.get("/health").json() == {"ok": True, "sessions": 0}

    def test_shutdown_closes_open_sessions(self):
        with TestClient(self.app) as client:
            session = self.manager.open()
            assert client.get("/health").json()["sessions"] == 1
        assert len(self.manager) == 0
        assert session.closed is True
        assert session.events.get_nowait() is None

    def test_unknown_session(self):
        resp = self.client.post("/messages", params={"session_id": "nope"}, json={"text": "hi"})
        assert resp.status_code == 404

    def test_empty_text(self):
        session = self.manager.open()
        resp = self.client.post("/messages", params={"session_id": session.session_id}, json={"text": "  "})
        assert resp.status_code == 400

    def test_missing_body_field(self):
        session = self.manager.open()
        resp = self.client.post("/messages", params={"session_id": session.session_id}, json={})
        assert resp.status_code == 422

    def test_accepted(self):
        session = self.manager.open()
        self.manager.submit = MagicMock()
        resp = self.client.post("/messages", params={"session_id": session.session_id}, json={"text": " hi "})
        assert resp.status_code == 202
        assert resp.json() == {"ok": True}
        self.manager.submit.assert_called_once_with(session, "hi")


class TestSessionManager:
    @pytest.mark.asyncio
    async def test_handle_streams_events(self, registry, settings, make_client, make_completion):
        client = make_client(
            make_completion(tool_calls=[("t1", "echo", {"text": "x"})]),
            make_completion("done"),
        )
        manager = SessionManager(registry, settings, client=client)
        session = manager.open()

        await manager.handle(session, "go")

        events = _drain(session)
        assert [e.type for e in events] == ["tool_call", "tool_result", "final"]
        assert events[-1].text == "done"
        assert session.requests_handled == 1

    @pytest.mark.asyncio
    async def test_error_then_recovery(self, registry, settings, make_client, make_completion):
        client = make_client(openai.OpenAIError("overloaded"), make_completion("fine now"))
        manager = SessionManager(registry, settings, client=client)
        session = manager.open()

        await manager.handle(session, "first")
        await manager.handle(session, "second")

        events = _drain(session)
        assert isinstance(events[0], ErrorMsg)
        assert events[0].message == "Model request failed: overloaded"
        assert isinstance(events[1], FinalEvent) and events[1].text == "fine now"
        assert session.requests_handled == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_reported(self, registry, settings, make_client):
        client = make_client(RuntimeError("bad state"))
        manager = SessionManager(registry, settings, client=client)
        session = manager.open()

        await manager.handle(session, "go")

        events = _drain(session)
        assert events == [ErrorMsg(message="Internal error: bad state")]

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, registry, settings, make_client, make_completion):
        client = make_client(make_completion("to a"), make_completion("to b"))
        manager = SessionManager(registry, settings, client=client)
        a, b = manager.open(), manager.open()

        await manager.handle(a, "hello from a")
        await manager.handle(b, "hello from b")

        assert [m.content for m in a.conversation if m.role == "user"] == ["hello from a"]
        assert [m.content for m in b.conversation if m.role == "user"] == ["hello from b"]

    @pytest.mark.asyncio
    async def test_submit_runs_in_background(self, registry, settings, make_client, make_completion):
        manager = SessionManager(registry, settings, client=make_client(make_completion("ok")))
        session = manager.open()

        task = manager.submit(session, "hi")
        await task

        assert (await session.events.get()).text == "ok"

    @pytest.mark.asyncio
    async def test_close_and_close_all(self, registry, settings):
        manager = SessionManager(registry, settings)
        a, b = manager.open(), manager.open()
        assert len(manager) == 2

        manager.close(a.session_id)
        manager.close(a.session_id)
        assert manager.get(a.session_id) is None
        assert a.closed is True
        assert await a.events.get() is None

        manager.close_all()
        assert len(manager) == 0
        assert b.closed is True

    @pytest.mark.asyncio
    async def test_close_cancels_running_request(self, registry, settings, make_completion):
        started = asyncio.Event()
        model_calls = []

        async def create(**kwargs):
            model_calls.append(kwargs)
            started.set()
            await asyncio.sleep(10)
            return make_completion(tool_calls=[("t1", "echo", {"text": "x"})])

        client = MagicMock()
        client.chat.completions.create = create
        manager = SessionManager(registry, settings, client=client)
        session = manager.open()

        task = manager.submit(session, "go")
        await started.wait()
        manager.close(session.session_id)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert len(model_calls) == 1
        assert session.tasks == set()
        assert await session.events.get() is None

    @pytest.mark.asyncio
    async def test_close_all_cancels_every_session(self, registry, settings):
        manager = SessionManager(registry, settings)
        blocker = asyncio.Event()

        async def wait_forever():
            await blocker.wait()

        a, b = manager.open(), manager.open()
        tasks = [a.track(asyncio.create_task(wait_forever())), b.track(asyncio.create_task(wait_forever()))]
        await asyncio.sleep(0)

        manager.close_all()
        await asyncio.gather(*tasks, return_exceptions=True)
        assert all(t.cancelled() for t in tasks)
