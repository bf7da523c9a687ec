"""
SSE transport: /sse, /message and /health over the Starlette app.
"""

import asyncio
import json
import socket

import httpx
import pytest
import pytest_asyncio
from sse_starlette import sse as sse_module

from qbitmcp.mcp.protocol import JsonRpcRequest
from qbitmcp.mcp.transport import HttpServer, create_asgi_app
from qbitmcp.mcp.transport.asgi import _flush_events, _process_and_push
from qbitmcp.mcp.utils import config

TOKEN = "s" * 32
PING = {"jsonrpc": "2.0", "id": 1, "method": "ping"}


@pytest.fixture(autouse=True)
def reset_sse_status():
    # uvicorn shutdown flips a process-wide flag that ends every later stream
    status = getattr(sse_module, "AppStatus", None)
    if status is not None:
        status.should_exit = False
        if hasattr(status, "should_exit_event"):
            status.should_exit_event = None
    yield
    if status is not None:
        status.should_exit = False


def _client(app):
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


# ---------------------------------------------------------------------------
# Status codes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health_reports_server(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    async with _client(app) as client:
        response = await client.get("/health")
    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["connections"]["active_sse_sessions"] == 0
    assert body["server"]["instances"] == ["default"]
    assert body["server"]["tools_loaded"] is True
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_is_not_authenticated(server):
    app = create_asgi_app(server, "127.0.0.1", 3000, auth_token=TOKEN)
    async with _client(app) as client:
        assert (await client.get("/health")).status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers, url",
    [
        ({}, "/sse"),
        ({"Authorization": "Bearer wrong"}, "/sse"),
        ({"Authorization": "Basic " + TOKEN}, "/sse"),
        ({}, "/sse?token=wrong"),
    ],
)
async def test_sse_requires_token(server, headers, url):
    app = create_asgi_app(server, "127.0.0.1", 3000, auth_token=TOKEN)
    async with _client(app) as client:
        response = await client.get(url, headers=headers)
    assert response.status_code == 401
    assert response.json()["error"]["code"] == -32001


@pytest.mark.asyncio
async def test_message_requires_session_id(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    async with _client(app) as client:
        response = await client.post("/message", json=PING)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32600


@pytest.mark.asyncio
async def test_message_rejects_malformed_body(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    session = app.state.sessions.create()
    async with _client(app) as client:
        garbage = await client.post(f"/message?session_id={session.session_id}", content=b"{nope")
        invalid = await client.post(
            f"/message?session_id={session.session_id}",
            json={"jsonrpc": "2.0", "id": 9},
        )
    assert garbage.status_code == 400
    assert garbage.json()["error"]["code"] == -32700
    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == -32600
    assert invalid.json()["id"] == 9


@pytest.mark.asyncio
async def test_message_unknown_session(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    async with _client(app) as client:
        response = await client.post("/message?session_id=deadbeef", json=PING)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == -32002


@pytest.mark.asyncio
async def test_message_accepted_and_pushed_to_session(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    session = app.state.sessions.create()
    async with _client(app) as client:
        response = await client.post(f"/message?session_id={session.session_id}", json=PING)
    assert response.status_code == 202

    assert await session.queue.wait_for_message(timeout=1)
    assert session.queue.popleft() == {"jsonrpc": "2.0", "id": 1, "result": {}}


@pytest.mark.asyncio
async def test_shutting_down_returns_503(server):
    app = create_asgi_app(server, "127.0.0.1", 3000, is_shutting_down_fn=lambda: True)
    async with _client(app) as client:
        response = await client.get("/health")
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "5"
    assert response.json()["error"]["code"] == -32000


# ---------------------------------------------------------------------------
# Notification delivery
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_changed_broadcast_after_response(lazy_server):
    app = create_asgi_app(lazy_server, "127.0.0.1", 3000)
    caller, other = app.state.sessions.create(), app.state.sessions.create()

    request = JsonRpcRequest(method="tools/call", params={"name": "show_all_tools"}, id=4)
    await _process_and_push(app, caller, request)

    assert caller.queue.popleft()["id"] == 4
    assert caller.queue.popleft()["method"] == "notifications/tools/list_changed"
    assert other.queue.popleft()["method"] == "notifications/tools/list_changed"

    await _process_and_push(app, caller, request)
    assert caller.queue.popleft()["id"] == 4
    assert caller.queue.popleft() is None


@pytest.mark.asyncio
async def test_list_changed_reaches_others_when_caller_closed(lazy_server):
    app = create_asgi_app(lazy_server, "127.0.0.1", 3000)
    caller, other = app.state.sessions.create(), app.state.sessions.create()
    app.state.sessions.remove(caller.session_id)

    request = JsonRpcRequest(method="tools/call", params={"name": "show_all_tools"}, id=5)
    await _process_and_push(app, caller, request)

    assert caller.queue.popleft() is None
    assert other.queue.popleft()["method"] == "notifications/tools/list_changed"
    assert other.queue.popleft() is None
    assert lazy_server.consume_tools_changed() is False


@pytest.mark.asyncio
async def test_response_for_closed_session_is_discarded(server):
    app = create_asgi_app(server, "127.0.0.1", 3000)
    session = app.state.sessions.create()
    app.state.sessions.remove(session.session_id)

    await _process_and_push(app, session, JsonRpcRequest(method="ping", id=1))
    assert session.queue.popleft() is None


@pytest.mark.asyncio
async def test_event_flusher_broadcasts(server, monkeypatch):
    monkeypatch.setattr(config, "NOTIFICATION_FLUSH_INTERVAL", 0.01)
    app = create_asgi_app(server, "127.0.0.1", 3000)
    first, second = app.state.sessions.create(), app.state.sessions.create()
    server.events.push("notifications/torrent_finished", {"hash": "bbb222"})

    flusher = asyncio.create_task(_flush_events(server, app.state.sessions))
    try:
        assert await first.queue.wait_for_message(timeout=1)
    finally:
        flusher.cancel()

    assert first.queue.popleft()["params"] == {"hash": "bbb222"}
    assert second.queue.popleft()["method"] == "notifications/torrent_finished"


# ---------------------------------------------------------------------------
# End to end over uvicorn
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def live_server(server):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]

    http_server = HttpServer(server, "127.0.0.1", port, auth_token=TOKEN, log_level="warning")
    task = asyncio.create_task(http_server.serve(sockets=[sock]))
    for _ in range(200):
        if http_server.started:
            break
        await asyncio.sleep(0.01)

    yield f"http://127.0.0.1:{port}"

    http_server.stop()
    await asyncio.wait_for(task, timeout=10)
    sock.close()


@pytest.mark.asyncio
async def test_sse_round_trip(live_server):
    headers = {"Authorization": f"Bearer {TOKEN}"}
    async with httpx.AsyncClient(base_url=live_server, timeout=5) as client:
        async with client.stream("GET", "/sse", headers=headers) as stream:
            assert stream.status_code == 200
            events = _sse_events(stream)

            event, data = await asyncio.wait_for(events.__anext__(), timeout=5)
            assert event == "endpoint"
            assert data.startswith("/message?session_id=")

            posted = await client.post(data, json=PING)
            assert posted.status_code == 202

            event, data = await asyncio.wait_for(events.__anext__(), timeout=5)
            assert event == "message"
            assert json.loads(data) == {"jsonrpc": "2.0", "id": 1, "result": {}}
            await events.aclose()


async def _sse_events(response):
    event, data = None, []
    async for line in response.aiter_lines():
        if line.startswith("event:"):
            event = line[len("event:"):].strip()
        elif line.startswith("data:"):
            data.append(line[len("data:"):].strip())
        elif not line and data:
            yield event, "\n".join(data)
            event, data = None, []
