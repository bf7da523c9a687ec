"""
stdio transport: one response line per request, ordering of list_changed.
"""

import io
import json

import pytest

from qbitmcp.client import BackendError
from qbitmcp.mcp import errors
from qbitmcp.mcp.events import RESOURCE_UPDATED
from qbitmcp.mcp.transport import StdioTransport


def _request(msg_id, method, params=None):
    message = {"jsonrpc": "2.0", "method": method}
    if msg_id is not None:
        message["id"] = msg_id
    if params is not None:
        message["params"] = params
    return json.dumps(message)


async def _run(server, *lines):
    stdin = io.StringIO("".join(line + "\n" for line in lines))
    stdout = io.StringIO()
    await StdioTransport(server, stdin, stdout).run()
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


@pytest.mark.asyncio
async def test_ping_round_trip(server):
    output = await _run(server, _request(1, "ping"))
    assert output == [{"jsonrpc": "2.0", "id": 1, "result": {}}]


@pytest.mark.asyncio
async def test_blank_and_invalid_lines_are_dropped(server):
    output = await _run(
        server,
        "",
        "   ",
        "{not json",
        '{"jsonrpc": "1.0", "id": 5, "method": "ping"}',
        _request(2, "ping"),
    )
    assert [m["id"] for m in output] == [2]


@pytest.mark.asyncio
async def test_notifications_write_nothing(server):
    output = await _run(server, _request(None, "notifications/initialized"))
    assert output == []


@pytest.mark.asyncio
async def test_responses_keep_request_order(server):
    output = await _run(
        server,
        _request(1, "initialize", {"protocolVersion": "2025-06-18"}),
        _request(None, "notifications/initialized"),
        _request(2, "tools/list"),
        _request(3, "tools/call", {"name": "nope"}),
    )
    assert [m["id"] for m in output] == [1, 2, 3]
    assert "error" in output[2]


@pytest.mark.asyncio
async def test_list_changed_follows_show_all_tools_response(lazy_server):
    output = await _run(
        lazy_server,
        _request(1, "tools/call", {"name": "show_all_tools", "arguments": {}}),
        _request(2, "tools/call", {"name": "show_all_tools", "arguments": {}}),
    )
    assert output[0]["id"] == 1
    assert output[1] == {"jsonrpc": "2.0", "method": "notifications/tools/list_changed"}
    assert output[2]["id"] == 2
    # Emitted exactly once
    assert len(output) == 3


@pytest.mark.asyncio
async def test_no_list_changed_without_lazy_mode(server):
    output = await _run(server, _request(1, "tools/call", {"name": "show_all_tools"}))
    assert len(output) == 1


@pytest.mark.asyncio
async def test_queued_events_are_written(server):
    server.events.push(RESOURCE_UPDATED, {"uri": "qbittorrent://default/torrents"})
    output = await _run(server, _request(1, "ping"))
    assert output[0]["id"] == 1
    assert output[1]["method"] == RESOURCE_UPDATED
    assert output[1]["params"]["uri"] == "qbittorrent://default/torrents"


@pytest.mark.asyncio
async def test_empty_input_ends_cleanly(server):
    assert await _run(server) == []


@pytest.mark.asyncio
async def test_errors_carry_taxonomy_codes(server, client):
    client.get_categories.side_effect = BackendError("get categories", 403)
    output = await _run(
        server,
        _request(1, "tools/frobnicate"),
        _request(2, "tools/call", {"name": "list_torrents", "arguments": {"limit": "ten"}}),
        _request(3, "tools/call", {"name": "get_categories"}),
    )
    assert [(m["id"], m["error"]["code"]) for m in output] == [
        (1, errors.METHOD_NOT_FOUND),
        (2, errors.INVALID_PARAMS),
        (3, errors.INTERNAL_ERROR),
    ]
