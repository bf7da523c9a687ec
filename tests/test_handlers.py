"""
Request routing: method table, error mapping and tools/call result shaping.
"""

import pytest

from qbitmcp.client import BackendError
from qbitmcp.mcp import errors
from qbitmcp.mcp.handlers import dispatch_request, process_request
from qbitmcp.mcp.protocol import JsonRpcRequest, parse_request
from qbitmcp.mcp.utils import config


async def _call(server, method, params=None, msg_id=1):
    return await process_request(server, JsonRpcRequest(method=method, params=params, id=msg_id))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "requested, expected",
    [
        ("2025-06-18", "2025-06-18"),
        ("2025-03-26", "2025-03-26"),
        ("1999-01-01", "2024-11-05"),
    ],
)
async def test_initialize_negotiates_protocol_version(server, requested, expected):
    response = await _call(server, "initialize", {"protocolVersion": requested})
    result = response["result"]
    assert result["protocolVersion"] == expected
    assert result["serverInfo"] == {"name": "qbittorrent-mcp", "version": "test"}
    assert result["capabilities"]["tools"]["listChanged"] is True
    assert result["capabilities"]["resources"] == {"subscribe": False, "listChanged": False}


@pytest.mark.asyncio
async def test_ping(server):
    assert await _call(server, "ping", {}, msg_id="abc") == {"jsonrpc": "2.0", "id": "abc", "result": {}}


@pytest.mark.asyncio
async def test_unknown_method(server):
    response = await _call(server, "tools/destroy")
    assert response["error"]["code"] == errors.METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_notifications_produce_no_response(server):
    assert await _call(server, "notifications/initialized", msg_id=None) is None
    assert await _call(server, "notifications/cancelled", {"requestId": 3}, msg_id=None) is None
    # Failures of notifications are only logged
    assert await _call(server, "notifications/unknown", msg_id=None) is None


@pytest.mark.asyncio
async def test_non_object_params_rejected(server):
    response = await _call(server, "tools/call", ["list_torrents"])
    assert response["error"]["code"] == errors.INVALID_PARAMS


@pytest.mark.asyncio
async def test_tools_call_wraps_text(server, client):
    response = await _call(server, "tools/call", {"name": "get_categories", "arguments": {}})
    result = response["result"]
    assert result["content"][0]["type"] == "text"
    assert "linux" in result["content"][0]["text"]
    assert "isError" not in result


@pytest.mark.asyncio
async def test_tools_call_missing_arguments_is_empty_object(server, client):
    response = await _call(server, "tools/call", {"name": "find_duplicates"})
    assert response["result"]["content"][0]["text"] == "No duplicate torrents found."


@pytest.mark.asyncio
async def test_tools_call_unknown_tool(server):
    response = await _call(server, "tools/call", {"name": "format_disk", "arguments": {}})
    assert response["error"]["code"] == errors.METHOD_NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {"arguments": {}},
        {"name": "", "arguments": {}},
        {"name": "get_torrent_files", "arguments": "hash=abc"},
        {"name": "get_torrent_files", "arguments": {}},
        {"name": "get_torrent_files", "arguments": {"hash": 12}},
    ],
)
async def test_tools_call_invalid_params(server, params):
    response = await _call(server, "tools/call", params)
    assert response["error"]["code"] == errors.INVALID_PARAMS


@pytest.mark.asyncio
async def test_missing_required_argument_message(server):
    response = await _call(server, "tools/call", {"name": "get_torrent_files", "arguments": {}})
    assert response["error"]["message"] == "Missing required argument: hash"


@pytest.mark.asyncio
async def test_backend_failure_is_internal_error(server, client):
    client.get_categories.side_effect = BackendError("get categories", 403)
    response = await _call(server, "tools/call", {"name": "get_categories"})
    assert response["error"] == {"code": errors.INTERNAL_ERROR, "message": "Failed to get categories: 403"}


@pytest.mark.asyncio
async def test_unknown_instance(server):
    response = await _call(
        server, "tools/call", {"name": "get_categories", "arguments": {"instance": "nas"}}
    )
    assert response["error"]["code"] == errors.INVALID_PARAMS
    assert response["error"]["message"] == "Instance not found: nas"


@pytest.mark.asyncio
async def test_instance_routing(multi_server):
    await _call(multi_server, "tools/call", {"name": "get_categories", "arguments": {"instance": "seedbox"}})
    multi_server.clients["seedbox"].get_categories.assert_awaited_once()
    multi_server.clients["home"].get_categories.assert_not_awaited()

    # Without "default", the first configured instance is used
    await _call(multi_server, "tools/call", {"name": "get_categories"})
    multi_server.clients["home"].get_categories.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_instances_configured():
    from qbitmcp.mcp.core import MCPServer

    empty = MCPServer("qbittorrent-mcp", {}, version="test")
    response = await _call(empty, "tools/call", {"name": "get_categories"})
    assert response["error"] == {"code": errors.INTERNAL_ERROR, "message": "No instances configured"}


@pytest.mark.asyncio
async def test_output_truncation(server, client, monkeypatch):
    monkeypatch.setattr(config, "OUTPUT_SIZE_LIMIT", 50)
    client.get_categories.return_value = {"x" * 200: {}}
    response = await _call(server, "tools/call", {"name": "get_categories"})
    text = response["result"]["content"][0]["text"]
    assert "[OUTPUT TRUNCATED]" in text
    assert text.startswith('{\n  "' + "x" * 44)


@pytest.mark.asyncio
async def test_dispatch_request_raises_mcp_errors(server):
    with pytest.raises(errors.MethodNotFoundError):
        await dispatch_request(server, "sampling/createMessage", {})


def test_parse_request_errors():
    with pytest.raises(errors.ParseError):
        parse_request("{not json")
    with pytest.raises(errors.InvalidRequestError):
        parse_request("[1, 2]")
    with pytest.raises(errors.InvalidRequestError):
        parse_request('{"jsonrpc": "1.0", "method": "ping"}')
    with pytest.raises(errors.InvalidRequestError):
        parse_request('{"jsonrpc": "2.0", "id": 1}')

    request = parse_request('{"jsonrpc": "2.0", "method": "ping"}')
    assert request.is_notification


def test_to_error_object_maps_foreign_exceptions():
    assert errors.to_error_object(ValueError("boom")) == {"code": -32603, "message": "boom"}
    assert errors.to_error_object(errors.InvalidParamsError("bad", data={"x": 1})) == {
        "code": -32602,
        "message": "bad",
        "data": {"x": 1},
    }
