"""
Lazy tool visibility: restricted -> full transition and the one-shot notification.
"""

import pytest

from qbitmcp.mcp.state import NotificationQueue, Visibility, VisibilityState
from qbitmcp.mcp.tools.app import SHOW_ALL_TOOLS_TEXT


def _names(server):
    return [t["name"] for t in server.list_tools()]


def test_state_starts_full_without_lazy_mode():
    state = VisibilityState(lazy_mode=False)
    assert state.visibility is Visibility.FULL
    assert state.tools_loaded
    assert state.reveal_all() is False
    assert state.consume_notification() is False


def test_reveal_all_arms_notification_exactly_once():
    state = VisibilityState(lazy_mode=True)
    assert not state.tools_loaded

    assert state.reveal_all() is True
    assert state.reveal_all() is False
    assert state.tools_loaded

    assert state.consume_notification() is True
    assert state.consume_notification() is False


def test_restricted_listing(lazy_server):
    assert sorted(_names(lazy_server)) == ["list_torrents", "show_all_tools"]


def test_restricted_list_torrents_exposes_instance_and_filters(lazy_server):
    tools = {t["name"]: t for t in lazy_server.list_tools()}
    props = tools["list_torrents"]["inputSchema"]["properties"]
    for name in ("instance", "filter", "category", "tag", "sort", "reverse", "limit", "offset"):
        assert name in props
    assert "instance" not in tools["show_all_tools"]["inputSchema"]["properties"]


def test_full_listing_is_superset_of_restricted(server, lazy_server):
    full = set(_names(server))
    assert set(_names(lazy_server)) <= full
    assert {"manage_torrents", "search_torrents", "ban_peers", "get_rss_feeds", "shutdown_app"} <= full


def test_instance_property_injected_without_touching_registry(server):
    tools = {t["name"]: t for t in server.list_tools()}
    schema = tools["get_torrent_files"]["inputSchema"]
    assert schema["properties"]["instance"]["type"] == "string"
    assert schema["required"] == ["hash"]

    from qbitmcp.mcp.tools import iter_tools

    registered = {r.name: r for r in iter_tools()}
    assert "instance" not in registered["get_torrent_files"].properties


@pytest.mark.asyncio
async def test_show_all_tools_switches_listing(lazy_server):
    result = await lazy_server.call_tool("show_all_tools", {})
    assert result == SHOW_ALL_TOOLS_TEXT
    assert "manage_torrents" in _names(lazy_server)
    assert lazy_server.consume_tools_changed() is True

    # Repeated calls are idempotent and never re-arm the flag
    await lazy_server.call_tool("show_all_tools", {})
    assert lazy_server.consume_tools_changed() is False


@pytest.mark.asyncio
async def test_hidden_tools_stay_callable(lazy_server, client):
    text = await lazy_server.call_tool("get_categories", {})
    assert "linux" in text
    client.get_categories.assert_awaited_once()
    assert not lazy_server.visibility.tools_loaded


def test_notification_queue_drain_and_bound():
    queue = NotificationQueue(maxlen=2)
    queue.push("a", {"n": 1})
    queue.push("b")
    queue.push("c", {"n": 3})
    assert len(queue) == 2

    drained = queue.drain()
    assert [m["method"] for m in drained] == ["b", "c"]
    assert "params" not in drained[0]
    assert drained[1] == {"jsonrpc": "2.0", "method": "c", "params": {"n": 3}}
    assert queue.drain() == []
