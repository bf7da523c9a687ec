"""
Shared fixtures: a mocked qBittorrent backend and MCPServer instances around it.
"""

from unittest.mock import AsyncMock

import pytest

from qbitmcp.client import QBitClient
from qbitmcp.mcp.core import MCPServer

TORRENTS = [
    {
        "hash": "aaa111",
        "name": "ubuntu-24.04.iso",
        "state": "downloading",
        "progress": 0.5,
        "ratio": 0.1,
        "size": 100,
        "completion_on": 0,
    },
    {
        "hash": "bbb222",
        "name": "debian-12.iso",
        "state": "uploading",
        "progress": 1.0,
        "ratio": 2.5,
        "size": 200,
        "completion_on": 1,
    },
]


def make_client() -> AsyncMock:
    """AsyncMock shaped like QBitClient, with canned answers for read calls."""
    client = AsyncMock(spec=QBitClient)
    client.get_torrent_list.return_value = [dict(t) for t in TORRENTS]
    client.get_torrents_info.return_value = [dict(TORRENTS[0])]
    client.get_torrent_files.return_value = [{"index": 0, "name": "ubuntu-24.04.iso", "progress": 0.5}]
    client.get_torrent_properties.return_value = {"save_path": "/downloads", "seeds": 3}
    client.get_torrent_trackers.return_value = [{"url": "udp://tracker.example:80", "status": 2}]
    client.get_categories.return_value = {"linux": {"name": "linux", "savePath": "/linux"}}
    client.get_global_transfer_info.return_value = {"dl_info_speed": 1024, "dht_nodes": 300}
    client.get_app_preferences.return_value = {"save_path": "/downloads"}
    client.get_app_version.return_value = "v5.0.2"
    client.get_build_info.return_value = {"qt": "6.7.2", "libtorrent": "2.0.10"}
    client.get_main_log.return_value = [{"id": 1, "message": "started", "type": 1}]
    client.get_peer_log.return_value = []
    client.get_search_plugins.return_value = [{"name": "piratebay", "enabled": True}]
    client.get_all_rss_feeds.return_value = {"Linux": {"uid": "x", "url": "https://feed.example"}}
    client.get_all_rss_rules.return_value = {}
    client.start_search.return_value = 7
    client.get_search_results.return_value = {"status": "Stopped", "results": [], "total": 0}
    client.get_main_data.return_value = {"rid": 1, "torrents": {}}
    return client


@pytest.fixture
def client():
    return make_client()


@pytest.fixture
def server(client):
    return MCPServer("qbittorrent-mcp", {"default": client}, version="test")


@pytest.fixture
def lazy_server(client):
    return MCPServer("qbittorrent-mcp", {"default": client}, lazy_mode=True, version="test")


@pytest.fixture
def multi_server():
    clients = {"home": make_client(), "seedbox": make_client()}
    return MCPServer("qbittorrent-mcp", clients, version="test")
