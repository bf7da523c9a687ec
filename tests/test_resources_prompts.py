"""
Resources (per-instance and per-torrent) and prompts.
"""

import json

import pytest

from qbitmcp.mcp import errors
from qbitmcp.mcp.handlers import dispatch_request


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def test_resources_listed_per_instance(multi_server):
    uris = [r["uri"] for r in multi_server.list_resources()]
    for instance in ("home", "seedbox"):
        for key in ("torrents", "transfer", "categories"):
            assert f"qbittorrent://{instance}/{key}" in uris

    by_uri = {r["uri"]: r for r in multi_server.list_resources()}
    entry = by_uri["qbittorrent://seedbox/torrents"]
    assert entry["name"] == "Torrent List (seedbox)"
    assert entry["mimeType"] == "application/json"


def test_resource_templates(server):
    templates = {t["uriTemplate"]: t for t in server.list_resource_templates()}
    assert set(templates) == {
        "qbittorrent://{instance}/torrent/{hash}/properties",
        "qbittorrent://{instance}/torrent/{hash}/files",
        "qbittorrent://{instance}/torrent/{hash}/trackers",
    }


@pytest.mark.asyncio
async def test_read_instance_resource(multi_server):
    result = await dispatch_request(
        multi_server, "resources/read", {"uri": "qbittorrent://seedbox/categories"}
    )
    [content] = result["contents"]
    assert content["uri"] == "qbittorrent://seedbox/categories"
    assert content["mimeType"] == "application/json"
    assert json.loads(content["text"]) == {"linux": {"name": "linux", "savePath": "/linux"}}
    multi_server.clients["seedbox"].get_categories.assert_awaited_once()
    multi_server.clients["home"].get_categories.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_legacy_uri_uses_default_instance(server, client):
    content = await server.read_resource("qbittorrent://transfer")
    assert json.loads(content["text"])["dht_nodes"] == 300
    client.get_global_transfer_info.assert_awaited_once()


@pytest.mark.asyncio
async def test_read_torrent_template(server, client):
    content = await server.read_resource("qbittorrent://default/torrent/aaa111/trackers")
    assert json.loads(content["text"])[0]["status"] == 2
    client.get_torrent_trackers.assert_awaited_once_with("aaa111")


@pytest.mark.asyncio
async def test_read_unknown_resource(server):
    with pytest.raises(errors.MethodNotFoundError, match="Resource not found"):
        await server.read_resource("qbittorrent://default/peers")
    with pytest.raises(errors.MethodNotFoundError):
        await server.read_resource("file:///etc/passwd")


@pytest.mark.asyncio
async def test_read_resource_unknown_instance(server):
    with pytest.raises(errors.InvalidParamsError, match="Instance not found: nas"):
        await server.read_resource("qbittorrent://nas/torrents")


@pytest.mark.asyncio
async def test_read_resource_requires_uri(server):
    with pytest.raises(errors.InvalidParamsError):
        await dispatch_request(server, "resources/read", {})


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def test_prompts_listed_with_arguments(server):
    prompts = {p["name"]: p for p in server.list_prompts()}
    assert set(prompts) == {"troubleshoot_torrent", "analyze_disk_space", "rules-of-engagement"}

    arguments = {a["name"]: a for a in prompts["troubleshoot_torrent"]["arguments"]}
    assert arguments["issue_type"]["required"] is True
    assert arguments["hash"]["required"] is False


@pytest.mark.asyncio
async def test_troubleshoot_stalled(server):
    result = await dispatch_request(
        server,
        "prompts/get",
        {"name": "troubleshoot_torrent", "arguments": {"hash": "aaa111", "issue_type": "stalled"}},
    )
    assert result["description"] == "Troubleshooting for stalled issue on instance default"
    text = result["messages"][0]["content"]["text"]
    assert "hash 'aaa111'" in text
    assert "inspect_torrent" in text


def test_troubleshoot_slow_needs_hash(server):
    with pytest.raises(errors.InvalidParamsError, match="Missing hash"):
        server.get_prompt("troubleshoot_torrent", {"issue_type": "slow"})


def test_troubleshoot_defaults_to_general(server):
    result = server.get_prompt("troubleshoot_torrent", {"issue_type": 3, "instance": "seedbox"})
    assert result["description"] == "Troubleshooting for general issue on instance seedbox"
    assert "general health check" in result["messages"][0]["content"]["text"]


def test_analyze_disk_space(server):
    result = server.get_prompt("analyze_disk_space", {})
    assert result["description"] == "Analyze disk space on instance default"


def test_rules_of_engagement(server):
    result = server.get_prompt("rules-of-engagement", {})
    roles = [m["role"] for m in result["messages"]]
    assert roles == ["user", "assistant"]
    assert "Rules of Engagement" in result["messages"][1]["content"]["text"]


def test_unknown_prompt(server):
    with pytest.raises(errors.InvalidParamsError, match="Prompt not found: haiku"):
        server.get_prompt("haiku", {})
