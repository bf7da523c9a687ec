"""
Search tools.

search_torrents drives a remote search job through its whole lifecycle:
start, a fixed number of polls, then stop + delete on every exit path.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, List, Optional

from ...client import BackendError
from ..logger import get_logger
from ..utils import config
from ._internal.arguments import ToolArguments
from ._internal.context import ToolContext
from ._internal.registry import tool

if TYPE_CHECKING:
    from ...client import QBitClient

logger = get_logger("qbitmcp-tools-search")

PLUGIN_NAME = {"type": "string", "description": "Name of the plugin"}


async def _release_search(client: "QBitClient", search_id: int) -> None:
    for step, release in (("stop", client.stop_search), ("delete", client.delete_search)):
        try:
            await release(search_id)
        except Exception as e:
            logger.debug("Search %s %s failed during teardown: %s", search_id, step, e)


@asynccontextmanager
async def search_job(
    client: "QBitClient", query: str, category: Optional[str] = None
) -> AsyncIterator[int]:
    """
    Start a search job and guarantee it is stopped and deleted afterwards.

    Teardown runs on normal exit, on errors and on cancellation; its own
    failures are logged at debug level and never raised.

    Usage:
        async with search_job(client, "ubuntu") as search_id:
            results = await client.get_search_results(search_id)
    """
    search_id = await client.start_search(query, category)
    logger.debug("Started search %s for %r", search_id, query)
    try:
        yield search_id
    finally:
        await _release_search(client, search_id)


@tool(
    category="search",
    description="Search for torrents. ASYNCHRONOUS: Results might be incomplete on the first "
    "call. Use get_search_results for polling if needed.",
    properties={
        "query": {"type": "string", "description": "Search query"},
        "category": {"type": "string", "description": "Optional category"},
    },
    required=["query"],
)
async def search_torrents(ctx: ToolContext, args: ToolArguments) -> str:
    query = args.require_str("query")
    category = args.get_str("category")

    results: List[dict] = []
    async with search_job(ctx.client, query, category) as search_id:
        for attempt in range(config.SEARCH_POLL_ATTEMPTS):
            await asyncio.sleep(config.SEARCH_POLL_INTERVAL)
            try:
                snapshot = await ctx.client.get_search_results(search_id)
            except BackendError as e:
                logger.debug("Search %s poll %d failed: %s", search_id, attempt + 1, e)
                continue
            if not isinstance(snapshot, dict):
                logger.debug(
                    "Search %s poll %d returned %s", search_id, attempt + 1, type(snapshot).__name__
                )
                continue

            results = snapshot.get("results") or []
            if snapshot.get("status") == config.SEARCH_TERMINAL_STATUS:
                break

    return json.dumps(results, indent=2, ensure_ascii=False)


@tool(
    category="search",
    description="Install a search plugin",
    properties={"url": {"type": "string", "description": "URL to the plugin file"}},
    required=["url"],
)
async def install_search_plugin(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.install_search_plugin(args.require_str("url"))
    return "Search plugin installed successfully"


@tool(
    category="search",
    description="Uninstall a search plugin",
    properties={"name": PLUGIN_NAME},
    required=["name"],
)
async def uninstall_search_plugin(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.uninstall_search_plugin(args.require_str("name"))
    return "Search plugin uninstalled successfully"


@tool(
    category="search",
    description="Enable or disable a search plugin",
    properties={
        "name": PLUGIN_NAME,
        "enable": {"type": "boolean", "description": "True to enable, False to disable"},
    },
    required=["name", "enable"],
)
async def enable_search_plugin(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.enable_search_plugin(args.require_str("name"), args.require_bool("enable"))
    return "Search plugin status updated successfully"


@tool(category="search", description="Update all search plugins")
async def update_search_plugins(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.update_search_plugins()
    return "Search plugins updated successfully"


@tool(category="search", description="List installed search plugins")
async def get_search_plugins(ctx: ToolContext, args: ToolArguments) -> str:
    return json.dumps(await ctx.client.get_search_plugins(), indent=2, ensure_ascii=False)
