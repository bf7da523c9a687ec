"""
Torrent management tools.
"""

import asyncio
import json
import re
import time
from typing import Any, Dict, List

from ...client import BackendError
from ..errors import InternalError, InvalidParamsError
from ..logger import get_logger
from ..utils import config
from ._internal.arguments import ToolArguments, ToolResult
from ._internal.context import ToolContext
from ._internal.registry import tool

logger = get_logger("qbitmcp-tools-torrents")

HASH = {"type": "string", "description": "Torrent hash"}
HASHES = {"type": "string", "description": "Torrent hashes (pipe-separated)"}

LIST_FILTER_PROPERTIES = {
    "filter": {
        "type": "string",
        "description": "Filter by status (all, downloading, completed, paused, active, inactive, "
        "resumed, stalled, stalled_uploading, stalled_downloading, errored)",
    },
    "category": {"type": "string", "description": "Filter by category"},
    "tag": {"type": "string", "description": "Filter by tag"},
    "sort": {
        "type": "string",
        "description": "Sort by column name (e.g., name, size, progress, added_on, dlspeed, "
        "upspeed, ratio, eta, state, category, tags)",
    },
    "reverse": {"type": "boolean", "description": "True to reverse sort order"},
    "limit": {"type": "integer", "description": "Maximum number of torrents to return"},
    "offset": {"type": "integer", "description": "Number of torrents to skip"},
}

MANAGE_ACTIONS = (
    "pause",
    "resume",
    "reannounce",
    "recheck",
    "set_category",
    "add_tags",
    "remove_tags",
    "set_share_limits",
    "set_speed_limits",
    "toggle_sequential",
    "toggle_first_last_prio",
    "set_force_start",
    "set_super_seeding",
)

SECONDS_PER_DAY = 24 * 3600


def _pretty(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


@tool(
    category="torrent",
    description="List all torrents with optional filtering and sorting",
    properties={
        **LIST_FILTER_PROPERTIES,
        "include_properties": {
            "type": "boolean",
            "description": "Include detailed properties for each torrent",
        },
        "include_files": {"type": "boolean", "description": "Include file list for each torrent"},
    },
    restricted=True,
)
async def list_torrents(ctx: ToolContext, args: ToolArguments) -> str:
    torrents = await ctx.client.get_torrent_list(
        filter=args.get_str("filter"),
        category=args.get_str("category"),
        tag=args.get_str("tag"),
        sort=args.get_str("sort"),
        reverse=args.get_bool("reverse"),
        limit=args.get_int("limit"),
        offset=args.get_int("offset"),
    )

    include_properties = args.get_bool("include_properties", False)
    include_files = args.get_bool("include_files", False)
    if not include_properties and not include_files:
        return _pretty(torrents)

    detailed = []
    for torrent in torrents:
        entry = dict(torrent)
        torrent_hash = torrent.get("hash", "")
        # Per-torrent details are optional; a failed lookup leaves the field out
        if include_properties:
            try:
                entry["properties"] = await ctx.client.get_torrent_properties(torrent_hash)
            except BackendError as e:
                logger.debug("Skipping properties for %s: %s", torrent_hash, e)
        if include_files:
            try:
                entry["files"] = await ctx.client.get_torrent_files(torrent_hash)
            except BackendError as e:
                logger.debug("Skipping files for %s: %s", torrent_hash, e)
        detailed.append(entry)
    return _pretty(detailed)


@tool(
    category="torrent",
    description="Unified tool for multiple torrent actions (pause, resume, category, tags, limits, etc.)",
    properties={
        "hashes": HASHES,
        "action": {"type": "string", "enum": list(MANAGE_ACTIONS), "description": "Action to perform"},
        "category": {"type": "string", "description": "For 'set_category'"},
        "tags": {"type": "string", "description": "For 'add_tags' or 'remove_tags' (comma-separated)"},
        "ratio_limit": {"type": "number", "description": "For 'set_share_limits'"},
        "seeding_time_limit": {"type": "integer", "description": "For 'set_share_limits' (minutes)"},
        "inactive_seeding_time_limit": {
            "type": "integer",
            "description": "For 'set_share_limits' (minutes)",
        },
        "dl_limit": {"type": "integer", "description": "For 'set_speed_limits' (bytes/s)"},
        "up_limit": {"type": "integer", "description": "For 'set_speed_limits' (bytes/s)"},
        "value": {"type": "boolean", "description": "For 'set_force_start' or 'set_super_seeding'"},
    },
    required=["hashes", "action"],
)
async def manage_torrents(ctx: ToolContext, args: ToolArguments) -> str:
    hashes = args.require_str("hashes")
    action = args.require_str("action")
    client = ctx.client

    if action == "pause":
        await client.pause_torrents(hashes)
    elif action == "resume":
        await client.resume_torrents(hashes)
    elif action == "reannounce":
        await client.reannounce_torrents(hashes)
    elif action == "recheck":
        await client.recheck_torrents(hashes)
    elif action == "set_category":
        await client.set_category(hashes, args.require_str("category"))
    elif action == "add_tags":
        await client.add_tags(hashes, args.require_str("tags"))
    elif action == "remove_tags":
        await client.remove_tags(hashes, args.require_str("tags"))
    elif action == "set_share_limits":
        await client.set_torrent_share_limits(
            hashes,
            args.require_float("ratio_limit"),
            args.require_int("seeding_time_limit"),
            args.get_int("inactive_seeding_time_limit"),
        )
    elif action == "set_speed_limits":
        dl_limit = args.get_int("dl_limit")
        up_limit = args.get_int("up_limit")
        if dl_limit is not None:
            await client.set_torrent_download_limit(hashes, dl_limit)
        if up_limit is not None:
            await client.set_torrent_upload_limit(hashes, up_limit)
    elif action == "toggle_sequential":
        await client.toggle_sequential_download(hashes)
    elif action == "toggle_first_last_prio":
        await client.toggle_first_last_piece_priority(hashes)
    elif action == "set_force_start":
        await client.set_force_start(hashes, args.require_bool("value"))
    elif action == "set_super_seeding":
        await client.set_super_seeding(hashes, args.require_bool("value"))
    else:
        raise InvalidParamsError(f"Unsupported action: {action}")

    return f"Action '{action}' performed successfully on torrents."


@tool(
    category="torrent",
    description="Add a new torrent",
    properties={
        "url": {"type": "string", "description": "Magnet URI or HTTP URL"},
        "save_path": {"type": "string", "description": "Optional save path"},
        "category": {"type": "string", "description": "Optional category"},
    },
    required=["url"],
)
async def add_torrent(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.add_torrent(
        args.require_str("url"),
        save_path=args.get_str("save_path"),
        category=args.get_str("category"),
    )
    return "Torrent added successfully"


@tool(
    category="torrent",
    description="Delete a torrent. DESTRUCTIVE: Inform the user and confirm before calling, "
    "especially if delete_files is true.",
    properties={
        "hash": {"type": "string", "description": "Torrent hash (pipe-separated for multiple)"},
        "delete_files": {"type": "boolean", "description": "Also delete files from disk"},
    },
    required=["hash", "delete_files"],
)
async def delete_torrent(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.delete_torrents(
        args.require_str("hash"), args.get_bool("delete_files", False)
    )
    return "Torrent deleted successfully"


@tool(
    category="torrent",
    description="Get file list of a torrent",
    properties={"hash": HASH},
    required=["hash"],
)
async def get_torrent_files(ctx: ToolContext, args: ToolArguments) -> str:
    return _pretty(await ctx.client.get_torrent_files(args.require_str("hash")))


@tool(
    category="torrent",
    description="Comprehensive inspection of a torrent (properties, files, and trackers in one call)",
    properties={"hash": HASH},
    required=["hash"],
)
async def inspect_torrent(ctx: ToolContext, args: ToolArguments) -> str:
    torrent_hash = args.require_str("hash")
    properties, files, trackers = await asyncio.gather(
        ctx.client.get_torrent_properties(torrent_hash),
        ctx.client.get_torrent_files(torrent_hash),
        ctx.client.get_torrent_trackers(torrent_hash),
    )
    return _pretty({"properties": properties, "files": files, "trackers": trackers})


@tool(category="torrent", description="Get all categories")
async def get_categories(ctx: ToolContext, args: ToolArguments) -> str:
    return _pretty(await ctx.client.get_categories())


@tool(
    category="torrent",
    description="Poll a torrent until it reaches a desired state or timeout",
    properties={
        "hash": HASH,
        "target_status": {
            "type": "string",
            "description": "Status to wait for (e.g., uploading, stalledUP)",
        },
        "timeout_seconds": {"type": "integer", "description": "Max wait time (default 60, max 300)"},
    },
    required=["hash", "target_status"],
)
async def wait_for_torrent_status(ctx: ToolContext, args: ToolArguments):
    """
    Poll the torrent's state until it equals target_status.

    The first poll happens immediately. Between polls the handler sleeps for
    WAIT_POLL_INTERVAL, never past the deadline. A torrent that disappears is
    a hard failure; running out of time is an error-flagged result.
    """
    torrent_hash = args.require_str("hash")
    target = args.require_str("target_status")
    timeout = args.get_int("timeout_seconds", config.WAIT_DEFAULT_TIMEOUT)
    timeout = min(max(timeout, config.WAIT_MIN_TIMEOUT), config.WAIT_MAX_TIMEOUT)

    deadline = time.monotonic() + timeout
    while True:
        torrents = await ctx.client.get_torrents_info(torrent_hash)
        if not torrents:
            raise InternalError(f"Torrent not found: {torrent_hash}")
        if torrents[0].get("state") == target:
            return f"Torrent reached target status: {target}"

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        await asyncio.sleep(min(config.WAIT_POLL_INTERVAL, remaining))

    logger.info("Timed out after %ss waiting for %s to reach %s", timeout, torrent_hash, target)
    return ToolResult(f"Timed out waiting for status {target}", is_error=True)


@tool(
    category="torrent",
    description="Bulk remove completed torrents based on ratio or age. DESTRUCTIVE: Inform the "
    "user and confirm before calling.",
    properties={
        "min_ratio": {"type": "number", "description": "Minimum ratio to trigger removal"},
        "max_age_days": {
            "type": "integer",
            "description": "Maximum age in days since completion to trigger removal",
        },
        "delete_files": {"type": "boolean", "description": "Also delete downloaded files from disk"},
    },
    required=["delete_files"],
)
async def cleanup_completed(ctx: ToolContext, args: ToolArguments) -> str:
    min_ratio = args.get_float("min_ratio")
    max_age_days = args.get_int("max_age_days")
    delete_files = args.get_bool("delete_files", False)

    # Without a criterion nothing is removed, never "all completed"
    if min_ratio is None and max_age_days is None:
        return "No torrents matched the cleanup criteria."

    torrents = await ctx.client.get_torrent_list(filter="completed")
    now = int(time.time())

    matched: List[str] = []
    for torrent in torrents:
        by_ratio = min_ratio is not None and torrent.get("ratio", 0) >= min_ratio
        completed_on = torrent.get("completion_on", 0) or 0
        by_age = (
            max_age_days is not None
            and completed_on > 0
            and now - completed_on >= max_age_days * SECONDS_PER_DAY
        )
        if by_ratio or by_age:
            matched.append(torrent["hash"])

    if not matched:
        return "No torrents matched the cleanup criteria."

    await ctx.client.delete_torrents("|".join(matched), delete_files)
    return f"Successfully cleaned up {len(matched)} torrents."


_REPLACEMENT_REF = re.compile(r"\$(?:\{(\w+)\}|(\d+)|(\$))")


def to_python_replacement(replacement: str) -> str:
    """Translate "$1" / "${name}" / "$$" references into re.sub syntax."""

    def convert(match: re.Match) -> str:
        if match.group(3):
            return "$"
        return f"\\g<{match.group(1) or match.group(2)}>"

    # Backslashes are literal in the incoming syntax
    return _REPLACEMENT_REF.sub(convert, replacement.replace("\\", "\\\\"))


@tool(
    category="torrent",
    description="Rename files in a torrent using a regex pattern",
    properties={
        "hash": HASH,
        "pattern": {"type": "string", "description": "Regex pattern to match"},
        "replacement": {
            "type": "string",
            "description": "Replacement string (supports $1, $2, etc.)",
        },
    },
    required=["hash", "pattern", "replacement"],
)
async def mass_rename(ctx: ToolContext, args: ToolArguments) -> str:
    torrent_hash = args.require_str("hash")
    try:
        regex = re.compile(args.require_str("pattern"))
    except re.error as e:
        raise InvalidParamsError(f"Invalid regex pattern: {e}") from e
    template = to_python_replacement(args.require_str("replacement"))

    files = await ctx.client.get_torrent_files(torrent_hash)

    renamed = 0
    for entry in files:
        old_name = entry.get("name", "")
        if not regex.search(old_name):
            continue
        try:
            new_name = regex.sub(template, old_name)
        except (re.error, IndexError) as e:
            raise InvalidParamsError(f"Invalid replacement: {e}") from e
        if new_name != old_name:
            await ctx.client.rename_file(torrent_hash, old_name, new_name)
            renamed += 1

    return f"Successfully renamed {renamed} files."


@tool(category="torrent", description="Find duplicate torrents by name")
async def find_duplicates(ctx: ToolContext, args: ToolArguments) -> str:
    torrents = await ctx.client.get_torrent_list()

    by_name: Dict[str, List[dict]] = {}
    for torrent in torrents:
        by_name.setdefault(torrent.get("name", ""), []).append(torrent)

    duplicates = [
        {
            "name": name,
            "count": len(group),
            "torrents": [
                {
                    "hash": t.get("hash"),
                    "size": t.get("size"),
                    "progress": t.get("progress"),
                    "state": t.get("state"),
                }
                for t in group
            ],
        }
        for name, group in by_name.items()
        if len(group) > 1
    ]

    if not duplicates:
        return "No duplicate torrents found."
    return _pretty(duplicates)


@tool(
    category="torrent",
    description="Add trackers to torrents",
    properties={
        "hashes": HASHES,
        "urls": {"type": "string", "description": "URLs of the trackers (newline-separated)"},
    },
    required=["hashes", "urls"],
)
async def add_trackers(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.add_trackers(args.require_str("hashes"), args.require_str("urls"))
    return "Trackers added successfully"


@tool(
    category="torrent",
    description="Edit a tracker URL for a torrent",
    properties={
        "hash": HASH,
        "orig_url": {"type": "string", "description": "Original tracker URL"},
        "new_url": {"type": "string", "description": "New tracker URL"},
    },
    required=["hash", "orig_url", "new_url"],
)
async def edit_tracker(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.edit_tracker(
        args.require_str("hash"), args.require_str("orig_url"), args.require_str("new_url")
    )
    return "Tracker edited successfully"


@tool(
    category="torrent",
    description="Remove trackers from torrents",
    properties={
        "hashes": HASHES,
        "urls": {
            "type": "string",
            "description": "URLs of the trackers to remove (newline-separated)",
        },
    },
    required=["hashes", "urls"],
)
async def remove_trackers(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.remove_trackers(args.require_str("hashes"), args.require_str("urls"))
    return "Trackers removed successfully"


@tool(
    category="torrent",
    description="Rename a folder in a torrent",
    properties={
        "hash": HASH,
        "old_path": {"type": "string", "description": "Current folder path"},
        "new_path": {"type": "string", "description": "New folder path"},
    },
    required=["hash", "old_path", "new_path"],
)
async def rename_folder(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.rename_folder(
        args.require_str("hash"), args.require_str("old_path"), args.require_str("new_path")
    )
    return "Folder renamed successfully"


@tool(
    category="torrent",
    description="Set priority for files in a torrent",
    properties={
        "hash": HASH,
        "id": {"type": "string", "description": "File IDs (pipe-separated)"},
        "priority": {
            "type": "integer",
            "description": "Priority (0: Do not download, 1: Normal, 6: High, 7: Maximal)",
        },
    },
    required=["hash", "id", "priority"],
)
async def set_file_priority(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.set_file_priority(
        args.require_str("hash"), args.require_str("id"), args.require_int("priority")
    )
    return "File priority updated successfully"
