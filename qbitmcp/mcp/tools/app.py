"""
Application, log and visibility tools.
"""

import asyncio
import json

from ..errors import InvalidParamsError
from ._internal.arguments import ToolArguments
from ._internal.context import ToolContext
from ._internal.registry import tool

SHOW_ALL_TOOLS_TEXT = "All tools enabled. Please refresh your tool list."

LAST_ID = {
    "type": "integer",
    "description": "Exclude logs with ID less than or equal to this",
}

# severity -> (normal, info, warning, critical)
_SEVERITY_LEVELS = {
    "info": (False, True, False, False),
    "warning": (False, False, True, False),
    "critical": (False, False, False, True),
}
_ALL_LEVELS = (True, True, True, True)


def _pretty(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


@tool(
    category="app",
    description="Set one or more application preferences",
    properties={
        "preferences": {"type": "string", "description": "JSON string of preferences to update"}
    },
    required=["preferences"],
)
async def set_app_preferences(ctx: ToolContext, args: ToolArguments) -> str:
    try:
        preferences = json.loads(args.require_str("preferences"))
    except ValueError as e:
        raise InvalidParamsError(f"Preferences are not valid JSON: {e}") from e
    if not isinstance(preferences, dict):
        raise InvalidParamsError("Preferences must be a JSON object")

    await ctx.client.set_app_preferences(preferences)
    return "App preferences updated successfully"


@tool(
    category="app",
    description="Get the main application log",
    properties={
        "severity": {
            "type": "string",
            "description": "Filter by severity (all, info, warning, critical)",
        },
        "last_id": LAST_ID,
    },
)
async def get_main_log(ctx: ToolContext, args: ToolArguments) -> str:
    normal, info, warning, critical = _SEVERITY_LEVELS.get(
        args.get_str("severity", "all"), _ALL_LEVELS
    )
    logs = await ctx.client.get_main_log(
        normal=normal,
        info=info,
        warning=warning,
        critical=critical,
        last_id=args.get_int("last_id"),
    )
    return _pretty(logs)


@tool(
    category="app",
    description="Get the peer connection log",
    properties={"last_id": LAST_ID},
)
async def get_peer_log(ctx: ToolContext, args: ToolArguments) -> str:
    return _pretty(await ctx.client.get_peer_log(args.get_int("last_id")))


@tool(
    category="app",
    description="Comprehensive system information (transfer speeds, preferences, version, and "
    "build info in one call)",
)
async def get_system_info(ctx: ToolContext, args: ToolArguments) -> str:
    transfer_info, app_preferences, app_version, build_info = await asyncio.gather(
        ctx.client.get_global_transfer_info(),
        ctx.client.get_app_preferences(),
        ctx.client.get_app_version(),
        ctx.client.get_build_info(),
    )
    return _pretty(
        {
            "transfer_info": transfer_info,
            "app_preferences": app_preferences,
            "app_version": app_version,
            "build_info": build_info,
        }
    )


@tool(
    category="app",
    description="Shutdown qBittorrent. DESTRUCTIVE: Inform the user and confirm before calling "
    "as this terminates the service.",
)
async def shutdown_app(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.shutdown_app()
    return "Shutdown command sent"


@tool(
    category="app",
    description="Enable all available tools",
    restricted=True,
    targets_instance=False,
)
async def show_all_tools(ctx: ToolContext, args: ToolArguments) -> str:
    # Idempotent: only the first call flips visibility and arms the notification
    ctx.server.visibility.reveal_all()
    return SHOW_ALL_TOOLS_TEXT
