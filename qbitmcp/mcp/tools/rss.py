"""
RSS feed and auto-download rule tools.
"""

import json

from ..errors import InvalidParamsError
from ._internal.arguments import ToolArguments
from ._internal.context import ToolContext
from ._internal.registry import tool


def _pretty(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


@tool(
    category="rss",
    description="Add a new RSS feed",
    properties={
        "url": {"type": "string", "description": "URL of the RSS feed"},
        "path": {"type": "string", "description": "Internal path/name for the feed"},
    },
    required=["url", "path"],
)
async def add_rss_feed(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.add_rss_feed(args.require_str("url"), args.require_str("path"))
    return "RSS feed added successfully"


@tool(category="rss", description="Get all RSS feeds and their items")
async def get_rss_feeds(ctx: ToolContext, args: ToolArguments) -> str:
    return _pretty(await ctx.client.get_all_rss_feeds())


@tool(
    category="rss",
    description="Create or update an RSS auto-download rule",
    properties={
        "name": {"type": "string", "description": "Name of the rule"},
        "definition": {"type": "string", "description": "JSON string defining the rule"},
    },
    required=["name", "definition"],
)
async def set_rss_rule(ctx: ToolContext, args: ToolArguments) -> str:
    definition = args.require_str("definition")
    try:
        parsed = json.loads(definition)
    except ValueError as e:
        raise InvalidParamsError(f"Rule definition is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise InvalidParamsError("Rule definition must be a JSON object")

    await ctx.client.set_rss_rule(args.require_str("name"), definition)
    return "RSS rule set successfully"


@tool(category="rss", description="Get all RSS auto-download rules")
async def get_rss_rules(ctx: ToolContext, args: ToolArguments) -> str:
    return _pretty(await ctx.client.get_all_rss_rules())


@tool(
    category="rss",
    description="Move an RSS item (feed or folder)",
    properties={
        "item_path": {"type": "string", "description": "Current path of the item"},
        "dest_path": {"type": "string", "description": "Destination path"},
    },
    required=["item_path", "dest_path"],
)
async def move_rss_item(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.move_rss_item(args.require_str("item_path"), args.require_str("dest_path"))
    return "RSS item moved successfully"
