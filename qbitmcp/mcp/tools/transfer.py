"""
Transfer tools.
"""

from ._internal.arguments import ToolArguments
from ._internal.context import ToolContext
from ._internal.registry import tool


@tool(
    category="transfer",
    description="Ban a list of peers",
    properties={
        "peers": {"type": "string", "description": "Peers to ban (host:port, pipe-separated)"}
    },
    required=["peers"],
)
async def ban_peers(ctx: ToolContext, args: ToolArguments) -> str:
    await ctx.client.ban_peers(args.require_str("peers"))
    return "Peers banned successfully"
