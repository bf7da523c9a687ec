"""
MCP Tools - static tool table, one module per category.

Importing this package registers every tool via the @tool decorator;
MCPServer.sync_tools() builds its lookup table from the registry.
"""

from ..logger import get_logger
from . import torrents, search, transfer, rss, app  # noqa: F401  (registration order = list order)
from ._internal.arguments import ToolArguments, ToolResult
from ._internal.context import ToolContext
from ._internal.registry import ToolRegistration, iter_tools, tool

logger = get_logger("qbitmcp-tools")


def register_tools() -> int:
    """Log the registered tool table and return its size."""
    registrations = iter_tools()
    logger.info("Tools system ready - %d tool(s) available", len(registrations))
    for reg in registrations:
        logger.debug("  Registered tool: %s [%s]", reg.name, reg.category)
    return len(registrations)


# Public API
__all__ = [
    "ToolArguments",
    "ToolContext",
    "ToolRegistration",
    "ToolResult",
    "iter_tools",
    "register_tools",
    "tool",
]
