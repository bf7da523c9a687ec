"""
MCP (Model Context Protocol) implementation for qBittorrent

This package provides the protocol/session layer of the server:
- stdio transport for a single CLI client (transport/stdio.py)
- HTTP/SSE transport for concurrent web clients (transport/asgi.py)
- Tools, resources and prompts registered by decorator
- MCPServer (core.py): instance routing and lazy tool visibility

Architecture:
    core.py:       MCPServer, the table every transport dispatches into
    handlers.py:   JSON-RPC method handlers
    state.py:      Tool visibility state machine and server event queue
    events.py:     Background poller producing torrent events
    transport/:    stdio and SSE transports
"""

from . import utils
from .logger import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "utils",
]
