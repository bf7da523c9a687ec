"""
MCP Transport Layer

This module provides transport implementations for the Model Context Protocol:
- stdio transport for a single CLI client (newline-delimited JSON-RPC)
- HTTP/SSE transport for any number of concurrent clients

Architecture:
    stdio.py:       StdioTransport, one peer over stdin/stdout
    asgi.py:        Starlette ASGI application with /sse, /message and /health
    sessions.py:    SessionRegistry for SSE sessions
    http_server.py: HttpServer, uvicorn lifecycle around the ASGI app
"""

from .asgi import create_asgi_app
from .http_server import HttpServer
from .sessions import Session, SessionRegistry
from .stdio import StdioTransport

__all__ = [
    "HttpServer",
    "Session",
    "SessionRegistry",
    "StdioTransport",
    "create_asgi_app",
]
