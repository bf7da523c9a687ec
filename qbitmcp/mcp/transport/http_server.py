"""
HTTP server for the SSE transport.

Wraps a uvicorn.Server around the Starlette app from asgi.py and runs it
on the caller's event loop.
"""

import socket
from typing import List, Optional

import uvicorn

from ..logger import get_logger
from ..utils import config
from .asgi import create_asgi_app

# Get logger for this module
logger = get_logger("qbitmcp-http")


class HttpServer:
    """
    uvicorn lifecycle around one MCPServer.

    Usage:
        server = HttpServer(mcp_server, "127.0.0.1", 3000, auth_token="...")
        await server.serve()  # returns after stop() or a signal
    """

    def __init__(
        self,
        mcp_server,
        host: str = config.DEFAULT_HTTP_HOST,
        port: int = config.DEFAULT_HTTP_PORT,
        auth_token: Optional[str] = None,
        log_level: str = "info",
    ):
        self.host = host
        self.port = port
        self._shutting_down = False
        self.app = create_asgi_app(
            mcp_server,
            host,
            port,
            auth_token,
            is_shutting_down_fn=self.is_shutting_down,
        )
        uvicorn_config = uvicorn.Config(
            app=self.app,
            host=host,
            port=port,
            log_level=log_level.lower(),
            log_config=None,  # keep the handlers installed by setup_logging
            timeout_graceful_shutdown=config.GRACEFUL_SHUTDOWN_TIMEOUT,
            lifespan="on",
            timeout_keep_alive=5,
        )
        self._uvicorn_server = uvicorn.Server(config=uvicorn_config)

    @property
    def started(self) -> bool:
        return self._uvicorn_server.started

    def is_shutting_down(self) -> bool:
        """Check if the server is in the process of shutting down."""
        return self._shutting_down or self._uvicorn_server.should_exit

    async def serve(self, sockets: Optional[List[socket.socket]] = None) -> None:
        """Serve until stop() is called or uvicorn receives a signal."""
        if sockets:
            logger.info("MCP SSE server listening on pre-bound socket(s)")
        else:
            logger.info("MCP SSE server listening on http://%s:%d/sse", self.host, self.port)
        await self._uvicorn_server.serve(sockets=sockets)
        logger.info("MCP SSE server stopped")

    def stop(self) -> None:
        """Signal uvicorn to exit gracefully."""
        self._shutting_down = True
        self._uvicorn_server.should_exit = True
