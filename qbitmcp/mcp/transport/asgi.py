"""
ASGI Application - MCP over SSE

Creates the Starlette ASGI app serving the SSE transport:

- GET /sse opens an event stream, registers a session and first sends an
  "endpoint" event carrying /message?session_id=<id>
- POST /message?session_id=<id> accepts one JSON-RPC request (202) and
  dispatches it in a background task; the response is pushed on the stream
- GET /health reports status and statistics (never authenticated)

Notification delivery:
- After each pushed response, an armed tools/list_changed flag is consumed
  and broadcast to every open session
- A lifespan task drains server events every NOTIFICATION_FLUSH_INTERVAL
  and broadcasts them to every open session

Shutdown Handling:
- Returns 503 Service Unavailable when server is shutting down
- Open sessions and their in-flight requests are cancelled on shutdown
"""

import asyncio
import contextlib
import json
import secrets
import time
import uuid
from typing import Callable, Optional

from sse_starlette.sse import EventSourceResponse
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..errors import INVALID_REQUEST, PARSE_ERROR, McpError
from ..handlers import process_request
from ..logger import clear_request_id, get_logger, set_request_id
from ..protocol import TOOLS_LIST_CHANGED, encode, notification, parse_request
from ..utils import config
from .sessions import Session, SessionRegistry

# Logger for request logging
request_logger = get_logger("qbitmcp-requests")
# Logger for authentication events
auth_logger = get_logger("qbitmcp-auth")

UNAUTHORIZED = -32001
SESSION_NOT_FOUND = -32002
SHUTTING_DOWN = -32000


def _error_json(code: int, message: str, status_code: int, msg_id=None, headers=None) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": msg_id, "error": {"code": code, "message": message}},
        status_code=status_code,
        headers=headers,
    )


class ShutdownMiddleware(BaseHTTPMiddleware):
    """
    Middleware to reject requests during server shutdown.

    Returns 503 Service Unavailable when the server is shutting down,
    preventing new requests from starting during the shutdown process.
    """

    async def dispatch(self, request, call_next):
        if request.app.state.is_shutting_down():
            return _error_json(
                SHUTTING_DOWN,
                "Server is shutting down. Please retry after the server restarts.",
                503,
                headers={"Retry-After": "5"},
            )
        return await call_next(request)


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware to enforce token-based authentication on the SSE stream.

    Only GET /sse is gated: a session id minted for an authenticated stream
    is what authorizes later posts to /message.

    Checks for token in:
    1. Authorization header: 'Bearer <token>' (preferred)
    2. Query parameter: '?token=<token>' (fallback for EventSource clients)

    Uses constant-time comparison. An empty token disables authentication.
    """

    def __init__(self, app, auth_token: Optional[str] = None):
        super().__init__(app)
        self.auth_token = auth_token or ""

    async def dispatch(self, request, call_next):
        if not self.auth_token or request.url.path != "/sse":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            # Slice off the "Bearer " prefix (7 characters)
            token = auth_header[7:].strip()
            if token and secrets.compare_digest(token, self.auth_token):
                return await call_next(request)

        # WARNING: Tokens in URLs can leak in logs and browser history
        query_token = request.query_params.get("token")
        if query_token and secrets.compare_digest(query_token, self.auth_token):
            auth_logger.warning(
                "Authentication via query parameter (less secure). Client: %s",
                request.client.host if request.client else "unknown",
            )
            return await call_next(request)

        auth_logger.warning(
            "Rejected unauthenticated SSE connection from %s",
            request.client.host if request.client else "unknown",
        )
        return _error_json(UNAUTHORIZED, "Unauthorized: Invalid or missing token", 401)


class StatsMiddleware(BaseHTTPMiddleware):
    """Track request statistics for health endpoint."""

    async def dispatch(self, request, call_next):
        stats = request.app.state.stats
        stats["request_count"] += 1

        try:
            response = await call_next(request)
        except Exception:
            stats["error_count"] += 1
            raise
        if response.status_code >= 500:
            stats["error_count"] += 1
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing and request ID context."""

    async def dispatch(self, request, call_next):
        # Use existing request ID from header, or generate new one
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()

        try:
            response = await call_next(request)
            ms = (time.perf_counter() - start) * 1000
            request_logger.info(
                "%s %s -> %d (%.2fms)",
                request.method,
                request.url.path,
                response.status_code,
                ms,
            )
            # Add request ID to response headers for tracing
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            ms = (time.perf_counter() - start) * 1000
            request_logger.error(
                "%s %s -> ERROR (%.2fms): %s",
                request.method,
                request.url.path,
                ms,
                e,
            )
            raise
        finally:
            clear_request_id()


async def health_endpoint(request):
    """
    Health check endpoint - no auth required for monitoring tools.

    Returns server status, statistics, and diagnostic info.
    """
    mcp_server = request.app.state.mcp_server
    sessions: SessionRegistry = request.app.state.sessions
    stats = request.app.state.stats

    return JSONResponse(
        {
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.start_time, 2),
            "connections": {"active_sse_sessions": len(sessions)},
            "statistics": {
                "total_requests": stats["request_count"],
                "error_count": stats["error_count"],
            },
            "server": {
                "name": mcp_server.name,
                "version": mcp_server.version,
                "instances": mcp_server.instance_names,
                "tools_loaded": mcp_server.visibility.tools_loaded,
            },
        }
    )


async def sse_endpoint(request):
    """
    SSE endpoint (/sse): one long-lived stream per session.

    The first event is "endpoint" with the relative URL to post requests to;
    every later response or notification is a "message" event.
    """
    sessions: SessionRegistry = request.app.state.sessions
    session = sessions.create()

    async def event_generator():
        queue = session.queue
        try:
            yield {"event": "endpoint", "data": session.endpoint}

            while True:
                drop_notification = queue.get_drop_notification()
                if drop_notification:
                    yield drop_notification

                # Drain all available messages before waiting
                message = queue.popleft()
                while message is not None:
                    yield {"event": "message", "data": encode(message)}
                    message = queue.popleft()

                await queue.wait_for_message(timeout=config.SSE_PING_INTERVAL)
        finally:
            sessions.remove(session.session_id)

    return EventSourceResponse(event_generator(), ping=config.SSE_PING_INTERVAL)


async def _process_and_push(request_app, session: Session, rpc_request) -> None:
    mcp_server = request_app.state.mcp_server
    sessions: SessionRegistry = request_app.state.sessions

    response = await process_request(mcp_server, rpc_request)
    if response is None:
        return
    if session.session_id in sessions:
        session.send(response)
    else:
        request_logger.debug(
            "Session %s closed before response %r was ready",
            session.session_id[:8],
            rpc_request.id,
        )

    # Visibility is server-wide, so the change reaches every open session
    if mcp_server.consume_tools_changed():
        count = sessions.broadcast(notification(TOOLS_LIST_CHANGED))
        request_logger.info("Broadcast tools/list_changed to %d session(s)", count)


async def message_endpoint(request):
    """
    Post endpoint (/message?session_id=<id>).

    Returns 400 for a missing session id or a malformed body, 404 for an
    unknown session, and 202 once the request is queued for dispatch.
    """
    session_id = request.query_params.get("session_id")
    if not session_id:
        return _error_json(INVALID_REQUEST, "Missing session_id", 400)

    try:
        data = json.loads(await request.body())
    except ValueError as e:
        return _error_json(PARSE_ERROR, f"Parse error: {e}", 400)

    try:
        rpc_request = parse_request(data)
    except McpError as e:
        msg_id = data.get("id") if isinstance(data, dict) else None
        return _error_json(e.code, e.message, 400, msg_id=msg_id)

    session = request.app.state.sessions.get(session_id)
    if session is None:
        return _error_json(SESSION_NOT_FOUND, f"Session not found: {session_id}", 404)

    task = asyncio.create_task(_process_and_push(request.app, session, rpc_request))
    session.track(task)
    return Response(status_code=202)


async def _flush_events(mcp_server, sessions: SessionRegistry) -> None:
    """Broadcast queued server events to every open session."""
    while True:
        await asyncio.sleep(config.NOTIFICATION_FLUSH_INTERVAL)
        for message in mcp_server.drain_notifications():
            sessions.broadcast(message)


def create_asgi_app(
    mcp_server,
    host: str = config.DEFAULT_HTTP_HOST,
    port: int = config.DEFAULT_HTTP_PORT,
    auth_token: Optional[str] = None,
    is_shutting_down_fn: Optional[Callable[[], bool]] = None,
) -> Starlette:
    """
    Create Starlette ASGI application with MCP endpoints.

    Args:
        mcp_server: MCPServer instance
        host: Server host address (selects the CORS origin policy)
        port: Server port
        auth_token: Bearer token gating /sse (None or empty for no auth)
        is_shutting_down_fn: Optional callable that returns True if server is shutting down

    Returns:
        Starlette: ASGI application
    """
    if host == "0.0.0.0":
        allowed_origins = ["*"]
    else:
        allowed_origins = [
            "http://localhost",
            "http://127.0.0.1",
            f"http://localhost:{port}",
            f"http://127.0.0.1:{port}",
        ]

    sessions = SessionRegistry()

    @contextlib.asynccontextmanager
    async def lifespan(app):
        flusher = asyncio.create_task(_flush_events(mcp_server, sessions))
        request_logger.debug("Started notification flusher")
        try:
            yield
        finally:
            flusher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await flusher
            count = sessions.close_all()
            if count:
                request_logger.debug("Closed %d SSE session(s) on shutdown", count)

    app = Starlette(
        routes=[
            Route("/health", health_endpoint, methods=["GET"]),
            Route("/sse", sse_endpoint, methods=["GET"]),
            Route("/message", message_endpoint, methods=["POST"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=allowed_origins,
                allow_methods=["GET", "POST", "OPTIONS"],
                allow_headers=["*"],
                allow_credentials=True,
            ),
            Middleware(ShutdownMiddleware),
            Middleware(RequestLoggingMiddleware),
            Middleware(StatsMiddleware),
            Middleware(AuthMiddleware, auth_token=auth_token),
        ],
        lifespan=lifespan,
    )

    app.state.mcp_server = mcp_server
    app.state.sessions = sessions
    app.state.start_time = time.time()
    app.state.stats = {"request_count": 0, "error_count": 0}
    app.state.is_shutting_down = is_shutting_down_fn or (lambda: False)

    return app
