"""
MCP Protocol Handlers

Implements JSON-RPC handlers for all MCP protocol methods.
Used by both the stdio and the SSE transports.
"""

import traceback
from typing import Any, Optional

from .errors import InvalidParamsError, McpError, MethodNotFoundError
from .logger import RequestTimer, get_logger
from .protocol import JsonRpcRequest, error_response, success_response
from .tools._internal.arguments import ToolResult
from .utils import config

# Get logger for this module
logger = get_logger("qbitmcp-handlers")


def _require_params(params: Optional[Any]) -> dict:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise InvalidParamsError("Params must be an object")
    return params


def _require_name(params: dict, key: str, label: str) -> str:
    value = params.get(key)
    if not value or not isinstance(value, str) or not value.strip():
        raise InvalidParamsError(
            f"{label} is required and cannot be empty (received: {type(value).__name__})"
        )
    return value


def _truncate(tool_name: str, text: str) -> str:
    limit = config.OUTPUT_SIZE_LIMIT
    if len(text) <= limit:
        return text
    original_size = len(text)
    logger.warning("Tool %s output truncated: %d -> %d bytes", tool_name, original_size, limit)
    return (
        text[:limit]
        + "\n\n[OUTPUT TRUNCATED]\n"
        f"Original size: {original_size:,} bytes\n"
        f"Limit: {limit:,} bytes\n"
        f"Truncated: {original_size - limit:,} bytes"
    )


async def handle_initialize(mcp_server, params: dict) -> dict:
    """
    Handle MCP initialize request.

    Args:
        mcp_server: MCPServer instance
        params: Initialize parameters

    Returns:
        dict: Server capabilities and metadata
    """
    client_protocol = params.get("protocolVersion", "unknown")

    # Use the protocol version the client requested (if we support it)
    protocol_version = (
        client_protocol
        if client_protocol in config.SUPPORTED_PROTOCOL_VERSIONS
        else config.DEFAULT_PROTOCOL_VERSION
    )

    logger.info("Initialize: client=%s, using=%s", client_protocol, protocol_version)

    return {
        "protocolVersion": protocol_version,
        "serverInfo": {"name": mcp_server.name, "version": mcp_server.version},
        "capabilities": {
            "tools": {
                "listChanged": True,  # Sent once show_all_tools reveals the full set
            },
            "resources": {
                "subscribe": False,
                "listChanged": False,
            },
            "prompts": {
                "listChanged": False,
            },
        },
    }


async def handle_ping(mcp_server, params: dict) -> dict:
    return {}


async def handle_tools_list(mcp_server, params: dict) -> dict:
    tools = mcp_server.list_tools()
    logger.debug("tools/list: returning %d tools", len(tools))
    return {"tools": tools}


async def handle_tools_call(mcp_server, params: dict) -> dict:
    """
    Handle tools/call request - execute a tool.

    Args:
        mcp_server: MCPServer instance
        params: Tool call parameters (name, arguments)

    Returns:
        dict: Tool execution result

    Note:
        A ToolResult with is_error=True (for example a wait that timed out)
        is returned as content with isError=True. Every other failure is
        raised and becomes a JSON-RPC error.
    """
    tool_name = _require_name(params, "name", "Tool name")
    arguments = params.get("arguments")
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidParamsError("Tool arguments must be an object")

    logger.info("Tool call: %s", tool_name)

    with RequestTimer(logger, f"tool/{tool_name}"):
        try:
            result = await mcp_server.call_tool(tool_name, arguments)
        except McpError:
            raise
        except Exception as e:
            logger.error("Tool %s failed: %s\n%s", tool_name, e, traceback.format_exc())
            raise

    is_error = False
    if isinstance(result, ToolResult):
        is_error = result.is_error
        result = result.text

    response = {"content": [{"type": "text", "text": _truncate(tool_name, str(result))}]}
    if is_error:
        response["isError"] = True
    return response


async def handle_resources_list(mcp_server, params: dict) -> dict:
    resources = mcp_server.list_resources()
    logger.debug("resources/list: returning %d resources", len(resources))
    return {"resources": resources}


async def handle_resource_templates_list(mcp_server, params: dict) -> dict:
    return {"resourceTemplates": mcp_server.list_resource_templates()}


async def handle_resources_read(mcp_server, params: dict) -> dict:
    """
    Handle resources/read request - read a resource.

    Args:
        mcp_server: MCPServer instance
        params: Resource read parameters (uri)

    Returns:
        dict: Resource content
    """
    uri = _require_name(params, "uri", "Resource URI")
    logger.info("Resource read: %s", uri)

    with RequestTimer(logger, f"resource/{uri}"):
        content = await mcp_server.read_resource(uri)
    return {"contents": [content]}


async def handle_prompts_list(mcp_server, params: dict) -> dict:
    prompts = mcp_server.list_prompts()
    logger.debug("prompts/list: returning %d prompts", len(prompts))
    return {"prompts": prompts}


async def handle_prompts_get(mcp_server, params: dict) -> dict:
    """
    Handle prompts/get request - render a prompt with arguments.

    Returns:
        dict: Prompt result with description and messages
    """
    name = _require_name(params, "name", "Prompt name")
    arguments = params.get("arguments") or {}
    if not isinstance(arguments, dict):
        raise InvalidParamsError("Prompt arguments must be an object")

    logger.info("Prompt get: %s", name)
    with RequestTimer(logger, f"prompt/{name}"):
        return mcp_server.get_prompt(name, arguments)


async def handle_notifications_initialized(mcp_server, params: dict) -> None:
    """Sent by clients after they receive the initialize response."""
    logger.debug("Client initialization complete")
    return None


async def handle_notifications_cancelled(mcp_server, params: dict) -> None:
    """Sent by clients when they cancel a pending request."""
    logger.debug("Client cancelled request: %s", params.get("requestId"))
    return None


# Mapping of MCP methods to handlers
METHOD_HANDLERS = {
    "initialize": handle_initialize,
    "ping": handle_ping,
    "tools/list": handle_tools_list,
    "tools/call": handle_tools_call,
    "resources/list": handle_resources_list,
    "resources/templates/list": handle_resource_templates_list,
    "resources/read": handle_resources_read,
    "prompts/list": handle_prompts_list,
    "prompts/get": handle_prompts_get,
    # Notifications (no response expected)
    "notifications/initialized": handle_notifications_initialized,
    "notifications/cancelled": handle_notifications_cancelled,
}


async def dispatch_request(mcp_server, method: str, params: Optional[Any] = None) -> Any:
    """
    Dispatch an MCP request to the appropriate handler.

    Raises:
        MethodNotFoundError: If method not found
        InvalidParamsError: If params is not an object
    """
    logger.debug("Dispatch: %s", method)

    handler = METHOD_HANDLERS.get(method)
    if handler is None:
        logger.warning("Unknown method: %s", method)
        raise MethodNotFoundError(f"Method not found: {method}")

    return await handler(mcp_server, _require_params(params))


async def process_request(mcp_server, request: JsonRpcRequest) -> Optional[dict]:
    """
    Run one parsed request and build its response message.

    Returns None for notifications; their failures are only logged.
    """
    try:
        result = await dispatch_request(mcp_server, request.method, request.params)
    except Exception as e:
        if request.is_notification:
            logger.warning("Notification %s failed: %s", request.method, e)
            return None
        if not isinstance(e, McpError):
            logger.error("Request %s failed: %s", request.method, e)
        return error_response(request.id, e)

    if request.is_notification:
        return None
    return success_response(request.id, result)
