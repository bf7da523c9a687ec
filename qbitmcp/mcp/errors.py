"""
MCP error taxonomy.

Handlers raise these; transports turn them into JSON-RPC error objects.
Anything that is not an McpError (backend failures, bugs) becomes an
internal error carrying the exception text.
"""

from typing import Any, Optional

# JSON-RPC 2.0 standard error codes.
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class McpError(Exception):
    """Base class for errors that map onto a JSON-RPC error code."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ParseError(McpError):
    code = PARSE_ERROR


class InvalidRequestError(McpError):
    code = INVALID_REQUEST


class MethodNotFoundError(McpError):
    code = METHOD_NOT_FOUND


class InvalidParamsError(McpError):
    code = INVALID_PARAMS


class InternalError(McpError):
    code = INTERNAL_ERROR


def to_error_object(exc: BaseException) -> dict:
    """Map any exception to a JSON-RPC error object."""
    if isinstance(exc, McpError):
        return exc.to_dict()
    return {"code": INTERNAL_ERROR, "message": str(exc) or type(exc).__name__}


__all__ = [
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    "McpError",
    "ParseError",
    "InvalidRequestError",
    "MethodNotFoundError",
    "InvalidParamsError",
    "InternalError",
    "to_error_object",
]
