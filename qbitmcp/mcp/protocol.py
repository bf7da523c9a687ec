"""
JSON-RPC 2.0 message models shared by the stdio and SSE transports.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import InvalidRequestError, ParseError, to_error_object

JSONRPC_VERSION = "2.0"

TOOLS_LIST_CHANGED = "notifications/tools/list_changed"


@dataclass(frozen=True)
class JsonRpcRequest:
    method: str
    params: Optional[Any] = None
    id: Optional[Any] = None  # string | number; None means notification

    @property
    def is_notification(self) -> bool:
        return self.id is None


def parse_request(raw: Union[str, bytes, dict]) -> JsonRpcRequest:
    """
    Decode one JSON-RPC request.

    Raises:
        ParseError: raw text is not JSON
        InvalidRequestError: JSON is not a request object
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ParseError(f"Parse error: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise InvalidRequestError("Invalid request: root must be an object")

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidRequestError("Invalid request: jsonrpc must be '2.0'")

    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequestError("Invalid request: method must be a non-empty string")

    return JsonRpcRequest(method=method, params=data.get("params"), id=data.get("id"))


def success_response(msg_id: Any, result: Any) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result}


def error_response(msg_id: Any, exc: BaseException) -> dict:
    return {"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": to_error_object(exc)}


def notification(method: str, params: Optional[dict] = None) -> dict:
    message = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def encode(message: dict) -> str:
    """Serialize one message as a single line of compact JSON."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":"))
