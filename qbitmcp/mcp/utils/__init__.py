"""
MCP Utilities

Shared utility functions and helpers.
"""

from .config import (
    DEFAULT_HTTP_HOST,
    DEFAULT_HTTP_PORT,
    DEFAULT_PROTOCOL_VERSION,
    OUTPUT_SIZE_LIMIT,
    SERVER_NAME,
    SSE_PING_INTERVAL,
    SSE_QUEUE_SIZE,
    SUPPORTED_PROTOCOL_VERSIONS,
    ConfigValidationResult,
    validate_config,
    validate_port,
)
from .validators import (
    check_docstring,
    validate_callable,
    validate_coroutine,
    validate_has_name,
    validate_properties,
)

__all__ = [
    # Decorator validators
    "validate_callable",
    "validate_has_name",
    "validate_coroutine",
    "validate_properties",
    "check_docstring",
    # Config validation
    "validate_config",
    "validate_port",
    "ConfigValidationResult",
    # Configuration constants
    "SERVER_NAME",
    "DEFAULT_PROTOCOL_VERSION",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "DEFAULT_HTTP_HOST",
    "DEFAULT_HTTP_PORT",
    "SSE_QUEUE_SIZE",
    "SSE_PING_INTERVAL",
    "OUTPUT_SIZE_LIMIT",
]
