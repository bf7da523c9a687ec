"""
Configuration validation utilities.

Validates server configuration before startup to prevent runtime issues.
Provides centralized configuration constants for the MCP server.
"""

import socket
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from ...config import AppConfig

# =============================================================================
# CENTRALIZED CONFIGURATION CONSTANTS
# =============================================================================

# Protocol identity
SERVER_NAME = "qbittorrent-mcp"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

# Server defaults
DEFAULT_HTTP_HOST = "0.0.0.0"
DEFAULT_HTTP_PORT = 3000
MIN_AUTH_TOKEN_LENGTH = 16
SERVER_MODES = ("stdio", "http")

# Timeout settings (in seconds)
BACKEND_TIMEOUT: float = 30.0  # Per-request timeout against the qBittorrent Web UI
GRACEFUL_SHUTDOWN_TIMEOUT: float = 1.5

# Queue limits
SSE_QUEUE_SIZE = 500  # Pending notifications per SSE session before the oldest is dropped

# Output limits
OUTPUT_SIZE_LIMIT: int = 2 * 1024 * 1024  # 2MB tool output limit

# Polling intervals (in seconds)
SSE_PING_INTERVAL: int = 15  # Keep-alive comment on idle SSE streams
NOTIFICATION_FLUSH_INTERVAL: float = 0.1  # Idle drain of server events (stdio + SSE)

# search_torrents: poll the job this many times, this far apart
SEARCH_POLL_INTERVAL: float = 1.0
SEARCH_POLL_ATTEMPTS: int = 5
SEARCH_TERMINAL_STATUS = "Stopped"

# wait_for_torrent_status
WAIT_POLL_INTERVAL: float = 2.0
WAIT_DEFAULT_TIMEOUT: int = 60
WAIT_MIN_TIMEOUT: int = 1
WAIT_MAX_TIMEOUT: int = 300


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: List[str]
    warnings: List[str]

    def __bool__(self):
        return self.valid


def validate_port(
    port: int, host: str, check_available: bool = False
) -> Tuple[bool, Optional[str]]:
    """
    Validate port number and optionally check availability.

    Args:
        port: Port number to validate
        host: Host to check port on
        check_available: Also try to bind the port

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(port, int) or isinstance(port, bool):
        return False, f"Port must be integer, got {type(port).__name__}"

    if port < 1 or port > 65535:
        return False, f"Port {port} is outside the valid range (1-65535)"

    if not check_available:
        return True, None

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.settimeout(0.1)
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
    except OSError as e:
        errno_val = getattr(e, "errno", None)
        if errno_val in (98, 48, 10048):  # Address already in use (Linux/macOS/Windows)
            return False, f"Port {port} is already in use"
        return False, f"Port {port} unavailable: {e}"

    return True, None


def validate_config(
    config: "AppConfig", check_port_available: bool = False
) -> ConfigValidationResult:
    """
    Validate complete server configuration.

    Args:
        config: Loaded application configuration
        check_port_available: Try binding the HTTP port (HTTP mode only)

    Returns:
        ConfigValidationResult with validation status, errors, and warnings
    """
    errors = []
    warnings = []

    if config.server_mode not in SERVER_MODES:
        errors.append(
            f"Unknown server mode '{config.server_mode}' (expected one of: {', '.join(SERVER_MODES)})"
        )

    if not config.get_instances():
        errors.append("No qBittorrent instances configured")

    names = [inst.name for inst in config.instances]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        errors.append(f"Duplicate instance names: {', '.join(duplicates)}")

    if config.server_mode == "http":
        _port_ok, port_err = validate_port(
            config.http_port, config.http_host, check_available=check_port_available
        )
        if port_err:
            errors.append(port_err)

        token = config.http_auth_token
        if not token:
            if config.http_host == "0.0.0.0":
                warnings.append(
                    "HTTP transport listens on 0.0.0.0 without an auth token - "
                    "anyone on the network can control qBittorrent"
                )
            else:
                warnings.append(
                    "Authentication disabled - server accessible without credentials"
                )
        elif len(token) < MIN_AUTH_TOKEN_LENGTH:
            warnings.append(
                f"Token length ({len(token)} chars) is short - recommend 32+ characters"
            )

    if config.polling_interval_ms and 0 < config.polling_interval_ms < 500:
        warnings.append(
            f"polling_interval_ms={config.polling_interval_ms} will poll qBittorrent very frequently"
        )

    return ConfigValidationResult(
        valid=len(errors) == 0, errors=errors, warnings=warnings
    )
