"""
Centralized logging configuration for the qBittorrent MCP server.

Provides structured logging with request context, correlation IDs, and timing utilities.
All handlers write to stderr (or a log file): stdout belongs to the stdio transport.
"""

import logging
import logging.handlers
import sys
import time
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

# Context variable for request ID (async/thread-safe)
_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

LOG_FORMAT = "%(asctime)s [%(request_id)s] %(name)s %(levelname)s: %(message)s"

# log_rotate setting -> TimedRotatingFileHandler "when"
_ROTATION_WHEN = {"daily": "midnight", "hourly": "H"}


class RequestContextFilter(logging.Filter):
    """Add request context to log records."""

    def filter(self, record):
        req_id = _request_id.get()
        record.request_id = req_id[:8] if req_id else "-"
        return True


def parse_level(level) -> int:
    """Accept either a logging constant or a name such as "info"."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def _build_file_handler(log_file: Path, rotate: str) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    when = _ROTATION_WHEN.get(rotate.lower())
    if when is None:
        return logging.FileHandler(log_file, encoding="utf-8")
    return logging.handlers.TimedRotatingFileHandler(
        log_file, when=when, backupCount=7, encoding="utf-8"
    )


def setup_logging(
    level=logging.WARNING,
    log_file: Optional[Path] = None,
    rotate: str = "daily",
):
    """
    Configure logging for the server with request context.

    Args:
        level: Logging level or level name (default: logging.WARNING)
        log_file: Optional file to mirror log output into
        rotate: "daily", "hourly" or "never" (only used with log_file)
    """
    level = parse_level(level)

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    context_filter = RequestContextFilter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        handlers.append(_build_file_handler(Path(log_file), rotate))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    # httpx logs every backend request at INFO; keep it quiet unless debugging
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Logger name (e.g., "qbitmcp-http", "qbitmcp-handlers")

    Returns:
        Logger instance with the specified name
    """
    return logging.getLogger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the current request ID for logging context.

    Args:
        request_id: Request ID to set, or None to generate new one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    _request_id.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get the current request ID."""
    return _request_id.get()


def clear_request_id():
    """Clear the current request ID."""
    _request_id.set(None)


class RequestTimer:
    """
    Context manager for timing operations with automatic logging.

    Usage:
        with RequestTimer(logger, "tool/list_torrents"):
            # ... operation ...
    """

    def __init__(self, logger: logging.Logger, operation: str, log_start: bool = False):
        """
        Args:
            logger: Logger instance
            operation: Description of operation being timed
            log_start: Whether to log when operation starts (default: False)
        """
        self.logger = logger
        self.operation = operation
        self.log_start = log_start
        self.start_time: float | None = None
        self.duration_ms: float | None = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        if self.log_start:
            self.logger.debug("Starting: %s", self.operation)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return False
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type:
            self.logger.warning(
                "%s failed after %.2fms: %s: %s",
                self.operation,
                self.duration_ms,
                exc_type.__name__,
                exc_val,
            )
        else:
            self.logger.debug(
                "%s completed in %.2fms", self.operation, self.duration_ms
            )

        return False  # Don't suppress exceptions
