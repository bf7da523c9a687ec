"""
Application wiring: configuration -> backend clients -> MCPServer -> transport.
"""

from typing import Dict, List, Optional, TextIO

from . import __version__
from .client import BackendError, QBitClient
from .config import AppConfig, ConfigError, InstanceConfig
from .mcp.core import MCPServer
from .mcp.events import TorrentEventPoller
from .mcp.logger import get_logger
from .mcp.prompts import register_prompts
from .mcp.resources import register_resources
from .mcp.tools import register_tools
from .mcp.transport import HttpServer, StdioTransport
from .mcp.utils.config import SERVER_NAME, validate_config

logger = get_logger("qbitmcp-app")


def build_clients(config: AppConfig) -> Dict[str, QBitClient]:
    """Create one QBitClient per configured instance, in configuration order."""
    clients: Dict[str, QBitClient] = {}
    for inst in config.get_instances():
        if not inst.host.strip():
            continue
        logger.info("Initializing client '%s' at %s", inst.name, inst.base_url)
        clients[inst.name] = QBitClient(
            inst.base_url,
            username=inst.username,
            password=inst.password,
            verify_ssl=config.verify_ssl_for(inst),
        )
    return clients


async def login_all(clients: Dict[str, QBitClient], instances: List[InstanceConfig]) -> None:
    """Log in to every instance that has credentials; failures are logged, not fatal."""
    for inst in instances:
        client = clients.get(inst.name)
        if client is None or inst.username is None:
            continue
        try:
            await client.login()
        except BackendError as e:
            logger.error("Failed to login to qBittorrent instance '%s': %s", inst.name, e)
        else:
            logger.info("Logged in to qBittorrent instance '%s' successfully", inst.name)


async def run_app(
    config: AppConfig,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> None:
    """
    Run the server until the transport finishes.

    The stdio transport finishes at end of input; the HTTP transport on
    shutdown (signal).

    Raises:
        ConfigError: Configuration failed validation
    """
    result = validate_config(config)
    for warning in result.warnings:
        logger.warning("Config: %s", warning)
    if not result:
        raise ConfigError("; ".join(result.errors))

    logger.info(
        "Starting qBittorrent MCP Server in %s mode (lazy: %s)",
        config.server_mode,
        config.lazy_mode,
    )

    clients = build_clients(config)
    if not clients:
        raise ConfigError("No qBittorrent instances configured")

    server = MCPServer(SERVER_NAME, clients, lazy_mode=config.lazy_mode, version=__version__)
    register_tools()
    register_resources()
    register_prompts()

    poller = None
    try:
        await login_all(clients, config.get_instances())

        if config.polling_interval_ms > 0:
            poller = TorrentEventPoller(server, config.polling_interval_ms / 1000)
            poller.start()

        if config.server_mode == "http":
            http_server = HttpServer(
                server,
                config.http_host,
                config.http_port,
                auth_token=config.http_auth_token,
                log_level=config.log_level,
            )
            await http_server.serve()
        else:
            await StdioTransport(server, stdin, stdout).run()
    finally:
        if poller is not None:
            await poller.stop()
        await server.aclose()
        logger.info("Shutting down qBittorrent MCP Server")
