"""
Command line entry point: ``qbittorrent-mcp``.
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from . import __version__
from .app import run_app
from .config import ConfigError, load_config
from .mcp.logger import get_logger, setup_logging
from .mcp.utils.config import SERVER_MODES

logger = get_logger("qbitmcp-cli")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qbittorrent-mcp",
        description="MCP server for the qBittorrent Web UI",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Path to a TOML or JSON config file")
    parser.add_argument("--qbittorrent-host", dest="qbittorrent_host")
    parser.add_argument("--qbittorrent-port", dest="qbittorrent_port", type=int)
    parser.add_argument("--qbittorrent-username", dest="qbittorrent_username")
    parser.add_argument("--qbittorrent-password", dest="qbittorrent_password")
    parser.add_argument("--server-mode", dest="server_mode", choices=SERVER_MODES)
    parser.add_argument(
        "--lazy",
        dest="lazy_mode",
        action="store_true",
        default=None,
        help="Start with the restricted tool set until show_all_tools is called",
    )
    parser.add_argument(
        "--no-verify-ssl",
        dest="no_verify_ssl",
        action="store_true",
        default=None,
        help="Skip TLS certificate verification for https instances",
    )
    parser.add_argument("--http-host", dest="http_host")
    parser.add_argument("--http-port", dest="http_port", type=int)
    parser.add_argument("--http-auth-token", dest="http_auth_token")
    parser.add_argument("--log-level", dest="log_level")
    parser.add_argument(
        "--debug", action="store_true", help="Shortcut for --log-level debug"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {k: v for k, v in vars(args).items() if k not in ("config", "debug")}
    if args.debug:
        overrides["log_level"] = "debug"

    try:
        config = load_config(args.config, overrides)
        setup_logging(config.log_level, config.log_file, config.log_rotate)
    except ValueError as e:  # ConfigError or an unknown log level
        print(f"qbittorrent-mcp: configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        asyncio.run(run_app(config))
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    return EXIT_OK
