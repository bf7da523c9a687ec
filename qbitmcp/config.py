"""
Application configuration.

Settings are layered, later sources winning:
defaults -> config file (TOML or JSON) -> environment variables -> CLI overrides.
"""

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

from .mcp.logger import get_logger
from .mcp.utils.config import DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT

logger = get_logger("qbitmcp-config")

DEFAULT_CONFIG_FILES = ("config.toml", "config.json")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Raised for unreadable config files or values of the wrong type."""


@dataclass
class InstanceConfig:
    """One qBittorrent Web UI the server can talk to."""

    name: str
    host: str
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None
    no_verify_ssl: Optional[bool] = None

    @property
    def base_url(self) -> str:
        if self.host.startswith(("http://", "https://")):
            url = self.host.rstrip("/")
            return f"{url}:{self.port}" if self.port else url
        return f"http://{self.host}:{self.port or 80}"


@dataclass
class AppConfig:
    instances: List[InstanceConfig] = field(default_factory=list)
    qbittorrent_host: str = "localhost"
    qbittorrent_port: int = 8080
    qbittorrent_username: Optional[str] = None
    qbittorrent_password: Optional[str] = None
    server_mode: str = "stdio"
    lazy_mode: bool = False
    no_verify_ssl: bool = False
    log_level: str = "info"
    log_file_enable: bool = False
    log_dir: str = "."
    log_filename: str = "qbitmcp.log"
    log_rotate: str = "daily"
    http_host: str = DEFAULT_HTTP_HOST
    http_port: int = DEFAULT_HTTP_PORT
    http_auth_token: Optional[str] = None
    polling_interval_ms: int = 2000

    def get_instances(self) -> List[InstanceConfig]:
        """Configured instances, or a single "default" one built from qbittorrent_*."""
        if self.instances:
            return list(self.instances)
        if not self.qbittorrent_host:
            return []
        return [
            InstanceConfig(
                name="default",
                host=self.qbittorrent_host,
                port=self.qbittorrent_port,
                username=self.qbittorrent_username,
                password=self.qbittorrent_password,
                no_verify_ssl=self.no_verify_ssl,
            )
        ]

    def verify_ssl_for(self, instance: InstanceConfig) -> bool:
        no_verify = self.no_verify_ssl if instance.no_verify_ssl is None else instance.no_verify_ssl
        return not no_verify

    @property
    def log_file(self) -> Optional[Path]:
        if not self.log_file_enable:
            return None
        return Path(self.log_dir) / self.log_filename


# Field name -> expected scalar type, for coercing file/env/CLI values
_FIELD_TYPES = {
    "qbittorrent_host": str,
    "qbittorrent_port": int,
    "qbittorrent_username": str,
    "qbittorrent_password": str,
    "server_mode": str,
    "lazy_mode": bool,
    "no_verify_ssl": bool,
    "log_level": str,
    "log_file_enable": bool,
    "log_dir": str,
    "log_filename": str,
    "log_rotate": str,
    "http_host": str,
    "http_port": int,
    "http_auth_token": str,
    "polling_interval_ms": int,
}

_OPTIONAL_FIELDS = {"qbittorrent_username", "qbittorrent_password", "http_auth_token"}


def _coerce(name: str, value: Any, expected: type) -> Any:
    if value is None:
        if name in _OPTIONAL_FIELDS:
            return None
        raise ConfigError(f"{name} must not be empty")

    if expected is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigError(f"{name} must be a boolean, got {value!r}")

    if expected is int:
        if isinstance(value, bool):
            raise ConfigError(f"{name} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{name} must be an integer, got {value!r}") from e

    if isinstance(value, (dict, list)):
        raise ConfigError(f"{name} must be a string, got {type(value).__name__}")
    return str(value)


def _parse_instance(raw: Any, index: int) -> InstanceConfig:
    if not isinstance(raw, dict):
        raise ConfigError(f"instances[{index}] must be a table/object")
    name = raw.get("name")
    host = raw.get("host")
    if not name or not host:
        raise ConfigError(f"instances[{index}] needs both 'name' and 'host'")

    port = raw.get("port")
    no_verify = raw.get("no_verify_ssl")
    return InstanceConfig(
        name=str(name),
        host=str(host),
        port=_coerce("port", port, int) if port is not None else None,
        username=raw.get("username"),
        password=raw.get("password"),
        no_verify_ssl=_coerce("no_verify_ssl", no_verify, bool) if no_verify is not None else None,
    )


def _read_file(path: Path) -> dict:
    try:
        if path.suffix.lower() == ".toml":
            with path.open("rb") as f:
                data = tomllib.load(f)
        else:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a table/object at the top level")
    return data


def _find_config_file(path: Optional[os.PathLike]) -> Optional[Path]:
    if path is not None:
        explicit = Path(path)
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    for candidate in DEFAULT_CONFIG_FILES:
        found = Path.cwd() / candidate
        if found.is_file():
            return found
    return None


def _apply(config: AppConfig, values: Mapping[str, Any], source: str) -> None:
    for name, value in values.items():
        if name == "instances":
            if not isinstance(value, list):
                raise ConfigError(f"{source}: 'instances' must be a list")
            config.instances = [_parse_instance(raw, i) for i, raw in enumerate(value)]
            continue
        expected = _FIELD_TYPES.get(name)
        if expected is None:
            logger.warning("%s: ignoring unknown setting '%s'", source, name)
            continue
        setattr(config, name, _coerce(name, value, expected))


def _from_environ(environ: Mapping[str, str]) -> dict:
    values = {}
    for name in _FIELD_TYPES:
        key = name.upper()
        if key in environ:
            values[name] = environ[key]
    return values


def load_config(
    path: Optional[os.PathLike] = None,
    argv: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """
    Build the effective configuration.

    Args:
        path: Explicit config file (must exist). Without it, config.toml or
            config.json in the working directory is used if present.
        argv: CLI overrides keyed by field name; None values are ignored
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: Unreadable file or invalid value
    """
    config = AppConfig()

    config_file = _find_config_file(path)
    if config_file is not None:
        logger.debug("Loading config file %s", config_file)
        _apply(config, _read_file(config_file), str(config_file))

    env = os.environ if environ is None else environ
    _apply(config, _from_environ(env), "environment")

    if argv:
        overrides = {k: v for k, v in argv.items() if v is not None}
        _apply(config, overrides, "command line")

    return config


__all__ = ["AppConfig", "InstanceConfig", "ConfigError", "load_config"]