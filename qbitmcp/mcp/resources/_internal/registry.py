"""
Resources Registry - Decorators and storage for MCP resources.

Provides @resource (one resource per configured instance) and
@resource_template (a URI template addressing a single torrent).
"""

import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Set

# Import directly from submodules to avoid circular import through mcp/__init__.py
from ...logger import get_logger
from ...utils import validators as utils

logger = get_logger("qbitmcp-resources-registry")

URI_SCHEME = "qbittorrent://"
MIME_TYPE = "application/json"

_KEY_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass
class ResourceRegistration:
    """
    Instance resource entry.

    Listed once per instance as qbittorrent://{instance}/{key}; also readable
    through the instance-less legacy URI qbittorrent://{key}.
    """

    key: str
    handler: Callable[..., Awaitable[Any]]  # async (client) -> JSON-serializable
    name: str  # format string with {instance}
    description: str  # format string with {instance}

    def uri_for(self, instance: str) -> str:
        return f"{URI_SCHEME}{instance}/{self.key}"

    @property
    def legacy_uri(self) -> str:
        return f"{URI_SCHEME}{self.key}"

    @property
    def pattern(self) -> re.Pattern:
        return re.compile(rf"^{re.escape(URI_SCHEME)}([^/]+)/{self.key}$")


@dataclass
class ResourceTemplateRegistration:
    """Per-torrent template entry: qbittorrent://{instance}/torrent/{hash}/{key}."""

    key: str
    handler: Callable[..., Awaitable[Any]]  # async (client, torrent_hash) -> JSON-serializable
    name: str
    description: str

    @property
    def uri_template(self) -> str:
        return f"{URI_SCHEME}{{instance}}/torrent/{{hash}}/{self.key}"

    @property
    def pattern(self) -> re.Pattern:
        return re.compile(rf"^{re.escape(URI_SCHEME)}([^/]+)/torrent/([^/]+)/{self.key}$")


# Internal registries populated by the decorators
_resource_registry: List[ResourceRegistration] = []
_template_registry: List[ResourceTemplateRegistration] = []
_registered_keys: Set[str] = set()  # Track keys to prevent duplicates


def _accept(func: Any, decorator_name: str, key: str) -> bool:
    is_valid = (
        utils.validate_callable(func, decorator_name, logger)
        and utils.validate_has_name(func, decorator_name, logger)
        and utils.validate_coroutine(func, decorator_name, logger)
    )
    if not is_valid:
        return False
    if not _KEY_PATTERN.match(key):
        logger.error("@%s key '%s' is not a valid URI segment", decorator_name, key)
        return False

    registry_key = f"{decorator_name}:{key}"
    if registry_key in _registered_keys:
        logger.error(
            "Resource '%s' is already registered. "
            "The duplicate registration will be ignored.",
            key,
        )
        return False
    _registered_keys.add(registry_key)
    return True


def resource(key: str, name: str, description: str) -> Callable:
    """
    Decorator to register an instance resource.

    The handler receives the instance's QBitClient and returns data that is
    rendered as pretty-printed JSON.

    Example:
        @resource(
            "categories",
            name="Categories ({instance})",
            description="All defined categories on instance: {instance}",
        )
        async def categories(client):
            return await client.get_categories()
    """

    def decorator(func):
        if _accept(func, "resource", key):
            _resource_registry.append(
                ResourceRegistration(key=key, handler=func, name=name, description=description)
            )
            logger.debug("Registered resource: %s{instance}/%s", URI_SCHEME, key)
        return func

    return decorator


def resource_template(key: str, name: str, description: str) -> Callable:
    """
    Decorator to register a per-torrent resource template.

    The handler receives the instance's QBitClient and the torrent hash.
    """

    def decorator(func):
        if _accept(func, "resource_template", key):
            _template_registry.append(
                ResourceTemplateRegistration(key=key, handler=func, name=name, description=description)
            )
            logger.debug("Registered resource template: %s", key)
        return func

    return decorator


def iter_resources() -> List[ResourceRegistration]:
    """Return a snapshot of all registered instance resources."""
    return list(_resource_registry)


def iter_resource_templates() -> List[ResourceTemplateRegistration]:
    """Return a snapshot of all registered resource templates."""
    return list(_template_registry)


def clear_registry() -> None:
    """Clear all registered resources and templates. Used for testing."""
    _resource_registry.clear()
    _template_registry.clear()
    _registered_keys.clear()
    logger.debug("Resource registry cleared")


__all__ = [
    "resource",
    "resource_template",
    "iter_resources",
    "iter_resource_templates",
    "clear_registry",
    "ResourceRegistration",
    "ResourceTemplateRegistration",
    "URI_SCHEME",
    "MIME_TYPE",
]
