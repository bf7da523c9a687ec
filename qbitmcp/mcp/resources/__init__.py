"""
MCP Resources - Dynamic resource discovery system
"""

from ..logger import get_logger
from . import instance, torrent  # noqa: F401
from ._internal.registry import iter_resource_templates, iter_resources

logger = get_logger("qbitmcp-resources")


def register_resources() -> int:
    """
    Initialize resources system.

    Resources are already imported and registered via decorators.
    This function just logs the initialization.
    """
    resources = iter_resources()
    templates = iter_resource_templates()
    logger.info(
        "Resources system ready - %d resource(s), %d template(s) available",
        len(resources),
        len(templates),
    )
    return len(resources) + len(templates)


# Public API
__all__ = [
    "register_resources",
    "iter_resources",
    "iter_resource_templates",
]
