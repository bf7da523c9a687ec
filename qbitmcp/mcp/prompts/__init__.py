"""
MCP Prompts - Dynamic prompt discovery system
"""

from ..logger import get_logger
from . import troubleshooting  # noqa: F401
from ._internal.registry import iter_prompts

logger = get_logger("qbitmcp-prompts")


def register_prompts() -> int:
    """
    Initialize prompts system.

    Prompts are already imported and registered via decorators.
    This function just logs the initialization.
    """
    prompts = list(iter_prompts())
    logger.info("Prompts system ready - %d prompt(s) available", len(prompts))

    # Debug: log each prompt
    for p in prompts:
        logger.debug(
            "  Registered prompt: %s (handler: %s)", p.name, p.handler.__name__
        )
    return len(prompts)


# Public API
__all__ = [
    "register_prompts",
    "iter_prompts",
]
