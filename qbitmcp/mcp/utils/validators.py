"""
Shared validation utilities for decorators.

Provides common validation functions used by the @tool and @prompt decorators.
All validators return True if valid, False if invalid (with logging).
"""

import inspect
import logging
from typing import Any, Callable

# JSON Schema primitive types accepted in tool input schemas
SCHEMA_TYPES = frozenset(
    {"string", "integer", "number", "boolean", "object", "array", "null"}
)


def validate_callable(func: Any, decorator_name: str, logger: logging.Logger) -> bool:
    """
    Validate that the decorated object is callable.

    Args:
        func: Object to validate
        decorator_name: Name of decorator for error message
        logger: Logger instance for errors

    Returns:
        True if valid, False otherwise
    """
    if not callable(func):
        logger.error(
            "@%s decorator can only be applied to functions, got %s",
            decorator_name,
            type(func).__name__,
        )
        return False
    return True


def validate_has_name(
    func: Callable, decorator_name: str, logger: logging.Logger
) -> bool:
    """
    Validate that function has __name__ attribute.

    Args:
        func: Function to validate
        decorator_name: Name of decorator for error message
        logger: Logger instance for errors

    Returns:
        True if valid, False otherwise
    """
    if not hasattr(func, "__name__"):
        logger.error(
            "@%s decorator requires function to have __name__ attribute", decorator_name
        )
        return False
    return True


def validate_coroutine(
    func: Callable, decorator_name: str, logger: logging.Logger
) -> bool:
    """Tool handlers are awaited by the router, so they must be `async def`."""
    if not inspect.iscoroutinefunction(func):
        logger.error(
            "@%s handler '%s' must be an async function",
            decorator_name,
            getattr(func, "__name__", func),
        )
        return False
    return True


def check_docstring(func: Callable, logger: logging.Logger) -> bool:
    """
    Check if function has docstring, warn if missing.

    Returns:
        True (always - this is just a warning, not a validation failure)
    """
    if not func.__doc__:
        logger.warning(
            "'%s' has no docstring - description will be empty", func.__name__
        )
    return True


def validate_properties(
    name: str, properties: dict, required: list, logger: logging.Logger
) -> bool:
    """
    Validate a tool's argument schema.

    Every property needs a known JSON Schema "type", and every required
    argument must be declared as a property.

    Args:
        name: Tool name (for error messages)
        properties: Mapping of argument name to JSON Schema fragment
        required: Names of required arguments
        logger: Logger instance for errors

    Returns:
        True if valid, False otherwise
    """
    for prop_name, prop_schema in properties.items():
        prop_type = prop_schema.get("type") if isinstance(prop_schema, dict) else None
        if prop_type not in SCHEMA_TYPES:
            logger.error(
                "Tool '%s' argument '%s' has invalid schema type: %r",
                name,
                prop_name,
                prop_type,
            )
            return False

    missing = [arg for arg in required if arg not in properties]
    if missing:
        logger.error(
            "Tool '%s' requires undeclared argument(s): %s", name, ", ".join(missing)
        )
        return False
    return True
