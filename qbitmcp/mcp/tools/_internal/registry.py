"""
Tools Registry - Decorator and storage for MCP tools.

Provides @tool decorator and registry for tool discovery.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

# Import directly from submodules to avoid circular import through mcp/__init__.py
from ...logger import get_logger
from ...utils import validators as utils

logger = get_logger("qbitmcp-tools-registry")

CATEGORIES = ("torrent", "search", "transfer", "rss", "app")

ToolHandler = Callable[..., Awaitable[Any]]


@dataclass
class ToolRegistration:
    """Tool registration entry."""

    name: str
    handler: ToolHandler
    category: str
    description: str
    properties: Dict[str, dict] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)
    restricted: bool = False  # visible before show_all_tools is called
    targets_instance: bool = True  # accepts the injected "instance" argument

    @property
    def input_schema(self) -> dict:
        schema = {"type": "object", "properties": dict(self.properties)}
        if self.required:
            schema["required"] = list(self.required)
        return schema


# Internal registry populated by @tool decorator
_tool_registry: List[ToolRegistration] = []
# Track registered tool names to detect duplicates
_registered_tool_names: Set[str] = set()


def tool(
    category: str,
    description: Optional[str] = None,
    properties: Optional[Dict[str, dict]] = None,
    required: Optional[List[str]] = None,
    restricted: bool = False,
    name: Optional[str] = None,
    targets_instance: bool = True,
) -> Callable[[ToolHandler], ToolHandler]:
    """
    Decorator to register an async MCP tool.

    The argument schema is declared explicitly and is what clients see in
    tools/list. Handlers are called as ``await handler(ctx, args)`` where
    ``ctx`` is a ToolContext and ``args`` a ToolArguments wrapper.

    Args:
        category: One of CATEGORIES
        description: Tool description (defaults to the docstring)
        properties: JSON Schema properties of the arguments object
        required: Names of required arguments
        restricted: Also visible in lazy mode before show_all_tools
        name: Tool name (defaults to the function name)
        targets_instance: Whether the "instance" argument is injected

    Returns:
        Decorator returning the function unmodified

    Example:
        @tool(
            category="torrent",
            description="Get files of a torrent",
            properties={"hash": {"type": "string"}},
            required=["hash"],
        )
        async def get_torrent_files(ctx: ToolContext, args: ToolArguments) -> str:
            files = await ctx.client.get_torrent_files(args.require_str("hash"))
            return json.dumps(files, indent=2)
    """
    props = dict(properties or {})
    req = list(required or [])

    def decorator(func: ToolHandler) -> ToolHandler:
        is_valid = (
            utils.validate_callable(func, "tool", logger)
            and utils.validate_has_name(func, "tool", logger)
            and utils.validate_coroutine(func, "tool", logger)
        )
        if is_valid and description is None:
            utils.check_docstring(func, logger)

        tool_name = name or getattr(func, "__name__", "")
        if is_valid and category not in CATEGORIES:
            logger.error("Tool '%s' has unknown category '%s'", tool_name, category)
            is_valid = False
        if is_valid:
            is_valid = utils.validate_properties(tool_name, props, req, logger)

        if not is_valid:
            return func

        if tool_name in _registered_tool_names:
            logger.error(
                "Tool name '%s' is already registered. "
                "Each tool must have a unique name. "
                "The duplicate registration will be ignored.",
                tool_name,
            )
            return func

        _tool_registry.append(
            ToolRegistration(
                name=tool_name,
                handler=func,
                category=category,
                description=description or (func.__doc__ or "").strip(),
                properties=props,
                required=req,
                restricted=restricted,
                targets_instance=targets_instance,
            )
        )
        _registered_tool_names.add(tool_name)
        logger.debug("Registered tool: %s (%s)", tool_name, category)
        return func

    return decorator


def iter_tools() -> List[ToolRegistration]:
    """Return a snapshot of all registered tools."""
    return list(_tool_registry)


def clear_registry() -> None:
    """Clear all registered tools. Used for testing."""
    _tool_registry.clear()
    _registered_tool_names.clear()
    logger.debug("Tool registry cleared")


__all__ = ["tool", "iter_tools", "clear_registry", "ToolRegistration", "CATEGORIES"]
