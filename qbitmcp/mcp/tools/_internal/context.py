"""
Tool execution context.

Every tool call gets a fresh ToolContext carrying the server, the backend
client resolved from the "instance" argument, and that instance's name.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ....client import QBitClient
    from ...core import MCPServer


class ToolContext:
    """
    Context object handed to tool handlers as their first argument.

    Attributes:
        server: MCPServer handling the call (visibility state, other instances)
        client: QBitClient for the target instance (None for tools that
            do not target an instance, such as show_all_tools)
        instance: Name of the target instance
    """

    def __init__(
        self,
        server: "MCPServer",
        client: Optional["QBitClient"] = None,
        instance: Optional[str] = None,
    ):
        self.server = server
        self.client = client
        self.instance = instance

    def __repr__(self) -> str:
        return f"ToolContext(instance={self.instance!r})"
