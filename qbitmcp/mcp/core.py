"""
MCP Server Core

Holds the tool, resource and prompt tables synced from the decorator
registries, routes calls to the qBittorrent instance they target, and owns
the shared visibility state and server event queue.
"""

import copy
import json
from typing import Dict, List, Optional, Tuple, Union

from .errors import InternalError, InvalidParamsError, MethodNotFoundError
from .logger import get_logger
from .state import NotificationQueue, Visibility, VisibilityState
from .tools._internal.arguments import ToolArguments, ToolResult
from .tools._internal.context import ToolContext

# Get logger for this module
logger = get_logger("qbitmcp-core")

DEFAULT_INSTANCE = "default"

INSTANCE_PROPERTY = {
    "type": "string",
    "description": "Optional: Name of the qBittorrent instance to target",
}


class MCPServer:
    """
    MCP server shared by every transport and session.

    Uses cached registries for fast lookups, synced from decorator registries.
    ``clients`` maps instance names to QBitClient objects.
    """

    def __init__(self, name: str, clients: Dict, lazy_mode: bool = False, version: str = ""):
        self.name = name
        self.version = version
        self.clients = dict(clients)
        self.visibility = VisibilityState(lazy_mode=lazy_mode)
        self.events = NotificationQueue()
        self._tool_cache = {}  # Cached for fast lookup
        self._prompt_cache = {}  # Cached for fast lookup
        self.sync_tools()
        self.sync_prompts()

    def sync_tools(self):
        """Sync tool cache from decorator registry."""
        from .tools._internal.registry import iter_tools

        self._tool_cache.clear()
        for reg in iter_tools():
            self._tool_cache[reg.name] = reg
        logger.debug("Synced %d tool(s)", len(self._tool_cache))

    def sync_prompts(self):
        """Sync prompt cache from decorator registry."""
        from .prompts._internal.registry import iter_prompts

        self._prompt_cache.clear()
        for reg in iter_prompts():
            self._prompt_cache[reg.name] = reg
            logger.debug("  Synced prompt: %s", reg.name)

    # ------------------------------------------------------------------
    # Instance routing
    # ------------------------------------------------------------------

    @property
    def instance_names(self) -> List[str]:
        return list(self.clients)

    def get_client(self, instance: Optional[str] = None) -> Tuple[str, object]:
        """
        Resolve an instance name to (name, client).

        None selects the instance named "default" if there is one, else the
        first configured instance.

        Raises:
            InvalidParamsError: Unknown instance name
            InternalError: No instance is configured at all
        """
        if instance is None:
            if not self.clients:
                raise InternalError("No instances configured")
            if DEFAULT_INSTANCE in self.clients:
                instance = DEFAULT_INSTANCE
            else:
                instance = next(iter(self.clients))
            return instance, self.clients[instance]

        client = self.clients.get(instance)
        if client is None:
            raise InvalidParamsError(f"Instance not found: {instance}")
        return instance, client

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def list_tools(self) -> list[dict]:
        """
        List the tools visible under the current visibility state.

        Restricted visibility lists only tools registered with restricted=True.
        Every instance-targeting tool gets the optional "instance" property.
        """
        restricted = self.visibility.visibility is Visibility.RESTRICTED
        tools = []
        for reg in self._tool_cache.values():
            if restricted and not reg.restricted:
                continue
            schema = copy.deepcopy(reg.input_schema)
            if reg.targets_instance:
                schema["properties"]["instance"] = dict(INSTANCE_PROPERTY)
            tools.append(
                {
                    "name": reg.name,
                    "description": reg.description,
                    "inputSchema": schema,
                }
            )
        return tools

    async def call_tool(self, tool_name: str, arguments: dict) -> Union[str, ToolResult]:
        """
        Execute a tool against the instance named by arguments["instance"].

        Hidden tools stay callable while the restricted set is listed.

        Args:
            tool_name: Name of tool to execute
            arguments: Tool arguments

        Returns:
            Tool output text, or a ToolResult carrying an error flag
        """
        reg = self._tool_cache.get(tool_name)
        if reg is None:
            raise MethodNotFoundError(f"Tool not found: {tool_name}")

        for required in reg.required:
            if arguments.get(required) is None:
                raise InvalidParamsError(f"Missing required argument: {required}")

        args = ToolArguments(arguments)
        if reg.targets_instance:
            instance, client = self.get_client(args.get_str("instance"))
            ctx = ToolContext(self, client=client, instance=instance)
        else:
            ctx = ToolContext(self)

        logger.debug("Calling tool %s (instance=%s)", tool_name, ctx.instance)
        return await reg.handler(ctx, args)

    def consume_tools_changed(self) -> bool:
        """Check-and-clear the one-shot tools/list_changed flag."""
        return self.visibility.consume_notification()

    def drain_notifications(self) -> list[dict]:
        """Take every queued server event, oldest first."""
        return self.events.drain()

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    def list_resources(self) -> list[dict]:
        """List every instance resource once per configured instance."""
        from .resources._internal.registry import MIME_TYPE, iter_resources

        resources = []
        for instance in self.clients:
            for reg in iter_resources():
                resources.append(
                    {
                        "uri": reg.uri_for(instance),
                        "name": reg.name.format(instance=instance),
                        "description": reg.description.format(instance=instance),
                        "mimeType": MIME_TYPE,
                    }
                )
        return resources

    def list_resource_templates(self) -> list[dict]:
        from .resources._internal.registry import MIME_TYPE, iter_resource_templates

        return [
            {
                "uriTemplate": reg.uri_template,
                "name": reg.name,
                "description": reg.description,
                "mimeType": MIME_TYPE,
            }
            for reg in iter_resource_templates()
        ]

    async def read_resource(self, uri: str) -> dict:
        """
        Read a resource URI and return one MCP content entry.

        Accepts qbittorrent://{instance}/{key}, the per-torrent template URIs
        and the legacy qbittorrent://{key} form (default instance).

        Raises:
            MethodNotFoundError: URI matches no resource
            InvalidParamsError: URI names an unknown instance
        """
        from .resources._internal.registry import (
            MIME_TYPE,
            iter_resource_templates,
            iter_resources,
        )

        data = None
        matched = False
        for reg in iter_resources():
            if uri == reg.legacy_uri:
                _, client = self.get_client()
                data = await reg.handler(client)
                matched = True
                break
            match = reg.pattern.match(uri)
            if match:
                _, client = self.get_client(match.group(1))
                data = await reg.handler(client)
                matched = True
                break

        if not matched:
            for reg in iter_resource_templates():
                match = reg.pattern.match(uri)
                if match:
                    _, client = self.get_client(match.group(1))
                    data = await reg.handler(client, match.group(2))
                    matched = True
                    break

        if not matched:
            raise MethodNotFoundError(f"Resource not found: {uri}")

        return {
            "uri": uri,
            "mimeType": MIME_TYPE,
            "text": json.dumps(data, indent=2, ensure_ascii=False),
        }

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def list_prompts(self) -> list[dict]:
        return [reg.to_dict() for reg in self._prompt_cache.values()]

    def get_prompt(self, name: str, arguments: dict) -> dict:
        """
        Render a prompt.

        Returns:
            dict: Prompt result with description and messages
        """
        reg = self._prompt_cache.get(name)
        if reg is None:
            raise InvalidParamsError(f"Prompt not found: {name}")
        return reg.handler(arguments)

    async def aclose(self):
        """Close every backend client."""
        for instance, client in self.clients.items():
            logger.debug("Closing client for instance %s", instance)
            await client.aclose()
