"""
stdio MCP transport

Serves one peer over newline-delimited JSON-RPC on stdin/stdout.

Architecture:
- A reader task feeds lines from the input stream into an asyncio.Queue
  (file reads run in a worker thread via anyio.wrap_file)
- The main loop handles one request at a time and writes exactly one
  response line per request that carries an id
- Right after each response, an armed tools/list_changed flag is consumed
  and written as an extra line
- Queued server events are written after every response and every
  NOTIFICATION_FLUSH_INTERVAL while idle
- Lines that are not valid requests are logged and dropped
- End of input ends the loop cleanly
"""

import asyncio
import sys
from typing import Optional, TextIO

import anyio

from ..errors import McpError
from ..handlers import process_request
from ..logger import clear_request_id, get_logger, set_request_id
from ..protocol import TOOLS_LIST_CHANGED, encode, notification, parse_request
from ..utils import config

logger = get_logger("qbitmcp-stdio")

_EOF = None


class StdioTransport:
    """
    Line-oriented transport for a single MCP client.

    Args:
        mcp_server: MCPServer instance
        input_stream: Text stream to read requests from (default: sys.stdin)
        output_stream: Text stream to write responses to (default: sys.stdout)
    """

    def __init__(
        self,
        mcp_server,
        input_stream: Optional[TextIO] = None,
        output_stream: Optional[TextIO] = None,
    ):
        self.mcp_server = mcp_server
        self._input = anyio.wrap_file(input_stream or sys.stdin)
        self._output = anyio.wrap_file(output_stream or sys.stdout)
        self._lines: asyncio.Queue = asyncio.Queue()

    async def _read_lines(self) -> None:
        try:
            while True:
                line = await self._input.readline()
                if not line:
                    break
                await self._lines.put(line)
        finally:
            self._lines.put_nowait(_EOF)

    async def _write(self, message: dict) -> None:
        await self._output.write(encode(message) + "\n")
        await self._output.flush()

    async def _flush_events(self) -> None:
        for message in self.mcp_server.drain_notifications():
            await self._write(message)

    async def _handle_line(self, line: str) -> None:
        try:
            request = parse_request(line)
        except McpError as e:
            logger.warning("Dropping invalid input line: %s", e.message)
            return

        response = await process_request(self.mcp_server, request)
        if response is None:
            return
        await self._write(response)
        if self.mcp_server.consume_tools_changed():
            await self._write(notification(TOOLS_LIST_CHANGED))

    async def run(self) -> None:
        """Serve requests until end of input."""
        logger.info("stdio transport started")
        reader = asyncio.create_task(self._read_lines(), name="stdio-reader")
        try:
            while True:
                try:
                    line = await asyncio.wait_for(
                        self._lines.get(), timeout=config.NOTIFICATION_FLUSH_INTERVAL
                    )
                except asyncio.TimeoutError:
                    await self._flush_events()
                    continue

                if line is _EOF:
                    break
                line = line.strip()
                if line:
                    set_request_id()
                    try:
                        await self._handle_line(line)
                    finally:
                        clear_request_id()
                await self._flush_events()
        finally:
            if not reader.done():
                reader.cancel()
        logger.info("stdio transport reached end of input")
