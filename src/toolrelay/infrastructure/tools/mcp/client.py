"""
Session wrapper around a single MCP tool server.

Servers are reached over stdio (spawned subprocess) or SSE (remote HTTP
endpoint). Transport failures surface as ``ToolServerConnectionError``;
tool-level failures come back as error outcomes.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import anyio
from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError

from toolrelay.core.domain.errors import ToolServerConnectionError
from toolrelay.core.interfaces.tools import ToolCallOutcome, ToolDescriptor

# Transport failures: the connection is gone, not just this call
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    ConnectionError,
    EOFError,
)


class MCPClient:
    """
    Client for one connected MCP server session.

    Example:
        >>> ctx = MCPClient.create_stdio("files", "python", ["server.py"])
        >>> async with ctx as client:
        ...     tools = await client.list_tools()
        ...     outcome = await client.call_tool("read_file", {"path": "a.txt"})
    """

    def __init__(self, server_name: str, session: ClientSession) -> None:
        self.server_name = server_name
        self.session = session
        self._tools_cache: list[ToolDescriptor] | None = None

    @classmethod
    @asynccontextmanager
    async def create_stdio(
        cls,
        server_name: str,
        command: str,
        args: list[str],
        env: dict[str, str] | None = None,
    ):
        """
        Spawn ``command`` and open a session over its stdin/stdout.

        Args:
            server_name: Registry name of the server
            command: Command to execute (e.g., "python", "npx")
            args: Arguments to pass to the command
            env: Extra environment for the subprocess

        Yields:
            An initialized MCPClient
        """
        server_params = StdioServerParameters(command=command, args=args, env=env)

        async with stdio_client(server_params) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                yield cls(server_name, session)

    @classmethod
    @asynccontextmanager
    async def create_sse(cls, server_name: str, url: str):
        """
        Open a session against a Server-Sent Events endpoint.

        Args:
            server_name: Registry name of the server
            url: Endpoint URL, usually ending in /sse

        Yields:
            An initialized MCPClient
        """
        async with sse_client(url) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                yield cls(server_name, session)

    async def list_tools(self) -> list[ToolDescriptor]:
        """
        Return the server's tool descriptors, cached after the first call.

        Raises:
            ToolServerConnectionError: If the transport dropped.
        """
        if self._tools_cache is None:
            try:
                response = await self.session.list_tools()
            except TRANSPORT_ERRORS as e:
                raise self._connection_error(e) from e
            self._tools_cache = [
                ToolDescriptor(
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=dict(getattr(tool, "inputSchema", None) or {}),
                )
                for tool in response.tools
            ]
        return self._tools_cache

    async def call_tool(
        self,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolCallOutcome:
        """
        Invoke ``tool_name`` with ``arguments``.

        Server-side failures (``isError`` results and JSON-RPC errors) are
        returned as ``ToolCallOutcome(is_error=True)``.

        Raises:
            ToolServerConnectionError: If the transport dropped.
        """
        try:
            response = await self.session.call_tool(
                tool_name,
                arguments,
                read_timeout_seconds=timedelta(seconds=timeout) if timeout else None,
            )
        except TRANSPORT_ERRORS as e:
            raise self._connection_error(e) from e
        except McpError as e:
            return ToolCallOutcome(content=f"MCP tool '{tool_name}' failed: {e}", is_error=True)

        return ToolCallOutcome(
            content=self._extract_text(response),
            is_error=bool(getattr(response, "isError", False)),
        )

    @staticmethod
    def _extract_text(response: Any) -> str:
        """Join the text items of a CallToolResult."""
        if not getattr(response, "content", None):
            return str(response)

        content_items = []
        for item in response.content:
            if hasattr(item, "text"):
                content_items.append(item.text)
            elif hasattr(item, "data"):
                content_items.append(str(item.data))

        return "\n".join(content_items) if content_items else str(response.content)

    def _connection_error(self, error: BaseException) -> ToolServerConnectionError:
        return ToolServerConnectionError(
            f"Connection to MCP server '{self.server_name}' lost: "
            f"{type(error).__name__}: {error}",
            server_name=self.server_name,
        )
