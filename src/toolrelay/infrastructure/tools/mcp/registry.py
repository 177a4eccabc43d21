"""
MCP Server Registry

Owns the connections to all configured MCP servers and implements
``ToolServerRegistryProtocol`` on top of them. Connections are entered on one
``AsyncExitStack`` and closed together. Each server gets its own
``asyncio.Lock`` so concurrent loop runs never interleave requests on one
connection.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from dataclasses import dataclass, field
from typing import Any

import structlog

from toolrelay.core.domain.enums import ServerTransport
from toolrelay.core.domain.errors import ConfigError, ToolServerConnectionError
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.interfaces.tools import ToolCallOutcome, ToolDescriptor
from toolrelay.infrastructure.tools.mcp.client import MCPClient


@dataclass
class MCPServerConfig:
    """Connection settings for one MCP server."""

    name: str
    transport: ServerTransport = ServerTransport.STDIO
    command: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    url: str | None = None


ClientFactory = Callable[[MCPServerConfig], AbstractAsyncContextManager[MCPClient]]


def default_client_factory(config: MCPServerConfig) -> AbstractAsyncContextManager[MCPClient]:
    """Open an ``MCPClient`` for a server config."""
    if config.transport == ServerTransport.SSE:
        if not config.url:
            raise ConfigError(
                f"MCP server '{config.name}': sse transport requires 'url'",
                details={"server": config.name},
            )
        return MCPClient.create_sse(config.name, config.url)

    if not config.command:
        raise ConfigError(
            f"MCP server '{config.name}': stdio transport requires 'command'",
            details={"server": config.name},
        )
    return MCPClient.create_stdio(
        config.name,
        command=config.command,
        args=list(config.args),
        env=dict(config.env) or None,
    )


class MCPServerRegistry:
    """
    Registry of connected MCP servers.

    Servers that fail to connect are logged and skipped; the registry keeps
    working with the rest.

    Example:
        >>> async with MCPServerRegistry(configs) as registry:
        ...     dispatcher = ToolDispatcher(registry=registry)
    """

    def __init__(
        self,
        configs: list[MCPServerConfig],
        *,
        client_factory: ClientFactory | None = None,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._configs = list(configs)
        self._client_factory = client_factory or default_client_factory
        self._logger = logger or structlog.get_logger(__name__).bind(component="mcp_registry")
        self._clients: dict[str, MCPClient] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._exit_stack: AsyncExitStack | None = None

    async def __aenter__(self) -> MCPServerRegistry:
        await self.connect_all()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect_all(self) -> list[str]:
        """Connect every configured server. Returns the connected names."""
        if self._exit_stack is None:
            self._exit_stack = AsyncExitStack()

        if not self._configs:
            self._logger.debug("no_mcp_servers_configured")

        for config in self._configs:
            if config.name in self._clients:
                continue
            await self._connect(config)

        return self.server_names()

    async def _connect(self, config: MCPServerConfig) -> None:
        assert self._exit_stack is not None
        self._logger.info(
            "connecting_to_mcp_server",
            server=config.name,
            transport=config.transport.value,
            command=config.command,
            url=config.url,
        )
        try:
            client = await self._exit_stack.enter_async_context(self._client_factory(config))
            tools = await client.list_tools()
        except ConfigError as e:
            self._logger.warning("mcp_server_misconfigured", server=config.name, error=e.message)
            return
        except Exception as e:
            self._logger.warning(
                "mcp_server_connection_failed",
                server=config.name,
                error=str(e),
                error_type=type(e).__name__,
                hint="Continuing without this MCP server",
            )
            return

        self._clients[config.name] = client
        self._locks[config.name] = asyncio.Lock()
        self._logger.info(
            "mcp_server_connected",
            server=config.name,
            tools_count=len(tools),
            tool_names=[t.name for t in tools],
        )

    def server_names(self) -> list[str]:
        return list(self._clients.keys())

    async def list_tools(self, server_name: str) -> list[ToolDescriptor]:
        client = self._client(server_name)
        async with self._locks[server_name]:
            return await client.list_tools()

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolCallOutcome:
        client = self._client(server_name)
        async with self._locks[server_name]:
            self._logger.debug("mcp_tool_call", server=server_name, tool=tool_name)
            return await client.call_tool(tool_name, arguments, timeout=timeout)

    async def close(self) -> None:
        """Close all server connections."""
        if self._exit_stack is None:
            return
        exit_stack, self._exit_stack = self._exit_stack, None
        closed = self.server_names()
        self._clients.clear()
        self._locks.clear()
        await exit_stack.aclose()
        self._logger.info("mcp_servers_closed", servers=closed)

    def _client(self, server_name: str) -> MCPClient:
        client = self._clients.get(server_name)
        if client is None:
            raise ToolServerConnectionError(
                f"MCP server '{server_name}' is not connected",
                server_name=server_name,
            )
        return client
