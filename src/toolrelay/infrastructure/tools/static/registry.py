"""
In-process tool registry.

Serves plain async callables as tools, grouped under named servers. Useful
for embedding applications that expose their own functions to the loop and
for tests that need deterministic tool servers.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from toolrelay.core.domain.errors import ToolExecutionError, ToolServerConnectionError
from toolrelay.core.interfaces.tools import ToolCallOutcome, ToolDescriptor

ToolFunction = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class StaticTool:
    """A callable registered under a tool name."""

    descriptor: ToolDescriptor
    func: ToolFunction


class StaticToolRegistry:
    """
    Registry of in-process async tools.

    A tool function receives the call arguments as keyword arguments. A
    returned string is used as-is; anything else is JSON-encoded. Raising
    ``ToolExecutionError`` reports a server-side failure; other exceptions
    propagate to the dispatcher.

    Example:
        >>> registry = StaticToolRegistry()
        >>> async def read_file(path: str) -> str:
        ...     return Path(path).read_text()
        >>> registry.register("files", "read_file", read_file, description="Read a file")
    """

    def __init__(self) -> None:
        self._servers: dict[str, dict[str, StaticTool]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._disconnected: set[str] = set()

    def register(
        self,
        server_name: str,
        tool_name: str,
        func: ToolFunction,
        *,
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ) -> None:
        """Register ``func`` as ``tool_name`` on ``server_name``."""
        tools = self._servers.setdefault(server_name, {})
        self._locks.setdefault(server_name, asyncio.Lock())
        tools[tool_name] = StaticTool(
            descriptor=ToolDescriptor(
                name=tool_name,
                description=description,
                input_schema=dict(input_schema or {"type": "object", "properties": {}}),
            ),
            func=func,
        )

    def disconnect(self, server_name: str) -> None:
        """Simulate a dropped connection; later calls raise."""
        self._disconnected.add(server_name)

    def reconnect(self, server_name: str) -> None:
        self._disconnected.discard(server_name)

    def server_names(self) -> list[str]:
        return list(self._servers.keys())

    async def list_tools(self, server_name: str) -> list[ToolDescriptor]:
        return [tool.descriptor for tool in self._server(server_name).values()]

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolCallOutcome:
        tools = self._server(server_name)
        tool = tools.get(tool_name)
        if tool is None:
            return ToolCallOutcome(
                content=f"Unknown tool '{tool_name}' on server '{server_name}'",
                is_error=True,
            )

        async with self._locks[server_name]:
            self._check_connected(server_name)
            try:
                result = await tool.func(**arguments)
            except ToolExecutionError as e:
                return ToolCallOutcome(content=e.message, is_error=True)

        if isinstance(result, str):
            return ToolCallOutcome(content=result)
        return ToolCallOutcome(content=json.dumps(result, ensure_ascii=False, default=str))

    def _server(self, server_name: str) -> dict[str, StaticTool]:
        self._check_connected(server_name)
        tools = self._servers.get(server_name)
        if tools is None:
            raise ToolServerConnectionError(
                f"Tool server '{server_name}' is not registered",
                server_name=server_name,
            )
        return tools

    def _check_connected(self, server_name: str) -> None:
        if server_name in self._disconnected:
            raise ToolServerConnectionError(
                f"Tool server '{server_name}' disconnected",
                server_name=server_name,
            )
