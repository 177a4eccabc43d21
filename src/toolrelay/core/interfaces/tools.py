"""
Tool Server Registry Protocol

Defines the contract between the tool dispatcher and whatever owns the tool
server connections (MCP servers, in-process tools). Connection lifecycle
(connect, reconnect, authorization) belongs to the registry, not to the
dispatcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ToolDescriptor:
    """A tool advertised by a server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallOutcome:
    """Raw result of a tool call as reported by the server."""

    content: str
    is_error: bool = False


class ToolServerRegistryProtocol(Protocol):
    """
    Protocol for tool server registries.

    Implementations must:
    - Serialize calls per server connection
    - Raise ``ToolServerConnectionError`` when a server transport drops
    - Report server-side tool failures as ``ToolCallOutcome(is_error=True)``
      instead of raising

    The registry is read-mostly: servers are registered at startup or on
    reconnect and only read during loop runs.
    """

    def server_names(self) -> list[str]:
        """Return the names of all registered servers."""
        ...

    async def list_tools(self, server_name: str) -> list[ToolDescriptor]:
        """List the tools a server advertises."""
        ...

    async def call_tool(
        self,
        server_name: str,
        tool_name: str,
        arguments: dict[str, Any],
        timeout: float | None = None,
    ) -> ToolCallOutcome:
        """Execute a tool on a server.

        Args:
            server_name: Registered server name.
            tool_name: Tool name as advertised by the server.
            arguments: JSON-compatible arguments.
            timeout: Optional per-call timeout in seconds.

        Returns:
            The server's content and error flag.

        Raises:
            ToolServerConnectionError: If the server connection dropped.
        """
        ...
