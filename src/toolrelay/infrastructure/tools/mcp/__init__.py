"""MCP (Model Context Protocol) tool server integration."""

from toolrelay.infrastructure.tools.mcp.client import MCPClient
from toolrelay.infrastructure.tools.mcp.registry import MCPServerConfig, MCPServerRegistry

__all__ = ["MCPClient", "MCPServerConfig", "MCPServerRegistry"]
