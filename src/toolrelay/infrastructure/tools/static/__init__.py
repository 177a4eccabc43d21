"""In-process tool registry."""

from toolrelay.infrastructure.tools.static.registry import StaticTool, StaticToolRegistry

__all__ = ["StaticTool", "StaticToolRegistry"]
