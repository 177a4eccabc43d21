"""
Unit tests for MCPServerRegistry

Uses a fake client factory so no subprocess or network connection is made.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolrelay.core.domain.enums import ServerTransport
from toolrelay.core.domain.errors import ConfigError, ToolServerConnectionError
from toolrelay.core.interfaces.tools import ToolCallOutcome, ToolDescriptor
from toolrelay.infrastructure.tools.mcp.registry import (
    MCPServerConfig,
    MCPServerRegistry,
    default_client_factory,
)

_CREATE_STDIO = "toolrelay.infrastructure.tools.mcp.registry.MCPClient.create_stdio"


class FakeClientFactory:
    """Records opened and closed servers; ``failing`` names raise on connect."""

    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        self.failing = failing
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.clients: dict[str, MagicMock] = {}

    def __call__(self, config: MCPServerConfig):
        @asynccontextmanager
        async def connect():
            if config.name in self.failing:
                raise ConnectionRefusedError(f"cannot reach {config.name}")
            client = MagicMock()
            client.list_tools = AsyncMock(
                return_value=[ToolDescriptor(f"{config.name}_tool", "A tool")]
            )
            client.call_tool = AsyncMock(return_value=ToolCallOutcome(content="ok"))
            self.clients[config.name] = client
            self.opened.append(config.name)
            try:
                yield client
            finally:
                self.closed.append(config.name)

        return connect()


def configs(*names: str) -> list[MCPServerConfig]:
    return [MCPServerConfig(name=n, command="python", args=["server.py"]) for n in names]


class TestMCPServerRegistry:
    @pytest.mark.asyncio
    async def test_connects_all_and_closes(self) -> None:
        factory = FakeClientFactory()

        async with MCPServerRegistry(configs("files", "search"), client_factory=factory) as registry:
            assert registry.server_names() == ["files", "search"]
            tools = await registry.list_tools("files")
            assert tools[0].name == "files_tool"

        assert factory.closed == ["search", "files"]
        assert registry.server_names() == []

    @pytest.mark.asyncio
    async def test_failed_server_is_skipped(self) -> None:
        factory = FakeClientFactory(failing=("broken",))

        async with MCPServerRegistry(
            configs("files", "broken", "search"), client_factory=factory
        ) as registry:
            assert registry.server_names() == ["files", "search"]

    @pytest.mark.asyncio
    async def test_call_tool_routes_to_client(self) -> None:
        factory = FakeClientFactory()

        async with MCPServerRegistry(configs("files"), client_factory=factory) as registry:
            outcome = await registry.call_tool("files", "files_tool", {"path": "a"}, timeout=3)

        assert outcome.content == "ok"
        factory.clients["files"].call_tool.assert_awaited_once_with(
            "files_tool", {"path": "a"}, timeout=3
        )

    @pytest.mark.asyncio
    async def test_unknown_server_raises(self) -> None:
        async with MCPServerRegistry([], client_factory=FakeClientFactory()) as registry:
            with pytest.raises(ToolServerConnectionError):
                await registry.call_tool("ghost", "x", {})

    @pytest.mark.asyncio
    async def test_connect_all_is_idempotent(self) -> None:
        factory = FakeClientFactory()
        registry = MCPServerRegistry(configs("files"), client_factory=factory)

        await registry.connect_all()
        await registry.connect_all()
        await registry.close()
        await registry.close()

        assert factory.opened == ["files"]
        assert factory.closed == ["files"]

    @pytest.mark.asyncio
    async def test_misconfigured_server_skipped(self) -> None:
        registry = MCPServerRegistry(
            [MCPServerConfig(name="remote", transport=ServerTransport.SSE)]
        )

        async with registry:
            assert registry.server_names() == []


class TestDefaultClientFactory:
    def test_sse_requires_url(self) -> None:
        with pytest.raises(ConfigError):
            default_client_factory(MCPServerConfig(name="remote", transport=ServerTransport.SSE))

    def test_stdio_requires_command(self) -> None:
        with pytest.raises(ConfigError):
            default_client_factory(MCPServerConfig(name="local"))

    def test_stdio_env_passed_through_unchanged(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        config = MCPServerConfig(
            name="memory",
            command="npx",
            args=["-y", "server-memory"],
            env={"MEMORY_FILE_PATH": "data/memory.json"},
        )

        with patch(_CREATE_STDIO) as create_stdio:
            default_client_factory(config)

        create_stdio.assert_called_once_with(
            "memory",
            command="npx",
            args=["-y", "server-memory"],
            env={"MEMORY_FILE_PATH": "data/memory.json"},
        )
        assert not (tmp_path / "data").exists()
