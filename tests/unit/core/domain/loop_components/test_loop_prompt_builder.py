"""
Unit tests for LoopPromptBuilder and the system prompt helpers.

Tests verify:
- Tool catalog rendering, including qualified names for duplicates
- Resource and summary injection
- Conversion of stored turns into provider chat messages
"""

import json

import pytest

from toolrelay.core.domain.enums import ResourceType
from toolrelay.core.domain.loop_components.prompt_builder import (
    LoopPromptBuilder,
    format_tool_results,
    to_provider_message,
)
from toolrelay.core.domain.loop_components.tool_dispatcher import ToolDispatcher
from toolrelay.core.domain.models import (
    LoopBudget,
    LoopState,
    Message,
    ResourceReference,
    ToolCallRequest,
    ToolCallResult,
)
from toolrelay.core.interfaces.tools import ToolDescriptor
from toolrelay.core.prompts.prompt_builder import (
    build_loop_system_prompt,
    format_resources,
    format_tools_description,
)


@pytest.fixture
def builder(registry):
    return LoopPromptBuilder(
        base_system_prompt="You are a test assistant.",
        registry=registry,
        dispatcher=ToolDispatcher(registry=registry),
    )


def make_state(conversation=None, **kwargs) -> LoopState:
    return LoopState(
        conversation_id="c1",
        conversation=list(conversation or []),
        budget=LoopBudget(),
        **kwargs,
    )


class TestSystemPromptHelpers:
    def test_base_only(self) -> None:
        assert build_loop_system_prompt("  Base  ") == "<Base>\nBase\n</Base>"

    def test_all_sections(self) -> None:
        prompt = build_loop_system_prompt("Base", tools_description="T", resources="R")

        assert "<ToolsDescription>\nT\n</ToolsDescription>" in prompt
        assert "<AvailableResources>\nR\n</AvailableResources>" in prompt
        assert prompt.index("<Base>") < prompt.index("<ToolsDescription>")

    def test_format_tools_description(self) -> None:
        text = format_tools_description(
            [("files", ToolDescriptor("read_file", "Read a file", {"type": "object"}))]
        )

        assert text.startswith("Tool: read_file\nServer: files\nDescription: Read a file\n")
        assert '"type": "object"' in text

    def test_format_resources(self) -> None:
        text = format_resources([ResourceReference(ResourceType.SESSION, "s-1", "sessionId")])
        assert "- sessionId=s-1 (session)" in text

    def test_format_resources_empty(self) -> None:
        assert format_resources([]) == ""


class TestToolsDescription:
    @pytest.mark.asyncio
    async def test_lists_every_server(self, builder) -> None:
        text = await builder.tools_description()

        assert "Tool: read_file\nServer: files" in text
        assert "Tool: search\nServer: search" in text

    @pytest.mark.asyncio
    async def test_duplicates_are_qualified(self, registry, builder) -> None:
        async def backup_read(path: str) -> str:
            return path

        registry.register("backup", "read_file", backup_read, description="Read a backup")

        text = await builder.tools_description()

        assert "Tool: read_file\nServer: files" in text
        assert "Tool: backup:read_file\nServer: backup" in text

    @pytest.mark.asyncio
    async def test_cached_while_servers_unchanged(self, registry, builder) -> None:
        first = await builder.tools_description()

        async def ping() -> str:
            return "pong"

        registry.register("files", "ping", ping)

        assert await builder.tools_description() == first

    @pytest.mark.asyncio
    async def test_rebuilt_when_server_added(self, registry, builder) -> None:
        await builder.tools_description()

        async def ping() -> str:
            return "pong"

        registry.register("misc", "ping", ping)

        assert "Tool: ping\nServer: misc" in await builder.tools_description()

    @pytest.mark.asyncio
    async def test_rebuilt_after_listing_recovers(self, registry, builder) -> None:
        registry.disconnect("search")
        assert "Server: search" not in await builder.tools_description()

        registry.reconnect("search")

        assert "Tool: search\nServer: search" in await builder.tools_description()


class TestBuildMessages:
    @pytest.mark.asyncio
    async def test_system_prompt_first(self, builder) -> None:
        messages = await builder.build_messages(make_state([Message.user("hi")]))

        assert messages[0]["role"] == "system"
        assert "You are a test assistant." in messages[0]["content"]
        assert "<ToolsDescription>" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_summary_and_resources_injected(self, builder) -> None:
        state = make_state(
            [Message.user("old"), Message.user("recent")],
            summary="Earlier we opened a session.",
            resources=[ResourceReference(ResourceType.SESSION, "s-1", "sessionId")],
            window_start=1,
        )

        messages = await builder.build_messages(state)

        assert "sessionId=s-1" in messages[0]["content"]
        assert messages[1]["role"] == "user"
        assert "Earlier we opened a session." in messages[1]["content"]
        assert messages[2] == {"role": "user", "content": "recent"}
        assert len(messages) == 3

    @pytest.mark.asyncio
    async def test_stored_system_turns_skipped(self, builder) -> None:
        messages = await builder.build_messages(
            make_state([Message.system("old prompt"), Message.user("hi")])
        )
        assert [m["role"] for m in messages] == ["system", "user"]


class TestToProviderMessage:
    def test_plain_assistant(self) -> None:
        assert to_provider_message(Message.assistant("Hello")) == {
            "role": "assistant",
            "content": "Hello",
        }

    def test_assistant_with_tool_calls(self) -> None:
        message = Message.assistant("Searching", [ToolCallRequest("search", {"query": "x"})])

        converted = to_provider_message(message)

        assert converted["role"] == "assistant"
        assert json.loads(converted["content"]) == {
            "toolCalls": [{"name": "search", "arguments": {"query": "x"}}],
            "content": "Searching",
            "needsMoreWork": True,
        }

    def test_tool_turn_becomes_user_text(self) -> None:
        message = Message.tool(
            [
                ToolCallResult("search", "web", True, "3 hits"),
                ToolCallResult(
                    "read_file",
                    "files",
                    False,
                    "No such file",
                    error="No such file",
                    error_type="ToolExecutionError",
                ),
            ]
        )

        converted = to_provider_message(message)

        assert converted["role"] == "user"
        assert converted["content"] == (
            "Tool results:\n"
            "[search] 3 hits\n"
            "[read_file] ERROR (ToolExecutionError): No such file"
        )

    def test_format_tool_results_falls_back_to_content(self) -> None:
        text = format_tool_results(
            [ToolCallResult("x", "s", False, "raw failure", error_type="ToolExecutionError")]
        )
        assert text.endswith("[x] ERROR (ToolExecutionError): raw failure")
