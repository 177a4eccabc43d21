"""
Unit tests for ContextCompressor

Tests verify:
- Summary and resource extraction from a summarize-mode reply
- Empty extraction on provider failure or unparseable output
- Safe summary input (truncated previews, no raw dumps)
- Resource merging and the compression boundary
"""

import json
from unittest.mock import AsyncMock

import pytest

from conftest import ScriptedLLMProvider
from toolrelay.core.domain.enums import GenerationMode, ResourceType
from toolrelay.core.domain.errors import ProviderError
from toolrelay.core.domain.loop_components.context_compressor import (
    CONTENT_PREVIEW_CHARS,
    ContextCompressor,
    compression_boundary,
    merge_resources,
)
from toolrelay.core.domain.models import (
    Message,
    ResourceReference,
    ToolCallRequest,
    ToolCallResult,
)

EXTRACTION = json.dumps(
    {
        "contextSummary": "Opened session s-1 and listed the inbox.",
        "resources": [{"type": "session", "id": "s-1", "parameter": "sessionId"}],
    }
)


@pytest.fixture
def history():
    return [
        Message.user("Open my inbox"),
        Message.assistant(None, [ToolCallRequest("open_session", {"user": "me"})]),
        Message.tool([ToolCallResult("open_session", "mail", True, '{"sessionId": "s-1"}')]),
        Message.assistant("Your inbox is open."),
    ]


class TestCompress:
    @pytest.mark.asyncio
    async def test_extracts_summary_and_resources(self, history) -> None:
        provider = ScriptedLLMProvider(replies=[], summaries=[EXTRACTION])
        compressor = ContextCompressor(llm_provider=provider)

        extraction = await compressor.compress(history)

        assert extraction.summary == "Opened session s-1 and listed the inbox."
        assert extraction.resources == (
            ResourceReference(ResourceType.SESSION, "s-1", "sessionId"),
        )
        messages, mode = provider.calls[0]
        assert mode == GenerationMode.SUMMARIZE
        assert messages[0]["role"] == "user"
        assert "open_session" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_recovers_fenced_output(self, history) -> None:
        provider = ScriptedLLMProvider(
            replies=[], summaries=[f"Here you go:\n```json\n{EXTRACTION}\n```"]
        )
        compressor = ContextCompressor(llm_provider=provider)

        extraction = await compressor.compress(history)

        assert extraction.resources[0].id == "s-1"

    @pytest.mark.asyncio
    async def test_empty_history_skips_provider(self) -> None:
        provider = AsyncMock()
        compressor = ContextCompressor(llm_provider=provider)

        extraction = await compressor.compress([])

        assert extraction.is_empty
        provider.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_provider_failure_yields_empty(self, history) -> None:
        provider = ScriptedLLMProvider(replies=[], summaries=[ProviderError("down")])
        compressor = ContextCompressor(llm_provider=provider)

        extraction = await compressor.compress(history)

        assert extraction.is_empty

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "I summarized it for you: the user opened the inbox.",
            '{"summary": "wrong field name", "resources": []}',
            '{"contextSummary": "missing resources"}',
        ],
    )
    async def test_unparseable_output_yields_empty(self, history, raw) -> None:
        provider = ScriptedLLMProvider(replies=[], summaries=[raw])
        compressor = ContextCompressor(llm_provider=provider)

        assert (await compressor.compress(history)).is_empty

    @pytest.mark.asyncio
    async def test_summary_without_resources(self, history) -> None:
        provider = ScriptedLLMProvider(
            replies=[], summaries=['{"contextSummary": "Nothing reusable.", "resources": []}']
        )
        compressor = ContextCompressor(llm_provider=provider)

        extraction = await compressor.compress(history)

        assert extraction.summary == "Nothing reusable."
        assert extraction.resources == ()


class TestSafeSummaryInput:
    def test_includes_roles_calls_and_results(self, history) -> None:
        text = ContextCompressor.build_safe_summary_input(history)

        assert "[Message 1 - user]" in text
        assert 'Tool call: open_session {"user": "me"}' in text
        assert "Tool result: open_session [ok]" in text
        assert "[Message 4 - assistant]" in text

    def test_failed_result_marked(self) -> None:
        message = Message.tool(
            [
                ToolCallResult(
                    "search", "web", False, "timed out", error="timed out",
                    error_type="ToolTimeoutError",
                )
            ]
        )

        text = ContextCompressor.build_safe_summary_input([message])

        assert "[failed (ToolTimeoutError)]" in text

    def test_long_content_truncated(self) -> None:
        text = ContextCompressor.build_safe_summary_input([Message.user("x" * 5000)])
        assert text.count("x") == CONTENT_PREVIEW_CHARS


class TestMergeResources:
    def test_deduplicates_by_parameter_and_id(self) -> None:
        existing = [ResourceReference(ResourceType.SESSION, "s-1", "sessionId")]
        extracted = (
            ResourceReference(ResourceType.OTHER, "s-1", "sessionId"),
            ResourceReference(ResourceType.CHANNEL, "C1", "channelId"),
        )

        merged = merge_resources(existing, extracted)

        assert [(r.parameter, r.id) for r in merged] == [("sessionId", "s-1"), ("channelId", "C1")]
        assert merged[0].type == ResourceType.SESSION

    def test_does_not_mutate_existing(self) -> None:
        existing: list[ResourceReference] = []
        merge_resources(existing, (ResourceReference(ResourceType.HANDLE, "h", "handle"),))
        assert existing == []


class TestCompressionBoundary:
    def test_keeps_recent_messages(self) -> None:
        conversation = [Message.user(str(i)) for i in range(10)]
        assert compression_boundary(conversation, 0, 4) == 6

    def test_never_splits_tool_pair(self) -> None:
        conversation = [
            Message.user("0"),
            Message.user("1"),
            Message.assistant(None, [ToolCallRequest("search", {})]),
            Message.tool([ToolCallResult("search", "web", True, "ok")]),
            Message.assistant("done"),
        ]

        boundary = compression_boundary(conversation, 0, 2)

        assert boundary == 2
        assert conversation[boundary].role.value == "assistant"

    def test_never_before_window_start(self) -> None:
        conversation = [Message.user(str(i)) for i in range(5)]
        assert compression_boundary(conversation, 3, 4) == 3
