"""Context compression for long-running loops."""

from __future__ import annotations

import json

import structlog

from toolrelay.core.domain.enums import GenerationMode, MessageRole
from toolrelay.core.domain.models import ContextExtraction, Message, ResourceReference
from toolrelay.core.domain.response_parser import extract_schema_object, strip_control_markers
from toolrelay.core.domain.schema import ContextExtractionSchema
from toolrelay.core.interfaces.llm import LLMProviderProtocol
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.prompts.loop_prompts import CONTEXT_EXTRACTION_PROMPT

MAX_SUMMARY_INPUT_CHARS = 50000
CONTENT_PREVIEW_CHARS = 1000
RESULT_PREVIEW_CHARS = 500


class ContextCompressor:
    """Summarize conversation history and extract reusable resource ids.

    Never raises: any failure yields ``ContextExtraction.empty()`` so the loop
    carries on with its untruncated window.
    """

    def __init__(
        self,
        *,
        llm_provider: LLMProviderProtocol,
        logger: LoggerProtocol | None = None,
    ) -> None:
        self._llm_provider = llm_provider
        self._logger = logger or structlog.get_logger(__name__).bind(
            component="context_compressor"
        )

    async def compress(self, messages: list[Message]) -> ContextExtraction:
        """Summarize ``messages`` and extract resource references."""
        if not messages:
            return ContextExtraction.empty()

        summary_input = self.build_safe_summary_input(messages)
        if len(summary_input) > MAX_SUMMARY_INPUT_CHARS:
            self._logger.warning(
                "compression_input_truncated",
                input_length=len(summary_input),
                max_length=MAX_SUMMARY_INPUT_CHARS,
            )
            summary_input = summary_input[-MAX_SUMMARY_INPUT_CHARS:]

        prompt = CONTEXT_EXTRACTION_PROMPT.format(conversation=summary_input)

        try:
            raw = await self._llm_provider.generate(
                [{"role": "user", "content": prompt}],
                mode=GenerationMode.SUMMARIZE,
            )
        except Exception as error:
            self._logger.error(
                "compression_failed",
                error=str(error)[:200],
                error_type=type(error).__name__,
            )
            return ContextExtraction.empty()

        cleaned = strip_control_markers(raw or "").strip()
        parsed = extract_schema_object(cleaned, ContextExtractionSchema) if cleaned else None
        if parsed is None:
            self._logger.warning(
                "compression_unparseable",
                raw_length=len(raw or ""),
                preview=(raw or "")[:120],
            )
            return ContextExtraction.empty()

        extraction = parsed.to_domain()
        self._logger.info(
            "context_extracted",
            summary_length=len(extraction.summary),
            resources=len(extraction.resources),
        )
        return extraction

    @staticmethod
    def build_safe_summary_input(messages: list[Message]) -> str:
        """
        Build summary input from messages without raw dumps.

        Keeps only role, truncated content, tool call names with arguments,
        and truncated tool result previews.
        """
        parts: list[str] = []
        for idx, message in enumerate(messages):
            lines = [f"[Message {idx + 1} - {message.role.value}]"]

            if message.content:
                lines.append(f"Content: {message.content[:CONTENT_PREVIEW_CHARS]}")

            for call in message.tool_calls:
                args = json.dumps(call.arguments, ensure_ascii=False, default=str)
                lines.append(f"Tool call: {call.name} {args[:RESULT_PREVIEW_CHARS]}")

            for result in message.tool_results:
                status = "ok" if result.success else f"failed ({result.error_type})"
                lines.append(
                    f"Tool result: {result.tool_name} [{status}] "
                    f"{result.content[:RESULT_PREVIEW_CHARS]}"
                )

            parts.append("\n".join(lines))

        return "\n\n".join(parts)


def merge_resources(
    existing: list[ResourceReference], extracted: tuple[ResourceReference, ...]
) -> list[ResourceReference]:
    """Merge resources keeping first-seen order, deduplicated by (parameter, id)."""
    merged = list(existing)
    seen = {(r.parameter, r.id) for r in merged}
    for resource in extracted:
        key = (resource.parameter, resource.id)
        if key not in seen:
            seen.add(key)
            merged.append(resource)
    return merged


def compression_boundary(conversation: list[Message], window_start: int, keep_recent: int) -> int:
    """Index of the first message to keep verbatim after compression.

    Never splits an assistant tool-call turn from the tool-result turn that
    answers it.
    """
    boundary = max(window_start, len(conversation) - max(keep_recent, 1))
    if (
        boundary > window_start
        and conversation[boundary].role == MessageRole.TOOL
        and conversation[boundary - 1].role == MessageRole.ASSISTANT
    ):
        boundary -= 1
    return boundary
