"""
Response recovery parsing.

Turns raw model text into a ``StructuredResponse`` even when the model
ignored the structured-output contract. Handles:
- Schema-conformant JSON
- JSON wrapped in code fences or preceded by a label ("Here's the response:")
- JSON embedded in prose
- Special token artifacts such as ``<|tool_calls_section_begin|>``
- Freeform text, kept as assistant content with ``needs_more_work=True``
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from toolrelay.core.domain.errors import NoContentError
from toolrelay.core.domain.models import StructuredResponse
from toolrelay.core.domain.schema import ToolCallResponseSchema
from toolrelay.core.interfaces.logging import LoggerProtocol

_CONTROL_MARKER = re.compile(r"<\|[^|]*\|>")
_CODE_FENCE_OPEN = re.compile(r"```[A-Za-z0-9_-]*\s*")
_CODE_FENCE = re.compile(r"```\s*")
# A short label such as "Here's the response:" directly before a JSON object.
_LEADING_LABEL = re.compile(r"^\s*[\w][\w\s'’,.-]{0,79}?:\s*(?=\{)")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def strip_control_markers(text: str) -> str:
    """Remove delimited special tokens emitted by some models."""
    return _CONTROL_MARKER.sub("", text)


def clean_model_text(text: str) -> str:
    """Strip control markers, code fences and a single leading label."""
    cleaned = strip_control_markers(text)
    cleaned = _CODE_FENCE_OPEN.sub("", cleaned)
    cleaned = _CODE_FENCE.sub("", cleaned)
    cleaned = _LEADING_LABEL.sub("", cleaned, count=1)
    return cleaned.strip()


def iter_balanced_objects(text: str) -> Iterator[str]:
    """Yield top-level brace-balanced substrings in order of appearance.

    Braces inside JSON string literals are ignored.
    """
    depth = 0
    start = -1
    in_string = False
    escape = False

    for idx, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = idx
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start : idx + 1]


def validate_json_text(text: str, schema: type[SchemaT]) -> SchemaT | None:
    """Parse ``text`` as a JSON object and validate it, returning None on any failure."""
    try:
        data: Any = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return schema.model_validate(data)
    except ValidationError:
        return None


def extract_schema_object(text: str, schema: type[SchemaT]) -> SchemaT | None:
    """Validate the whole text, then each embedded balanced object in turn.

    An embedded object that sets no fields (such as a literal ``{}`` in prose)
    is not taken as the response.
    """
    parsed = validate_json_text(text, schema)
    if parsed is not None:
        return parsed
    for candidate in iter_balanced_objects(text):
        if candidate == text:
            continue
        parsed = validate_json_text(candidate, schema)
        if parsed is not None and parsed.model_fields_set:
            return parsed
    return None


class ResponseRecoveryParser:
    """Recover a best-effort ``StructuredResponse`` from raw model output.

    ``parse`` only raises ``NoContentError`` when nothing survives cleaning;
    every other input yields a usable response.
    """

    def __init__(self, logger: LoggerProtocol | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__).bind(
            component="response_parser"
        )

    def parse(self, raw_text: str | None) -> StructuredResponse:
        """Parse raw model text.

        Args:
            raw_text: Text returned by the provider adapter.

        Returns:
            Structured response; freeform text becomes
            ``StructuredResponse(content=text, needs_more_work=True)``.

        Raises:
            NoContentError: If the text is empty after stripping artifacts.
        """
        raw_text = raw_text or ""
        cleaned = clean_model_text(raw_text)

        if cleaned:
            parsed = extract_schema_object(cleaned, ToolCallResponseSchema)
            if parsed is not None:
                response = parsed.to_domain()
                self._logger.debug(
                    "response_parsed",
                    tool_calls=len(response.tool_calls),
                    needs_more_work=response.needs_more_work,
                    recovered=cleaned != raw_text.strip(),
                )
                return response

        text_content = strip_control_markers(raw_text).strip()
        if text_content:
            self._logger.info(
                "response_parse_fallback_to_text",
                content_length=len(text_content),
                preview=text_content[:120],
            )
            return StructuredResponse(content=text_content, needs_more_work=True)

        raise NoContentError(
            "No response content received",
            details={"raw_length": len(raw_text)},
        )
