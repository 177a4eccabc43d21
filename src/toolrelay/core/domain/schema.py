"""
Structured Response Schema Contract

Pydantic models for the two JSON shapes the model is asked to emit:

- ``ToolCallResponseSchema``: ``{toolCalls?, content?, needsMoreWork?}`` for
  every agent loop turn.
- ``ContextExtractionSchema``: ``{contextSummary, resources[]}`` for context
  compression.

Both forbid unknown fields and validate types strictly, so hallucinated keys
or mistyped values fail closed. Each also exposes the JSON schema payload
passed to the backend as ``response_format``.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from toolrelay.core.domain.enums import ResourceType
from toolrelay.core.domain.models import (
    ContextExtraction,
    ResourceReference,
    StructuredResponse,
    ToolCallRequest,
)


class ToolCallSchema(BaseModel):
    """Schema for a single planned tool call."""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr = Field(..., min_length=1, description="Name of the tool to call")
    arguments: dict[str, Any] = Field(
        ..., description="Arguments to pass to the tool"
    )


class ToolCallResponseSchema(BaseModel):
    """Schema for an agent loop turn."""

    model_config = ConfigDict(extra="forbid")

    tool_calls: Optional[list[ToolCallSchema]] = Field(None, alias="toolCalls")
    content: Optional[StrictStr] = None
    needs_more_work: Optional[StrictBool] = Field(None, alias="needsMoreWork")

    def to_domain(self) -> StructuredResponse:
        return StructuredResponse(
            tool_calls=tuple(
                ToolCallRequest(name=tc.name, arguments=dict(tc.arguments))
                for tc in self.tool_calls or []
            ),
            content=self.content,
            needs_more_work=bool(self.needs_more_work),
        )


class ResourceSchema(BaseModel):
    """Schema for one extracted resource identifier."""

    model_config = ConfigDict(extra="forbid")

    type: StrictStr
    id: StrictStr
    parameter: StrictStr


class ContextExtractionSchema(BaseModel):
    """Schema for the context compressor response."""

    model_config = ConfigDict(extra="forbid")

    context_summary: StrictStr = Field(..., alias="contextSummary")
    resources: list[ResourceSchema]

    def to_domain(self) -> ContextExtraction:
        return ContextExtraction(
            summary=self.context_summary,
            resources=tuple(
                ResourceReference(
                    type=ResourceType.coerce(r.type),
                    id=r.id,
                    parameter=r.parameter,
                )
                for r in self.resources
                if r.id and r.parameter
            ),
        )


TOOL_CALL_RESPONSE_JSON_SCHEMA: dict[str, Any] = {
    "name": "LLMToolCallResponse",
    "description": "Response format for LLM tool calls with optional tool execution and content",
    "schema": {
        "type": "object",
        "properties": {
            "toolCalls": {
                "type": "array",
                "description": "Array of tool calls to execute",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Name of the tool to call"},
                        "arguments": {
                            "type": "object",
                            "description": "Arguments to pass to the tool",
                            "additionalProperties": True,
                        },
                    },
                    "required": ["name", "arguments"],
                    "additionalProperties": False,
                },
            },
            "content": {"type": "string", "description": "Text content of the response"},
            "needsMoreWork": {
                "type": "boolean",
                "description": "Whether more work is needed after this response",
            },
        },
        "additionalProperties": False,
    },
    "strict": True,
}


CONTEXT_EXTRACTION_JSON_SCHEMA: dict[str, Any] = {
    "name": "ContextExtraction",
    "description": "Extract context summary and resource identifiers from conversation",
    "schema": {
        "type": "object",
        "properties": {
            "contextSummary": {
                "type": "string",
                "description": "Brief summary of the current state and what has been accomplished",
            },
            "resources": {
                "type": "array",
                "description": "Array of resource objects with type, id, and parameter information",
                "items": {
                    "type": "object",
                    "properties": {
                        "type": {
                            "type": "string",
                            "description": (
                                "Type of resource "
                                "(session, connection, handle, workspace, channel, other)"
                            ),
                        },
                        "id": {"type": "string", "description": "The actual ID value"},
                        "parameter": {
                            "type": "string",
                            "description": (
                                "The parameter name this ID should be used for "
                                "(e.g., sessionId, connectionId)"
                            ),
                        },
                    },
                    "required": ["type", "id", "parameter"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["contextSummary", "resources"],
        "additionalProperties": False,
    },
    "strict": True,
}


def response_format_for(json_schema: dict[str, Any]) -> dict[str, Any]:
    """Wrap a schema payload in the ``response_format`` request parameter."""
    return {"type": "json_schema", "json_schema": json_schema}
