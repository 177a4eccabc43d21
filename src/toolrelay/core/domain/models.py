"""
Core Domain Models

This module defines the data models that flow through the agent loop:
conversation messages, tool call requests and results, the structured
model response, extracted resources, budgets and loop state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from toolrelay.core.domain.enums import LoopPhase, MessageRole, ResourceType
from toolrelay.core.utils.time import utc_now


@dataclass(frozen=True)
class ToolCallRequest:
    """A single tool invocation planned by the model.

    Attributes:
        name: Tool name, optionally qualified as ``server:tool``.
        arguments: JSON-compatible arguments for the tool.
    """

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": dict(self.arguments)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCallRequest:
        return cls(name=data["name"], arguments=dict(data.get("arguments") or {}))


@dataclass(frozen=True)
class ToolCallResult:
    """Outcome of one tool call. Exactly one exists per request."""

    tool_name: str
    server_name: str
    success: bool
    content: str
    error: str | None = None
    error_type: str | None = None
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tool_name": self.tool_name,
            "server_name": self.server_name,
            "success": self.success,
            "content": self.content,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.error_type is not None:
            data["error_type"] = self.error_type
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCallResult:
        return cls(
            tool_name=data["tool_name"],
            server_name=data.get("server_name", ""),
            success=bool(data.get("success", False)),
            content=data.get("content", ""),
            error=data.get("error"),
            error_type=data.get("error_type"),
            duration_ms=int(data.get("duration_ms", 0)),
        )


@dataclass(frozen=True)
class Message:
    """One conversation turn. Immutable once appended."""

    role: MessageRole
    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_results: tuple[ToolCallResult, ...] = ()
    created_at: str = field(default_factory=lambda: utc_now().isoformat())

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str | None = None, tool_calls: list[ToolCallRequest] | None = None
    ) -> Message:
        return cls(
            role=MessageRole.ASSISTANT,
            content=content or "",
            tool_calls=tuple(tool_calls or ()),
        )

    @classmethod
    def tool(cls, results: list[ToolCallResult]) -> Message:
        return cls(role=MessageRole.TOOL, tool_results=tuple(results))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at,
        }
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_results:
            data["tool_results"] = [tr.to_dict() for tr in self.tool_results]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        return cls(
            role=MessageRole(data["role"]),
            content=data.get("content") or "",
            tool_calls=tuple(ToolCallRequest.from_dict(tc) for tc in data.get("tool_calls", [])),
            tool_results=tuple(
                ToolCallResult.from_dict(tr) for tr in data.get("tool_results", [])
            ),
            created_at=data.get("created_at") or utc_now().isoformat(),
        )


@dataclass(frozen=True)
class StructuredResponse:
    """Structured intent recovered from a model reply."""

    tool_calls: tuple[ToolCallRequest, ...] = ()
    content: str | None = None
    needs_more_work: bool = False

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class ResourceReference:
    """Reusable identifier extracted from conversation history.

    Attributes:
        type: Resource kind (session, connection, handle, ...).
        id: The identifier value.
        parameter: Tool argument name this id should be passed as.
    """

    type: ResourceType
    id: str
    parameter: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type.value, "id": self.id, "parameter": self.parameter}


@dataclass(frozen=True)
class ContextExtraction:
    """Output of the context compressor."""

    summary: str = ""
    resources: tuple[ResourceReference, ...] = ()

    @classmethod
    def empty(cls) -> ContextExtraction:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.summary and not self.resources


@dataclass(frozen=True)
class LoopBudget:
    """Caps for a single loop run."""

    max_iterations: int = 10
    max_duration_seconds: float = 300.0
    tool_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.max_duration_seconds <= 0:
            raise ValueError("max_duration_seconds must be positive")
        if self.tool_timeout_seconds <= 0:
            raise ValueError("tool_timeout_seconds must be positive")


@dataclass
class LoopState:
    """Mutable state owned by one loop run.

    ``conversation`` is append-only. ``window_start`` marks the first message
    still sent verbatim to the model; everything before it is represented by
    ``summary`` and ``resources``.
    """

    conversation_id: str
    conversation: list[Message]
    budget: LoopBudget
    iteration_count: int = 0
    start_time: float = field(default_factory=time.monotonic)
    phase: LoopPhase = LoopPhase.IDLE
    summary: str = ""
    resources: list[ResourceReference] = field(default_factory=list)
    window_start: int = 0
    tool_calls_executed: int = 0
    last_content: str | None = None

    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time

    def window(self) -> list[Message]:
        return self.conversation[self.window_start :]


@dataclass(frozen=True)
class LoopResult:
    """Successful outcome of a loop run."""

    conversation_id: str
    final_content: str
    iterations: int
    tool_calls_executed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "final_content": self.final_content,
            "iterations": self.iterations,
            "tool_calls_executed": self.tool_calls_executed,
        }
