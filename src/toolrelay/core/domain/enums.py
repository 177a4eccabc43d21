"""
Core Domain Enums

Defines roles, loop phases, generation modes and resource types
to eliminate magic strings throughout the codebase.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class LoopPhase(str, Enum):
    """States of the agent loop state machine."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING = "dispatching"
    DONE = "done"
    ABORTED = "aborted"


class GenerationMode(str, Enum):
    """What the provider is asked to produce."""

    TOOL_CALL = "tool_call"
    SUMMARIZE = "summarize"


class ResourceType(str, Enum):
    """Kinds of reusable identifiers extracted during context compression."""

    SESSION = "session"
    CONNECTION = "connection"
    HANDLE = "handle"
    WORKSPACE = "workspace"
    CHANNEL = "channel"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: str | None) -> "ResourceType":
        """Map free-form model output onto a known type, defaulting to OTHER."""
        if not value:
            return cls.OTHER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class ServerTransport(str, Enum):
    """Supported MCP server transports."""

    STDIO = "stdio"
    SSE = "sse"
