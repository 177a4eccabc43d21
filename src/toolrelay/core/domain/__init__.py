"""
Domain Models and Business Logic

This package contains the core domain of the agent orchestration engine:
- Conversation and loop models
- Schema contract for structured model output
- Error taxonomy
- Agent loop controller and its components
"""

from toolrelay.core.domain.enums import GenerationMode, LoopPhase, MessageRole, ResourceType
from toolrelay.core.domain.errors import (
    AuthorizationTimeoutError,
    BudgetExceededError,
    CancelledError,
    ConfigError,
    NoContentError,
    ProviderError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolrelayError,
    ToolServerConnectionError,
    ToolTimeoutError,
)
from toolrelay.core.domain.models import (
    ContextExtraction,
    LoopBudget,
    LoopResult,
    LoopState,
    Message,
    ResourceReference,
    StructuredResponse,
    ToolCallRequest,
    ToolCallResult,
)

__all__ = [
    "AuthorizationTimeoutError",
    "BudgetExceededError",
    "CancelledError",
    "ConfigError",
    "ContextExtraction",
    "GenerationMode",
    "LoopBudget",
    "LoopPhase",
    "LoopResult",
    "LoopState",
    "Message",
    "MessageRole",
    "NoContentError",
    "ProviderError",
    "ResourceReference",
    "ResourceType",
    "StructuredResponse",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ToolServerConnectionError",
    "ToolTimeoutError",
    "ToolrelayError",
]
