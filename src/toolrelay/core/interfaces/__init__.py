"""
Core Protocol Interfaces

This package defines protocol interfaces for all external collaborators of
the agent loop. Protocols keep the core independent of concrete backends.

Available Protocols:
    - LLMProviderProtocol: Raw model generation with structured-output fallback
    - ToolServerRegistryProtocol: Tool discovery and execution
    - ConversationStoreProtocol: Append-only conversation persistence
    - AuthorizationHandshakeProtocol: One-shot authorization redirect wait
    - LoggerProtocol: Structured logging
"""

from toolrelay.core.interfaces.auth import (
    AuthorizationHandshakeProtocol,
    AuthorizationResult,
)
from toolrelay.core.interfaces.conversation import ConversationStoreProtocol
from toolrelay.core.interfaces.llm import LLMProviderProtocol
from toolrelay.core.interfaces.logging import LoggerProtocol
from toolrelay.core.interfaces.tools import (
    ToolCallOutcome,
    ToolDescriptor,
    ToolServerRegistryProtocol,
)

__all__ = [
    "AuthorizationHandshakeProtocol",
    "AuthorizationResult",
    "ConversationStoreProtocol",
    "LLMProviderProtocol",
    "LoggerProtocol",
    "ToolCallOutcome",
    "ToolDescriptor",
    "ToolServerRegistryProtocol",
]
