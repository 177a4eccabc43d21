"""
LLM Provider Protocol

This module defines the protocol interface for provider adapters. An adapter
wraps a concrete LLM backend and turns a conversation into raw model text,
trying schema-constrained generation first and falling back to free-form
generation when the backend rejects schema mode.
"""

from typing import Any, Protocol

from toolrelay.core.domain.enums import GenerationMode


class LLMProviderProtocol(Protocol):
    """
    Protocol defining the contract for provider adapters.

    Error Handling:
        Transport and authentication failures raise ``ProviderError``.
        Schema rejections are recovered internally and never raised.
        No retry with backoff happens inside the adapter; retrying a failed
        loop run is the caller's decision.
    """

    async def generate(
        self,
        messages: list[dict[str, Any]],
        mode: GenerationMode = GenerationMode.TOOL_CALL,
    ) -> str:
        """
        Produce raw model text for a conversation.

        Args:
            messages: Chat messages with 'role' and 'content' keys.
                     Roles: "system", "user", "assistant".
            mode: ``TOOL_CALL`` requests the tool-call response shape,
                  ``SUMMARIZE`` the context-extraction shape.

        Returns:
            Raw text of the first completion choice ("" if the model
            returned no content).

        Raises:
            ProviderError: On transport or auth failure.
        """
        ...
