"""LLM provider implementations."""

from toolrelay.infrastructure.llm.litellm_provider import LiteLLMProvider
from toolrelay.infrastructure.llm.structured_output import (
    StructuredOutputPolicy,
    is_schema_rejection,
)

__all__ = ["LiteLLMProvider", "StructuredOutputPolicy", "is_schema_rejection"]
