"""System prompts and templates.

This module provides the prompts used by the agent loop:
- Loop kernel prompt with the JSON response contract
- Context extraction prompts for summarize mode
- Dynamic prompt building with tool catalog and resource injection
"""

from toolrelay.core.prompts.loop_prompts import (
    AGENT_LOOP_KERNEL_PROMPT,
    CONTEXT_EXTRACTION_FALLBACK_SYSTEM_PROMPT,
    CONTEXT_EXTRACTION_PROMPT,
    CONTEXT_EXTRACTION_SYSTEM_PROMPT,
    CONTINUATION_NUDGE,
)
from toolrelay.core.prompts.prompt_builder import (
    build_loop_system_prompt,
    format_resources,
    format_tools_description,
)

__all__ = [
    "AGENT_LOOP_KERNEL_PROMPT",
    "CONTEXT_EXTRACTION_FALLBACK_SYSTEM_PROMPT",
    "CONTEXT_EXTRACTION_PROMPT",
    "CONTEXT_EXTRACTION_SYSTEM_PROMPT",
    "CONTINUATION_NUDGE",
    "build_loop_system_prompt",
    "format_resources",
    "format_tools_description",
]
