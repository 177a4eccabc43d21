"""
Provider adapter using LiteLLM for multi-provider support.

Turns a conversation into raw model text. Every call first asks for
schema-constrained output (``response_format`` with a JSON schema) unless the
structured-output policy lists the model as incompatible. When the backend
rejects schema mode the adapter retries exactly once without the constraint;
any other failure surfaces as ``ProviderError``.

The provider is determined by the model string prefix, as LiteLLM does it:
- OpenAI: "gpt-4o-mini" (no prefix needed)
- Anthropic: "anthropic/claude-sonnet-4-20250514"
- Groq: "groq/llama-3.3-70b-versatile"
- Ollama: "ollama/llama3"

API keys are read natively by LiteLLM from the provider's environment
variables (OPENAI_API_KEY, ANTHROPIC_API_KEY, GROQ_API_KEY, ...).
"""

import json
import logging
import os
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Suppress LiteLLM verbose logging before import
os.environ.setdefault("LITELLM_LOG_LEVEL", "ERROR")
os.environ.setdefault("LITELLM_LOGGING", "off")
os.environ.setdefault("HTTPX_LOG_LEVEL", "warning")

for _ln in ["LiteLLM", "litellm", "httpcore", "httpx", "openai"]:
    logging.getLogger(_ln).setLevel(logging.ERROR)

import aiofiles  # noqa: E402
import litellm  # noqa: E402
import structlog  # noqa: E402

from toolrelay.core.domain.enums import GenerationMode  # noqa: E402
from toolrelay.core.domain.errors import ProviderError, SchemaRejectedError  # noqa: E402
from toolrelay.core.domain.schema import (  # noqa: E402
    CONTEXT_EXTRACTION_JSON_SCHEMA,
    TOOL_CALL_RESPONSE_JSON_SCHEMA,
    response_format_for,
)
from toolrelay.core.prompts.loop_prompts import (  # noqa: E402
    CONTEXT_EXTRACTION_FALLBACK_SYSTEM_PROMPT,
    CONTEXT_EXTRACTION_SYSTEM_PROMPT,
)
from toolrelay.infrastructure.llm.structured_output import (  # noqa: E402
    StructuredOutputPolicy,
    error_status_code,
    is_schema_rejection,
)

litellm.suppress_debug_info = True
litellm.drop_params = True

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 60


class LiteLLMProvider:
    """
    Provider-agnostic adapter powered by LiteLLM.

    Implements ``LLMProviderProtocol``. No retry with backoff happens here:
    the only second attempt is the unconstrained fallback after a schema
    rejection.

    Args:
        default_model: Model alias or model string used for every call.
        models: Alias map (``{"main": "gpt-4o-mini"}``).
        timeout: Per-request timeout in seconds.
        structured_output_supported: Predicate deciding whether a resolved
            model string gets a schema-constrained attempt.
        tracing_config: ``{"enabled": bool, "path": str}`` for JSONL tracing.
    """

    def __init__(
        self,
        *,
        default_model: str = DEFAULT_MODEL,
        models: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        structured_output_supported: Callable[[str], bool] | None = None,
        tracing_config: dict[str, Any] | None = None,
    ) -> None:
        self.logger = structlog.get_logger(__name__).bind(component="llm_provider")
        self.default_model = default_model
        self.models: dict[str, str] = dict(models or {})
        self.timeout = timeout
        self._structured_output_supported = (
            structured_output_supported or StructuredOutputPolicy()
        )
        self.tracing_config: dict[str, Any] = dict(tracing_config or {})

        self.logger.debug(
            "llm_provider_initialized",
            default_model=self.default_model,
            model_aliases=list(self.models.keys()),
        )

    def _resolve_model(self, model_alias: str | None = None) -> str:
        """Resolve a model alias to a LiteLLM model string.

        Unknown aliases are returned as-is so direct model strings work.
        """
        alias = model_alias or self.default_model
        resolved = self.models.get(alias, alias)
        self.logger.debug("model_resolved", alias=alias, resolved=resolved)
        return resolved

    async def generate(
        self,
        messages: list[dict[str, Any]],
        mode: GenerationMode = GenerationMode.TOOL_CALL,
    ) -> str:
        """
        Produce raw model text, structured first, free-form on rejection.

        Args:
            messages: Chat messages with 'role' and 'content'.
            mode: Response shape to request.

        Returns:
            Raw completion text ("" when the model returned no content).

        Raises:
            ProviderError: On transport or auth failure of either attempt.
        """
        model = self._resolve_model()
        json_schema = (
            CONTEXT_EXTRACTION_JSON_SCHEMA
            if mode == GenerationMode.SUMMARIZE
            else TOOL_CALL_RESPONSE_JSON_SCHEMA
        )

        if self._structured_output_supported(model):
            try:
                return await self._complete(
                    model,
                    self._prepare_messages(messages, mode, structured=True),
                    response_format=response_format_for(json_schema),
                )
            except SchemaRejectedError as rejection:
                self.logger.warning(
                    "llm_structured_output_rejected",
                    model=model,
                    mode=mode.value,
                    status_code=rejection.status_code,
                    error=str(rejection)[:200],
                )
        else:
            self.logger.debug("llm_structured_output_skipped", model=model, mode=mode.value)

        return await self._complete(
            model,
            self._prepare_messages(messages, mode, structured=False),
            response_format=None,
        )

    async def complete_text(self, prompt: str) -> str:
        """Plain text completion for a single prompt, stripped.

        Raises:
            ProviderError: On any backend failure.
        """
        model = self._resolve_model()
        content = await self._complete(
            model, [{"role": "system", "content": prompt}], response_format=None
        )
        return content.strip()

    @staticmethod
    def _prepare_messages(
        messages: list[dict[str, Any]], mode: GenerationMode, *, structured: bool
    ) -> list[dict[str, Any]]:
        """Prefix summarize-mode calls with the context extraction system prompt."""
        if mode != GenerationMode.SUMMARIZE:
            return list(messages)
        system_prompt = (
            CONTEXT_EXTRACTION_SYSTEM_PROMPT
            if structured
            else CONTEXT_EXTRACTION_FALLBACK_SYSTEM_PROMPT
        )
        return [{"role": "system", "content": system_prompt}, *messages]

    async def _complete(
        self,
        model: str,
        messages: list[dict[str, Any]],
        *,
        response_format: dict[str, Any] | None,
    ) -> str:
        """Run one completion.

        Raises:
            SchemaRejectedError: ``response_format`` was set and the backend
                refused it.
            ProviderError: Any other failure.
        """
        litellm_kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": 0,
            "timeout": self.timeout,
            "drop_params": True,
        }
        if response_format is not None:
            litellm_kwargs["response_format"] = response_format

        start_time = time.time()
        self.logger.info(
            "llm_completion_started",
            model=model,
            message_count=len(messages),
            structured=response_format is not None,
        )

        try:
            response = await litellm.acompletion(**litellm_kwargs)
        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)
            status = error_status_code(e)
            await self._trace_interaction(
                messages=messages,
                response_content=None,
                model=model,
                token_stats={},
                latency_ms=latency_ms,
                success=False,
                error=str(e),
            )
            if response_format is not None and is_schema_rejection(e):
                raise SchemaRejectedError(
                    str(e), status_code=status, details={"model": model}
                ) from e

            self.logger.error(
                "llm_completion_failed",
                model=model,
                error_type=type(e).__name__,
                error=str(e)[:200],
                status_code=status,
            )
            raise ProviderError(
                f"LLM call failed: {e}",
                model=model,
                status_code=status,
                details={"error_type": type(e).__name__},
            ) from e

        latency_ms = int((time.time() - start_time) * 1000)
        content = self._extract_content(response)
        usage = self._extract_usage(response)

        self.logger.info(
            "llm_completion_success",
            model=model,
            tokens=usage.get("total_tokens", 0),
            latency_ms=latency_ms,
            content_length=len(content),
        )
        await self._trace_interaction(
            messages=messages,
            response_content=content,
            model=model,
            token_stats=usage,
            latency_ms=latency_ms,
            success=True,
        )
        return content

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Text of the first choice, "" when there is none."""
        choices = getattr(response, "choices", None)
        if not choices:
            return ""
        message = choices[0].message
        content = message.content or ""

        # Reasoning models may put content in reasoning_content
        if not content:
            reasoning_content = getattr(message, "reasoning_content", None)
            if reasoning_content:
                content = reasoning_content
        return content

    @staticmethod
    def _extract_usage(response: Any) -> dict[str, int]:
        """Extract token usage from response (handles both dict and object forms)."""
        raw_usage = getattr(response, "usage", None)
        if raw_usage is None:
            return {}
        if isinstance(raw_usage, dict):
            return raw_usage
        return {
            "total_tokens": getattr(raw_usage, "total_tokens", 0) or 0,
            "prompt_tokens": getattr(raw_usage, "prompt_tokens", 0) or 0,
            "completion_tokens": getattr(raw_usage, "completion_tokens", 0) or 0,
        }

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    async def _trace_interaction(
        self,
        messages: list[dict[str, Any]],
        response_content: str | None,
        model: str,
        token_stats: dict[str, int],
        latency_ms: int,
        success: bool,
        error: str | None = None,
    ) -> None:
        """Append one interaction to the trace file when tracing is enabled."""
        if not self.tracing_config.get("enabled", False):
            return

        trace_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "model": model,
            "messages": messages,
            "response": response_content,
            "usage": token_stats,
            "latency_ms": latency_ms,
            "success": success,
            "error": error,
        }
        await self._trace_to_file(trace_data)

    async def _trace_to_file(self, trace_data: dict[str, Any]) -> None:
        """Write trace data to JSONL file."""
        try:
            path = Path(self.tracing_config.get("path", "traces/llm_traces.jsonl"))
            if not path.parent.exists():
                path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(path, mode="a", encoding="utf-8") as f:
                await f.write(json.dumps(trace_data, default=str) + "\n")

        except OSError as e:
            self.logger.error("trace_file_write_failed", error=str(e))
