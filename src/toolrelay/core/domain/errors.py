"""Domain-specific exception types for toolrelay.

Two families live here:

- Loop-level errors (``ProviderError``, ``NoContentError``,
  ``BudgetExceededError``, ``CancelledError``) terminate a loop run and
  propagate to the caller unchanged.
- Per-call tool errors (``ToolNotFoundError``, ``ToolTimeoutError``,
  ``ToolExecutionError``) are absorbed by the dispatcher and turned into
  failed ``ToolCallResult`` values via ``tool_error_result``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from toolrelay.core.domain.models import ToolCallResult


@dataclass
class ToolrelayError(Exception):
    """Base exception for toolrelay domain errors."""

    message: str
    code: str = "toolrelay_error"
    details: Dict[str, Any] | None = None
    status_code: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}

    @property
    def kind(self) -> str:
        """Error kind name as reported to callers and to the model."""
        return type(self).__name__

    @property
    def partial_content(self) -> str | None:
        """Last assistant content produced before the failure, if any."""
        return (self.details or {}).get("partial_content")


class ProviderError(ToolrelayError):
    """Transport or auth failure of the LLM backend. Fatal to the loop run."""

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        status_code: int | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if model:
            details.setdefault("model", model)
        self.model = model
        super().__init__(
            message=message,
            code="provider_error",
            details=details,
            status_code=status_code,
        )


class SchemaRejectedError(ToolrelayError):
    """Backend refused schema-constrained generation.

    Internal to the provider adapter: always recovered by falling back to
    unconstrained generation and never surfaced to callers.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            code="schema_rejected",
            details=details,
            status_code=status_code,
        )


class NoContentError(ToolrelayError):
    """The model produced nothing usable."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="no_content", details=details)


class ToolError(ToolrelayError):
    """Base for per-call tool failures."""

    code_name = "tool_error"

    def __init__(
        self,
        message: str,
        *,
        tool_name: str | None = None,
        server_name: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if tool_name:
            details.setdefault("tool_name", tool_name)
        if server_name:
            details.setdefault("server_name", server_name)
        self.tool_name = tool_name
        self.server_name = server_name
        super().__init__(message=message, code=self.code_name, details=details)


class ToolNotFoundError(ToolError):
    """No registered tool server advertises the requested tool."""

    code_name = "tool_not_found"


class ToolTimeoutError(ToolError):
    """A tool call did not finish within its timeout."""

    code_name = "timeout"


class ToolExecutionError(ToolError):
    """A tool call failed on the server side or raised while executing."""

    code_name = "tool_execution_error"


class ToolServerConnectionError(ToolExecutionError):
    """The transport to a tool server dropped."""

    code_name = "tool_server_connection_error"


class BudgetExceededError(ToolrelayError):
    """The loop hit its iteration or wall-clock cap."""

    def __init__(
        self,
        message: str,
        *,
        limit: str,
        iterations: int,
        elapsed_seconds: float,
        partial_content: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        details.update(
            {
                "limit": limit,
                "iterations": iterations,
                "elapsed_seconds": round(elapsed_seconds, 3),
                "partial_content": partial_content,
            }
        )
        self.limit = limit
        self.iterations = iterations
        super().__init__(message=message, code="budget_exceeded", details=details)


class CancelledError(ToolrelayError):
    """Raised when a caller requested the loop to stop."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="cancelled", details=details)


class ConfigError(ToolrelayError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)


class AuthorizationTimeoutError(ToolrelayError):
    """No authorization redirect arrived before the deadline."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="authorization_timeout", details=details)


def tool_error_result(
    error: ToolrelayError,
    *,
    tool_name: str,
    server_name: str | None = None,
    duration_ms: int = 0,
) -> ToolCallResult:
    """Convert a per-call error into a failed ``ToolCallResult``."""
    from toolrelay.core.domain.models import ToolCallResult

    return ToolCallResult(
        tool_name=tool_name,
        server_name=server_name or "",
        success=False,
        content=str(error),
        error=str(error),
        error_type=error.kind,
        duration_ms=duration_ms,
    )
