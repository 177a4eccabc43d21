"""
Structured Output Policy

Decides whether a model is asked for schema-constrained output and whether a
backend error means "schema mode rejected" (recoverable by falling back to
free-form generation) rather than a real transport or auth failure.
"""

from collections.abc import Iterable
from typing import Any

# Substrings in a backend error message that point at schema mode
SCHEMA_ERROR_KEYWORDS = ("json_schema", "response_format", "schema")

# Client-error statuses that backends use to refuse a request shape
REJECTION_STATUS_CODES = frozenset({400, 422})

# Never a schema problem, regardless of message text
AUTH_STATUS_CODES = frozenset({401, 403})


class StructuredOutputPolicy:
    """
    Denylist of models known not to support JSON schema mode.

    Matching is a case-insensitive substring test against the resolved model
    string. The default denylist is empty: every model gets a structured
    attempt first.

    Instances are callable so they can be passed wherever a
    ``Callable[[str], bool]`` predicate is expected.
    """

    def __init__(self, denylist: Iterable[str] = ()) -> None:
        self._denylist = tuple(entry.lower() for entry in denylist if entry)

    @property
    def denylist(self) -> tuple[str, ...]:
        return self._denylist

    def supports(self, model: str) -> bool:
        """Return True if structured output should be attempted for ``model``."""
        lowered = model.lower()
        return not any(entry in lowered for entry in self._denylist)

    def __call__(self, model: str) -> bool:
        return self.supports(model)


def error_status_code(error: Exception) -> int | None:
    """Read the HTTP status from a backend exception, if it carries one."""
    for attr in ("status_code", "status", "http_status"):
        value: Any = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_schema_rejection(error: Exception) -> bool:
    """
    Check whether an error from a schema-constrained call is a schema rejection.

    Auth statuses are never rejections. Otherwise the message mentioning
    schema mode, or a 400/422 status, counts as a rejection.
    """
    status = error_status_code(error)
    if status in AUTH_STATUS_CODES:
        return False

    error_msg = str(error).lower()
    if any(keyword in error_msg for keyword in SCHEMA_ERROR_KEYWORDS):
        return True

    return status in REJECTION_STATUS_CODES
