"""
Logger seam for the loop and its components.

Loop components accept any object with these methods so tests can inject a
MagicMock and production wiring can pass a bound structlog logger.
"""

from typing import Any, Protocol


class LoggerProtocol(Protocol):
    """Structured logger: snake_case event name plus keyword fields."""

    def debug(self, event: str, **kwargs: Any) -> None: ...

    def info(self, event: str, **kwargs: Any) -> None: ...

    def warning(self, event: str, **kwargs: Any) -> None: ...

    def error(self, event: str, **kwargs: Any) -> None: ...

    def bind(self, **kwargs: Any) -> "LoggerProtocol":
        """Return a logger that adds ``kwargs`` to every event."""
        ...
