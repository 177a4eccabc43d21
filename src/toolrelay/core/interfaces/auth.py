"""
Authorization Handshake Protocol

One-shot wait for an authorization redirect during remote tool server
authorization. The engine awaits the result opaquely; the listener owns its
own lifecycle and exists only for a single pending authorization.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class AuthorizationResult:
    """Query parameters captured from the redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def succeeded(self) -> bool:
        return bool(self.code) and not self.error


class AuthorizationHandshakeProtocol(Protocol):
    """Protocol for a single pending authorization."""

    @property
    def redirect_uri(self) -> str:
        """URI the authorization server should redirect to."""
        ...

    async def wait_for_callback(self, timeout: float) -> AuthorizationResult:
        """Wait for the redirect.

        Raises:
            AuthorizationTimeoutError: If no redirect arrives in time.
        """
        ...
