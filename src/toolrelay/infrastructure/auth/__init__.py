"""Authorization helpers for remote tool servers."""

from toolrelay.infrastructure.auth.oauth_callback import OAuthCallbackListener

__all__ = ["OAuthCallbackListener"]
