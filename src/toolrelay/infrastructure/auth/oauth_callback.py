"""
OAuth Callback Listener

A one-shot local HTTP listener that captures the authorization redirect
during a remote tool server's OAuth flow. One listener exists per pending
authorization; it is started and stopped by ``async with``:

    async with OAuthCallbackListener(port=3000) as listener:
        open_browser(auth_url(redirect_uri=listener.redirect_uri))
        result = await listener.wait_for_callback(timeout=300)
"""

from __future__ import annotations

import asyncio
import html
from typing import Any

import structlog
from aiohttp import web

from toolrelay.core.domain.errors import AuthorizationTimeoutError
from toolrelay.core.interfaces.auth import AuthorizationResult

DEFAULT_CALLBACK_PORT = 3000
DEFAULT_CALLBACK_HOST = "localhost"
CALLBACK_PATH = "/callback"

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; margin: 40px; text-align: center; }}
    .container {{ max-width: 500px; margin: 0 auto; }}
    .error {{ color: #dc3545; }}
    .success {{ color: #28a745; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>{heading}</h1>
    {body}
  </div>
</body>
</html>
"""


def _page(title: str, heading: str, body: str) -> web.Response:
    return web.Response(
        text=_PAGE.format(title=title, heading=heading, body=body),
        content_type="text/html",
    )


class OAuthCallbackListener:
    """
    Request-scoped OAuth redirect listener.

    Routes:
    - ``/callback``: captures ``code``, ``state``, ``error`` and
      ``error_description`` and completes the pending wait
    - ``/``: health page
    - anything else: 404
    """

    def __init__(
        self,
        port: int = DEFAULT_CALLBACK_PORT,
        host: str = DEFAULT_CALLBACK_HOST,
    ) -> None:
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None
        self._result: asyncio.Future[AuthorizationResult] | None = None
        self.logger = structlog.get_logger(__name__).bind(component="oauth_callback")

    @property
    def port(self) -> int:
        return self._port

    @property
    def redirect_uri(self) -> str:
        return f"http://{self._host}:{self._port}{CALLBACK_PATH}"

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    async def __aenter__(self) -> OAuthCallbackListener:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Bind the listener. Port 0 picks a free port."""
        if self._runner is not None:
            return

        app = web.Application()
        app.router.add_get(CALLBACK_PATH, self._handle_callback)
        app.router.add_get("/", self._handle_root)

        self._result = asyncio.get_running_loop().create_future()
        runner = web.AppRunner(app)
        await runner.setup()
        site = web.TCPSite(runner, self._host, self._port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise

        self._runner = runner
        if self._port == 0:
            self._port = runner.addresses[0][1]
        self.logger.info("oauth_callback_listening", redirect_uri=self.redirect_uri)

    async def stop(self) -> None:
        """Stop the listener and release the port."""
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        if self._result is not None and not self._result.done():
            self._result.cancel()
        self.logger.debug("oauth_callback_stopped", port=self._port)

    async def wait_for_callback(self, timeout: float) -> AuthorizationResult:
        """
        Wait for the redirect to arrive.

        Raises:
            AuthorizationTimeoutError: If no redirect arrives within ``timeout``.
            RuntimeError: If the listener was not started.
        """
        if self._result is None or self._runner is None:
            raise RuntimeError("OAuth callback listener is not running")

        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout=timeout)
        except asyncio.TimeoutError as exc:
            self.logger.warning("oauth_callback_timeout", timeout_seconds=timeout)
            raise AuthorizationTimeoutError(
                f"No OAuth callback received within {timeout:g}s",
                details={"redirect_uri": self.redirect_uri, "timeout_seconds": timeout},
            ) from exc

    async def _handle_callback(self, request: web.Request) -> web.Response:
        query = request.query
        result = AuthorizationResult(
            code=query.get("code") or None,
            state=query.get("state") or None,
            error=query.get("error") or None,
            error_description=query.get("error_description") or None,
        )
        self.logger.info(
            "oauth_callback_received",
            has_code=bool(result.code),
            error=result.error,
        )
        if self._result is not None and not self._result.done():
            self._result.set_result(result)

        if result.error:
            description = (
                f'<p class="error">Description: {html.escape(result.error_description)}</p>'
                if result.error_description
                else ""
            )
            return _page(
                "OAuth Error",
                "OAuth Authorization Failed",
                f'<p class="error">Error: {html.escape(result.error)}</p>{description}'
                "<p>You can close this window and try again.</p>",
            )
        if result.code:
            return _page(
                "OAuth Success",
                "Authorization Successful!",
                '<p class="success">The tool server has been authorized.</p>'
                "<p>You can close this window and return to the application.</p>",
            )
        return _page(
            "OAuth Error",
            "OAuth Authorization Failed",
            '<p class="error">No authorization code received.</p>'
            "<p>You can close this window and try again.</p>",
        )

    async def _handle_root(self, request: web.Request) -> web.Response:
        return _page(
            "OAuth Callback Listener",
            "OAuth Callback Listener",
            "<p>This listener is running to handle OAuth callbacks.</p>"
            "<p>Waiting for authorization...</p>",
        )
