"""
Unit tests for OAuthCallbackListener

Runs the listener on an ephemeral port and drives it with an aiohttp client.
"""

import asyncio

import aiohttp
import pytest

from toolrelay.core.domain.errors import AuthorizationTimeoutError
from toolrelay.infrastructure.auth.oauth_callback import OAuthCallbackListener


async def fetch(url: str) -> tuple[int, str]:
    async with aiohttp.ClientSession() as session:
        async with session.get(url) as response:
            return response.status, await response.text()


class TestOAuthCallbackListener:
    @pytest.mark.asyncio
    async def test_captures_code_and_state(self) -> None:
        async with OAuthCallbackListener(port=0, host="127.0.0.1") as listener:
            waiter = asyncio.create_task(listener.wait_for_callback(timeout=5))

            status, body = await fetch(f"{listener.redirect_uri}?code=abc123&state=xyz")
            result = await waiter

        assert status == 200
        assert "Authorization Successful!" in body
        assert result.code == "abc123"
        assert result.state == "xyz"
        assert result.error is None
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_error_redirect(self) -> None:
        async with OAuthCallbackListener(port=0, host="127.0.0.1") as listener:
            status, body = await fetch(
                f"{listener.redirect_uri}?error=access_denied"
                "&error_description=%3Cb%3Euser%20said%20no%3C%2Fb%3E"
            )
            result = await listener.wait_for_callback(timeout=1)

        assert status == 200
        assert "OAuth Authorization Failed" in body
        assert "&lt;b&gt;user said no&lt;/b&gt;" in body
        assert result.error == "access_denied"
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_missing_code(self) -> None:
        async with OAuthCallbackListener(port=0, host="127.0.0.1") as listener:
            _, body = await fetch(listener.redirect_uri)
            result = await listener.wait_for_callback(timeout=1)

        assert "No authorization code received." in body
        assert result.code is None
        assert not result.succeeded

    @pytest.mark.asyncio
    async def test_health_page_and_404(self) -> None:
        async with OAuthCallbackListener(port=0, host="127.0.0.1") as listener:
            base = f"http://127.0.0.1:{listener.port}"
            health_status, health_body = await fetch(f"{base}/")
            missing_status, _ = await fetch(f"{base}/elsewhere")

        assert health_status == 200
        assert "This listener is running to handle OAuth callbacks." in health_body
        assert missing_status == 404

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        async with OAuthCallbackListener(port=0, host="127.0.0.1") as listener:
            with pytest.raises(AuthorizationTimeoutError) as exc_info:
                await listener.wait_for_callback(timeout=0.05)

        assert exc_info.value.details["redirect_uri"].endswith("/callback")

    @pytest.mark.asyncio
    async def test_wait_requires_running_listener(self) -> None:
        listener = OAuthCallbackListener(port=0)

        with pytest.raises(RuntimeError):
            await listener.wait_for_callback(timeout=1)

    @pytest.mark.asyncio
    async def test_port_resolved_and_released(self) -> None:
        listener = OAuthCallbackListener(port=0, host="127.0.0.1")

        await listener.start()
        assert listener.is_running
        assert listener.port > 0
        assert listener.redirect_uri == f"http://127.0.0.1:{listener.port}/callback"

        await listener.stop()
        assert not listener.is_running

    def test_default_redirect_uri(self) -> None:
        assert OAuthCallbackListener().redirect_uri == "http://localhost:3000/callback"
