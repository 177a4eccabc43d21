"""Auth command - Wait for an OAuth redirect from a remote tool server."""

import asyncio
import json

import typer
from rich.console import Console

from toolrelay.api.cli.context import configure_logging, get_options
from toolrelay.api.cli.output_formatter import ToolrelayConsole
from toolrelay.core.domain.errors import AuthorizationTimeoutError
from toolrelay.core.interfaces.auth import AuthorizationResult
from toolrelay.infrastructure.auth.oauth_callback import (
    DEFAULT_CALLBACK_PORT,
    OAuthCallbackListener,
)

app = typer.Typer(help="Tool server authorization")
console = Console()


@app.command("wait")
def wait_for_callback(
    ctx: typer.Context,
    port: int = typer.Option(DEFAULT_CALLBACK_PORT, "--port", help="Local callback port"),
    timeout: float = typer.Option(300, "--timeout", min=1, help="Seconds to wait"),
):
    """Listen on localhost for one OAuth redirect and print the captured values."""
    options = get_options(ctx)
    configure_logging(options.debug_flags)

    async def _wait() -> AuthorizationResult:
        async with OAuthCallbackListener(port=port) as listener:
            console.print(f"[blue]Redirect URI:[/blue] {listener.redirect_uri}")
            console.print("Waiting for authorization...")
            return await listener.wait_for_callback(timeout)

    try:
        result = asyncio.run(_wait())
    except AuthorizationTimeoutError as e:
        ToolrelayConsole(debug=options.debug_flags.any).print_error(e.message, e)
        raise typer.Exit(1) from e
    except OSError as e:
        ToolrelayConsole(debug=options.debug_flags.any).print_error(
            f"Cannot listen on port {port}: {e}", e
        )
        raise typer.Exit(1) from e

    print(
        json.dumps(
            {
                "code": result.code,
                "state": result.state,
                "error": result.error,
                "error_description": result.error_description,
            }
        )
    )
    if not result.succeeded:
        raise typer.Exit(1)
