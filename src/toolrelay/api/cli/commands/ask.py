"""Ask command - Plain text completion without tools."""

import asyncio

import typer

from toolrelay.api.cli.context import configure_logging, get_options, load_config
from toolrelay.api.cli.output_formatter import ToolrelayConsole
from toolrelay.application.factory import build_llm_provider
from toolrelay.core.domain.errors import ToolrelayError


def ask_command(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt text"),
):
    """Send a single prompt to the configured model and print the reply."""
    options = get_options(ctx)
    configure_logging(options.debug_flags)
    config = load_config(ctx)
    provider = build_llm_provider(config)

    try:
        reply = asyncio.run(provider.complete_text(prompt))
    except ToolrelayError as e:
        ToolrelayConsole(debug=options.debug_flags.any).print_error(e.message, e)
        raise typer.Exit(1) from e

    print(reply)
