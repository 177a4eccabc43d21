"""toolrelay CLI entry point."""

import typer
from rich.console import Console

from toolrelay.api.cli.commands import ask, auth, conversations, run, tools
from toolrelay.api.cli.context import CLIOptions
from toolrelay.application.debug_flags import DebugFlags

app = typer.Typer(
    name="toolrelay",
    help="toolrelay - LLM agent loop over MCP tool servers",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.command("run")(run.run_command)
app.command("ask")(ask.ask_command)
app.add_typer(tools.app, name="tools", help="Tool management")
app.add_typer(conversations.app, name="conversations", help="Conversation management")
app.add_typer(auth.app, name="auth", help="Tool server authorization")


@app.callback()
def main(
    ctx: typer.Context,
    config_path: str = typer.Option(None, "--config", help="Path to toolrelay.yaml"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable all debug output"),
    debug_llm: bool = typer.Option(False, "--debug-llm", help="Debug LLM calls"),
    debug_tools: bool = typer.Option(False, "--debug-tools", help="Debug tool calls"),
):
    """toolrelay agent CLI."""
    ctx.obj = CLIOptions(
        config_path=config_path,
        debug_flags=DebugFlags.resolve(
            debug=debug, debug_llm=debug_llm, debug_tools=debug_tools
        ),
    )


@app.command()
def version():
    """Show toolrelay version."""
    from toolrelay import __version__

    console.print(f"[bold blue]Version:[/bold blue] [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
