"""Tools command - List tools advertised by the configured servers."""

import asyncio

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from toolrelay.api.cli.context import configure_logging, get_options, load_config
from toolrelay.application.factory import create_engine
from toolrelay.core.domain.errors import ToolrelayError

app = typer.Typer(help="Tool management")
console = Console()


@app.command("list")
def list_tools(ctx: typer.Context):
    """List available tools."""
    configure_logging(get_options(ctx).debug_flags)
    config = load_config(ctx)

    async def _list_tools() -> list[tuple[str, str, str]]:
        rows: list[tuple[str, str, str]] = []
        async with create_engine(config) as engine:
            for server_name in engine.registry.server_names():
                try:
                    descriptors = await engine.registry.list_tools(server_name)
                except ToolrelayError as e:
                    console.print(f"[red]{server_name}: {escape(e.message)}[/red]")
                    continue
                for descriptor in descriptors:
                    rows.append((descriptor.name, server_name, descriptor.description))
        return rows

    rows = asyncio.run(_list_tools())
    if not rows:
        console.print(
            "[yellow]No tools available. Configure mcp_servers in toolrelay.yaml.[/yellow]"
        )
        return

    table = Table(title="Available Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Server", style="magenta")
    table.add_column("Description", style="white")
    for name, server_name, description in rows:
        table.add_row(name, server_name, description)
    console.print(table)
