"""Conversations command - Inspect stored conversations."""

import asyncio

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from toolrelay.api.cli.context import get_options, load_config
from toolrelay.api.cli.output_formatter import ToolrelayConsole
from toolrelay.application.factory import build_store

app = typer.Typer(help="Conversation management")
console = Console()


@app.command("list")
def list_conversations(ctx: typer.Context):
    """List stored conversations, most recent first."""
    store = build_store(load_config(ctx))

    async def _list():
        rows = []
        for conversation_id in await store.list_conversations():
            messages = await store.load(conversation_id)
            last = messages[-1].created_at if messages else ""
            rows.append((conversation_id, str(len(messages)), last))
        return rows

    rows = asyncio.run(_list())

    table = Table(title="Conversations")
    table.add_column("Conversation ID", style="cyan")
    table.add_column("Messages", style="white", justify="right")
    table.add_column("Last Update", style="white")
    for row in rows:
        table.add_row(*row)
    console.print(table)


@app.command("show")
def show_conversation(
    ctx: typer.Context,
    conversation_id: str = typer.Argument(..., help="Conversation ID"),
):
    """Show every turn of a conversation."""
    store = build_store(load_config(ctx))

    try:
        messages = asyncio.run(store.load(conversation_id))
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    if not messages:
        console.print(f"[red]Conversation '{escape(conversation_id)}' not found[/red]")
        raise typer.Exit(1)

    tr_console = ToolrelayConsole(debug=get_options(ctx).debug_flags.any)
    console.print(f"\n[bold]Conversation:[/bold] {conversation_id}")
    for message in messages:
        tr_console.print_message(message)
