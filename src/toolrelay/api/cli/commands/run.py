"""Run command - Send a request through the agent loop."""

import asyncio
import json
import uuid
from dataclasses import replace

import typer

from toolrelay.api.cli.context import configure_logging, get_options, load_config
from toolrelay.api.cli.output_formatter import ToolrelayConsole
from toolrelay.application.config import EngineConfigSchema
from toolrelay.application.debug_flags import DebugFlags
from toolrelay.application.factory import create_engine
from toolrelay.core.domain.errors import ConfigError, ToolrelayError
from toolrelay.core.domain.models import LoopBudget, LoopResult
from toolrelay.infrastructure.persistence.file_conversation_store import is_valid_conversation_id


def _error_to_json(error: ToolrelayError, conversation_id: str) -> str:
    return json.dumps(
        {
            "conversation_id": conversation_id,
            "status": "failed",
            "error": error.message,
            "error_type": error.kind,
            "details": error.details,
        },
        ensure_ascii=False,
        default=str,
    )


def run_command(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Request for the agent"),
    conversation_id: str | None = typer.Option(
        None, "--conversation", "-c", help="Continue an existing conversation"
    ),
    config_path: str | None = typer.Option(
        None, "--config", help="Config file (overrides global --config)"
    ),
    max_iterations: int | None = typer.Option(
        None, "--max-iterations", min=1, help="Override loop.max_iterations"
    ),
    max_duration: float | None = typer.Option(
        None, "--max-duration", min=0.001, help="Override loop.max_duration_seconds"
    ),
    output_format: str = typer.Option(
        "text",
        "--output-format",
        "-f",
        help="Output format: 'text' (default, human-readable) or 'json' (machine-parseable)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Run one request through the agent loop.

    Examples:
        # Start a new conversation
        toolrelay run "List the files in the project root"

        # Continue a conversation
        toolrelay run "Now open README.md" --conversation abc-123

        # Machine-readable output
        toolrelay run "Summarize the open issues" --output-format json
    """
    if output_format not in ("text", "json"):
        raise typer.BadParameter(
            f"Invalid output format: {output_format}. Must be 'text' or 'json'"
        )

    options = get_options(ctx)
    flags = options.debug_flags
    if debug:
        flags = DebugFlags(llm=True, tools=True, all=True)
    configure_logging(flags)

    config = load_config(ctx, config_path)
    budget = config.loop.to_budget()
    if max_iterations is not None:
        budget = replace(budget, max_iterations=max_iterations)
    if max_duration is not None:
        budget = replace(budget, max_duration_seconds=max_duration)

    conversation_id = conversation_id or uuid.uuid4().hex[:12]
    tr_console = ToolrelayConsole(debug=flags.any)
    if output_format == "text":
        tr_console.print_system_message(f"Conversation: {conversation_id}", "info")

    try:
        if not is_valid_conversation_id(conversation_id):
            raise ConfigError(
                f"Invalid conversation id: {conversation_id!r}",
                details={"field": "conversation_id"},
            )
        result = asyncio.run(_run(config, conversation_id, message, budget))
    except ToolrelayError as e:
        if output_format == "json":
            print(_error_to_json(e, conversation_id))
        else:
            tr_console.print_error(e.message, e)
        raise typer.Exit(1) from e

    if output_format == "json":
        print(json.dumps(result.to_dict(), ensure_ascii=False))
    else:
        tr_console.print_result(result)


async def _run(
    config: EngineConfigSchema,
    conversation_id: str,
    message: str,
    budget: LoopBudget,
) -> LoopResult:
    async with create_engine(config) as engine:
        return await engine.loop.run(conversation_id, message, budget=budget)
