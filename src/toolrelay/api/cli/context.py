"""Shared CLI state: global options, logging setup and config loading."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

import structlog
import typer

from toolrelay.application.config import EngineConfigSchema, load_engine_config
from toolrelay.application.debug_flags import DebugFlags
from toolrelay.core.domain.errors import ConfigError


@dataclass
class CLIOptions:
    """Global options stored on ``ctx.obj``."""

    config_path: str | None = None
    debug_flags: DebugFlags = field(default_factory=DebugFlags)


def configure_logging(flags: DebugFlags) -> None:
    """Send structlog output to stderr at the level the debug flags select."""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(flags.log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def get_options(ctx: typer.Context) -> CLIOptions:
    options = ctx.find_root().obj
    return options if isinstance(options, CLIOptions) else CLIOptions()


def load_config(ctx: typer.Context, config_path: str | None = None) -> EngineConfigSchema:
    """Load the engine config, exiting with code 1 on ``ConfigError``."""
    from toolrelay.api.cli.output_formatter import ToolrelayConsole

    options = get_options(ctx)
    try:
        return load_engine_config(config_path or options.config_path)
    except ConfigError as e:
        ToolrelayConsole(stderr=True).print_error(e.message, e)
        raise typer.Exit(1) from e
