"""Rich output formatting for the toolrelay CLI."""

from typing import Any, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.theme import Theme

from toolrelay.core.domain.errors import ToolrelayError
from toolrelay.core.domain.models import LoopResult, Message

TOOLRELAY_THEME = Theme(
    {
        "assistant": "bold cyan",
        "user": "bold green",
        "system": "bold blue",
        "tool": "yellow",
        "error": "bold red",
        "warning": "bold yellow",
        "debug": "dim white",
        "info": "white",
    }
)


class ToolrelayConsole:
    """Console with toolrelay styling. Diagnostics go to stderr."""

    def __init__(self, debug: bool = False, stderr: bool = False):
        self.console = Console(theme=TOOLRELAY_THEME, stderr=stderr)
        self.debug_mode = debug

    def print_system_message(self, message: str, style: str = "system"):
        self.console.print(f"[{style}]{escape('[i]')} {escape(message)}[/{style}]")

    def print_result(self, result: LoopResult):
        """Print the final answer of a loop run."""
        self.console.print(
            Panel(
                Markdown(result.final_content or "_(no content)_"),
                title="[assistant]Assistant[/assistant]",
                title_align="left",
                border_style="cyan",
                padding=(0, 1),
            )
        )
        self.console.print(
            f"[debug]conversation={result.conversation_id} "
            f"iterations={result.iterations} "
            f"tool_calls={result.tool_calls_executed}[/debug]"
        )

    def print_error(self, message: str, exception: Optional[Exception] = None):
        """Print an error panel, titled with the error kind for domain errors."""
        title = "[Error]"
        if isinstance(exception, ToolrelayError):
            title = f"[{exception.kind}]"
        self.console.print(
            Panel(
                f"[X] {escape(message)}",
                title=title,
                title_align="left",
                border_style="red",
                padding=(0, 1),
            )
        )

        if isinstance(exception, ToolrelayError) and exception.partial_content:
            self.console.print(
                f"[warning]Partial answer:[/warning] {escape(exception.partial_content)}"
            )

        if exception and self.debug_mode:
            import traceback

            self.console.print("[debug]" + traceback.format_exc() + "[/debug]")

    def print_message(self, message: Message):
        """Print one stored conversation turn."""
        role = message.role.value
        if message.content:
            self.console.print(f"[{_role_style(role)}]{role}:[/] {escape(message.content)}")
        for call in message.tool_calls:
            self.console.print(f"[tool]  -> {call.name}[/tool] {escape(_compact(call.arguments))}")
        for result in message.tool_results:
            status = "ok" if result.success else f"{result.error_type}"
            label = escape(f"[{status}]")
            self.console.print(
                f"[tool]  <- {result.tool_name} {label}[/tool] {escape(result.content[:200])}"
            )


def _role_style(role: str) -> str:
    return role if role in ("assistant", "user", "system") else "tool"


def _compact(arguments: dict[str, Any]) -> str:
    import json

    return json.dumps(arguments, ensure_ascii=False, default=str)[:200]
