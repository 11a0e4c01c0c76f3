"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json

from rich.console import Console
from rich.syntax import Syntax
from rich.text import Text

from parley.llm.types import TokenUsage


def format_token_usage(usage: TokenUsage) -> str:
    """``in (cached) / out (reasoning)``, zero for unreported breakdowns."""
    return (
        f"{usage.tokens_in} ({usage.tokens_in_cached or 0}) / "
        f"{usage.tokens_out} ({usage.tokens_reasoning or 0})"
    )


class OutputFormatter:
    """Rich-based output formatting for the parley CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def prompt(self) -> None:
        self.console.print("[bold red]You:[/bold red] ", end="")

    def reasoning_header(self) -> None:
        self.console.print("\n[bold blue]Reasoning:[/bold blue] ", end="")

    def assistant_header(self) -> None:
        self.console.print("[bold green]Assistant:[/bold green] ", end="")

    def fragment(self, text: str) -> None:
        """Print streamed text as-is, without markup or a trailing newline."""
        self.console.print(text, end="", markup=False, highlight=False)

    def reasoning(self, text: str) -> None:
        self.console.print()
        self.console.print(
            Text.assemble(("Reasoning: ", "bold blue"), text.strip())
        )

    def response(self, text: str) -> None:
        self.console.print()
        self.console.print(Text.assemble(("Assistant: ", "bold green"), text))
        self.console.print()

    def token_usage(self, usage: TokenUsage) -> None:
        self.console.print(Text(format_token_usage(usage), style="blue"))

    def info(self, message: str) -> None:
        self.console.print(Text(message, style="blue"))

    def error(self, error: object) -> None:
        self.console.print(Text.assemble(("Error: ", "yellow"), (str(error), "yellow")))

    def format_config(self, config: dict) -> None:
        config_json = json.dumps(config, indent=2, default=str)
        self.console.print(Syntax(config_json, "json", theme="monokai"))
