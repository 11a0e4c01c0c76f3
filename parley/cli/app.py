"""
Main CLI application for parley.

Usage:
    parley chat [OPTIONS]
    parley config show|validate
    parley version
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from parley import __version__
from parley.config import find_config_path, load_config
from parley.errors import ConfigError

app = typer.Typer(
    name="parley",
    help="Chat completions CLI for OpenAI, Azure and OpenRouter endpoints.",
)
config_app = typer.Typer(help="Configuration management")

app.add_typer(config_app, name="config")

console = Console()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _setup_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def _load(config: Path | None, cli_overrides: dict[str, Any] | None = None):
    try:
        return load_config(config or find_config_path(), cli_overrides=cli_overrides)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def chat(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file location"),
    api: Optional[str] = typer.Option(None, "--api", "-a", help="API flavor: openai or openrouter"),
    api_url: Optional[str] = typer.Option(None, "--api-url", "-u", help="Base API url"),
    api_version: Optional[str] = typer.Option(None, "--api-version", help="api-version GET parameter (Azure)"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model"),
    system_message: Optional[str] = typer.Option(
        None, "--system-message", "-s", help="System message; empty string disables it"
    ),
    reasoning_effort: Optional[str] = typer.Option(
        None, "--reasoning-effort", "-e", help="minimal, low, medium or high"
    ),
    reasoning_budget: Optional[int] = typer.Option(
        None, "--reasoning-budget", "-b", help="Reasoning budget in tokens (OpenRouter)"
    ),
    verbosity: Optional[str] = typer.Option(None, "--verbosity", "-v", help="low, medium or high"),
    min_history_tokens: Optional[int] = typer.Option(
        None, "--min-history-tokens", "-n", help="Keep at least that many tokens of history"
    ),
    max_history_tokens: Optional[int] = typer.Option(
        None, "--max-history-tokens", "-t", help="Keep at most that many tokens of history"
    ),
    stream: Optional[bool] = typer.Option(None, "--stream/--no-stream", help="Stream responses"),
    show_reasoning: Optional[bool] = typer.Option(
        None, "--show-reasoning/--hide-reasoning", help="Show model reasoning"
    ),
    show_token_usage: Optional[bool] = typer.Option(
        None, "--show-token-usage/--hide-token-usage", help="Show token usage"
    ),
    debug: bool = typer.Option(False, "--debug", help="Log requests and stream events"),
):
    """Start an interactive chat session."""
    from parley.cli.chat import ChatHandler
    from parley.llm.client import ChatClient

    _setup_logging(debug)
    cfg = _load(
        config,
        {
            "api.flavor": api,
            "api.url": api_url,
            "api.api_version": api_version,
            "model.name": model,
            "model.system_message": system_message,
            "model.reasoning_effort": reasoning_effort,
            "model.reasoning_budget": reasoning_budget,
            "model.verbosity": verbosity,
            "context.min_history_tokens": min_history_tokens,
            "context.max_history_tokens": max_history_tokens,
            "ui.stream": stream,
            "ui.show_reasoning": show_reasoning,
            "ui.show_token_usage": show_token_usage,
        },
    )
    try:
        auth = cfg.resolve_auth()
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(1)

    async def _run():
        client = ChatClient.from_config(cfg.to_client_config(auth))
        handler = ChatHandler(
            client,
            console=console,
            stream=cfg.ui.stream,
            show_reasoning=cfg.ui.show_reasoning,
            show_token_usage=cfg.ui.show_token_usage,
        )
        try:
            await handler.run_loop()
        finally:
            await client.aclose()

    asyncio.run(_run())


@config_app.command("show")
def config_show(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file location"),
):
    """Show effective config."""
    from parley.cli.output import OutputFormatter

    cfg = _load(config)
    OutputFormatter(console).format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file location"),
):
    """Validate config and credentials."""
    config_path = config or find_config_path()
    cfg = _load(config_path)
    try:
        auth = cfg.resolve_auth()
    except ConfigError as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)

    console.print("[green]Config is valid.[/green]")
    if config_path:
        console.print(f"  Loaded from: {config_path}")
    else:
        console.print("  [dim]No config file found, using defaults.[/dim]")
    console.print(f"  API: {cfg.api.flavor} ({cfg.api.url})")
    console.print(f"  Model: {cfg.model.name}")
    console.print(f"  Auth header: {auth.header}")


@app.command()
def version():
    """Show version."""
    console.print(f"parley v{__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
