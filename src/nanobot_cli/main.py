"""Main CLI entry point for nanobot."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from nanobot_cli import __version__
from nanobot_cli import container
from nanobot_cli.commands import agents, chat, config, prompts, resources, session, threads, tools
from nanobot_cli.config import Config
from nanobot_cli.log import configure_logging

app = typer.Typer(
    name="nanobot",
    help="nanobot CLI - chat with nanobot agents and call MCP tools from the terminal",
    no_args_is_help=True,
    add_completion=False,
)

app.command()(session.connect)
app.command()(session.disconnect)

# Register command groups
app.add_typer(tools.app, name="tools")
app.add_typer(resources.app, name="resources")
app.add_typer(prompts.app, name="prompts")
app.add_typer(agents.app, name="agents")
app.add_typer(threads.app, name="threads")
app.add_typer(chat.app, name="chat")
app.add_typer(config.app, name="config")

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"nanobot CLI version: {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr"),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Configuration file to load"),
    ] = None,
) -> None:
    """
    nanobot CLI - command-line client for a nanobot server.

    Speaks MCP over HTTP: one JSON-RPC request per POST, with replies to chat
    messages streamed back per thread.

    Use 'nanobot COMMAND --help' for help with specific commands.
    """
    try:
        if config_path is not None:
            container.set_override("config", Config.load(config_path))
        cfg = container.get_config()
    except ValueError as e:
        if ctx.invoked_subcommand != "config":
            console.print(f"[red]Configuration error:[/red] {e}")
            raise typer.Exit(2)
        # config commands must still run to repair a broken file
        configure_logging("debug" if verbose else "warning")
        return

    level = "debug" if verbose or cfg.output.verbose else cfg.logging.level
    configure_logging(level, color=cfg.output.color)


def cli_main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
