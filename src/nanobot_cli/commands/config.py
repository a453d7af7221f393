"""Configuration management commands.

- show: Display the effective configuration
- init: Write a configuration template
- validate: Check a configuration file
- set-server: Save the server URL

Unlike the other command groups these talk to the configuration system and
the state store directly; no server connection is made.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.config import Config, normalize_url
from nanobot_cli.container import get_config, get_store
from nanobot_cli.formatters import format_json, format_success
from nanobot_cli.storage import SERVER_URL_KEY, SESSION_KEY

app = typer.Typer(
    name="config",
    help="Manage CLI configuration",
    no_args_is_help=True,
)

DEFAULT_CONFIG_DIR = Path.home() / ".nanobot"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"


@app.command()
def show(json_output: JsonOption = False) -> None:
    """Display current configuration.

    Configuration precedence:
    1. Environment variables (NANOBOT_*)
    2. --config file
    3. Project file (./.nanobot.yaml)
    4. Global file (~/.nanobot/config.yaml)
    5. Defaults

    Examples:
        nanobot config show
        nanobot config show --json
    """
    with handle_errors():
        config = get_config()
        saved_url = run(get_store().get(SERVER_URL_KEY))
        data = config.to_dict()

        if json_output:
            data["saved_server_url"] = saved_url
            print(format_json(data))
            return

        console.print("[bold]Current Configuration[/bold]\n")
        for section, values in data.items():
            table = Table(title=f"{section.title()} Settings", show_header=True)
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            for key, value in values.items():
                table.add_row(key, "[dim]not set[/dim]" if value is None else str(value))
            console.print(table)
            console.print()

        if not config.server.url:
            console.print(f"[bold]Saved server URL:[/bold] {saved_url or '[dim]not set[/dim]'}")

        console.print("\n[dim]Set via environment variables:[/dim]")
        console.print("[dim]  NANOBOT_SERVER_URL, NANOBOT_TIMEOUT, NANOBOT_LOG_LEVEL, ...[/dim]")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing configuration file"),
    ] = False,
    path: Annotated[
        Path | None,
        typer.Option("--path", "-p", help="Where to write the file"),
    ] = None,
) -> None:
    """Initialize a configuration file.

    Examples:
        nanobot config init
        nanobot config init --path ./.nanobot.yaml --force
    """
    config_file = path or DEFAULT_CONFIG_FILE

    if config_file.exists() and not force:
        console.print(
            f"[yellow]Configuration file already exists:[/yellow] {config_file}\n"
            "Use --force to overwrite."
        )
        raise typer.Exit(0)

    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        config_file.write_text(Config.get_template())
    except OSError as e:
        console.print(f"[red]Error creating configuration file:[/red] {str(e)}")
        raise typer.Exit(1)

    console.print(format_success(f"Configuration file created: {config_file}\n"))
    console.print("[bold]Or use environment variables:[/bold]")
    console.print("[dim]export NANOBOT_SERVER_URL=http://localhost:8080[/dim]")


@app.command()
def validate(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to configuration file to validate"),
    ] = None,
) -> None:
    """Validate a configuration file.

    Parses the file, checks every setting against its type and range and
    reports risky values as warnings. Without --config the global file is
    checked.

    Examples:
        nanobot config validate
        nanobot config validate --config ./.nanobot.yaml
    """
    config_file = config_path or DEFAULT_CONFIG_FILE
    if not config_file.exists():
        if config_path is None:
            console.print(
                "[yellow]No configuration file found.[/yellow]\n"
                f"Expected at: {DEFAULT_CONFIG_FILE}\n"
                "Run 'nanobot config init' to create one."
            )
            raise typer.Exit(0)
        console.print(f"[red]Configuration file not found:[/red] {config_file}")
        raise typer.Exit(1)

    console.print(f"[bold]Validating:[/bold] {config_file}\n")

    try:
        config = Config.load(config_file, skip_global=True, skip_project=True)
    except ValueError as e:
        console.print("[red]✗ Validation failed[/red]\n")
        console.print(f"  [red]•[/red] {e}")
        raise typer.Exit(1)

    warnings = config.validate_config()
    if warnings:
        console.print("[yellow]✓ Validation passed with warnings[/yellow]\n")
        console.print("[bold]Warnings:[/bold]")
        for warning in warnings:
            console.print(f"  [yellow]•[/yellow] {warning}")
    else:
        console.print("[green]✓ Configuration is valid[/green]")


@app.command("set-server")
def set_server(
    url: Annotated[str, typer.Argument(help="Server base URL, e.g. http://localhost:8080")],
) -> None:
    """Save the server URL used when none is configured.

    The saved session is forgotten, since it belongs to the previous server.

    Examples:
        nanobot config set-server https://nanobot.example.com
    """
    with handle_errors():
        normalized = normalize_url(url)

        async def _save() -> None:
            store = get_store()
            await store.set(SERVER_URL_KEY, normalized)
            await store.delete(SESSION_KEY)

        run(_save())
        console.print(format_success(f"Server URL saved: {normalized}"))

        if get_config().server.url and get_config().server.url != normalized:
            console.print(
                f"[yellow]Note:[/yellow] configured URL {get_config().server.url} takes precedence"
            )
