"""Prompt commands."""

from __future__ import annotations

import typer

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context
from nanobot_cli.formatters import format_json, format_table
from nanobot_cli.protocol.models import Prompt

app = typer.Typer(
    name="prompts",
    help="List server prompts",
    no_args_is_help=True,
)


async def _list_prompts() -> list[Prompt]:
    async with client_context() as client:
        await client.connect()
        return await client.list_prompts()


@app.command("list")
def list_prompts(json_output: JsonOption = False) -> None:
    """List available prompts.

    Examples:
        nanobot prompts list
    """
    with handle_errors():
        prompts = run(_list_prompts())

        if json_output:
            print(format_json([p.model_dump(mode="json", by_alias=True) for p in prompts]))
            return

        if not prompts:
            console.print("[yellow]No prompts found[/yellow]")
            return

        rows = [
            {
                "name": p.name,
                "description": p.description,
                "arguments": [a.name for a in p.arguments],
            }
            for p in prompts
        ]
        console.print(format_table(rows, title="Prompts"))
