"""Agent commands."""

from __future__ import annotations

import typer

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context
from nanobot_cli.formatters import format_json, format_table
from nanobot_cli.protocol.models import Agent

app = typer.Typer(
    name="agents",
    help="List agents available for chat",
    no_args_is_help=True,
)


async def _list_agents() -> list[Agent]:
    async with client_context() as client:
        await client.connect()
        return await client.list_agents()


@app.command("list")
def list_agents(json_output: JsonOption = False) -> None:
    """List agents.

    The first agent is the one chat uses when --agent is not given.

    Examples:
        nanobot agents list
    """
    with handle_errors():
        agents = run(_list_agents())

        if json_output:
            print(format_json([a.model_dump(mode="json", by_alias=True) for a in agents]))
            return

        if not agents:
            console.print("[yellow]No agents found[/yellow]")
            return

        rows = [
            {"id": a.id, "name": a.name, "model": a.model, "description": a.description}
            for a in agents
        ]
        console.print(format_table(rows, title="Agents"))
