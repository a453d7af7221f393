"""Tool commands.

- list: List the tools the server exposes
- call: Invoke a tool with JSON arguments
"""

from __future__ import annotations

import json
from typing import Annotated, Any

import typer

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context
from nanobot_cli.formatters import format_json, format_table
from nanobot_cli.protocol.models import CallToolResult, Tool
from nanobot_cli.services.exceptions import ValidationError

app = typer.Typer(
    name="tools",
    help="List and call server tools",
    no_args_is_help=True,
)


def parse_arguments(raw: str | None) -> dict[str, Any]:
    """Parse a JSON object given on the command line.

    Raises:
        ValidationError: Not valid JSON or not an object
    """
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Arguments are not valid JSON: {e.msg}")
    if not isinstance(value, dict):
        raise ValidationError("Arguments must be a JSON object")
    return value


async def _list_tools() -> list[Tool]:
    async with client_context() as client:
        await client.connect()
        return await client.list_tools()


async def _call_tool(name: str, arguments: dict[str, Any], run_async: bool) -> CallToolResult:
    async with client_context() as client:
        await client.connect()
        return await client.call_tool(name, arguments, run_async=run_async)


@app.command("list")
def list_tools(json_output: JsonOption = False) -> None:
    """List available tools.

    Examples:
        nanobot tools list
        nanobot tools list --json
    """
    with handle_errors():
        tools = run(_list_tools())

        if json_output:
            print(format_json([t.model_dump(mode="json", by_alias=True) for t in tools]))
            return

        if not tools:
            console.print("[yellow]No tools found[/yellow]")
            return

        rows = [{"name": t.name, "description": t.description} for t in tools]
        console.print(format_table(rows, title="Tools"))


@app.command()
def call(
    name: Annotated[str, typer.Argument(help="Tool name")],
    args: Annotated[
        str | None,
        typer.Option("--args", "-a", help="Tool arguments as a JSON object"),
    ] = None,
    run_async: Annotated[
        bool,
        typer.Option("--async", help="Ask the server to run the tool in the background"),
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Call a tool.

    Examples:
        nanobot tools call echo --args '{"text": "hi"}'
        nanobot tools call run --args '{"prompt": "hi", "thread_id": "t1"}' --async
    """
    with handle_errors():
        arguments = parse_arguments(args)
        result = run(_call_tool(name, arguments, run_async))

        if json_output:
            print(format_json(result.model_dump(mode="json", by_alias=True, exclude_none=True)))
        else:
            for item in result.content:
                if item.text is not None:
                    console.print(item.text, markup=False, highlight=False)
                else:
                    console.print(f"[dim]\\[{item.type} {item.mime_type or ''}][/dim]")

        if result.is_error:
            console.print(f"[red]Tool reported an error:[/red] {name}")
            raise typer.Exit(1)
