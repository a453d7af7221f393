"""Resource commands.

- list: List server resources
- read: Print or save a resource
- create: Upload a local file as a resource
"""

from __future__ import annotations

import base64
from pathlib import Path
from typing import Annotated

import typer

from nanobot_cli.attachments import load_attachment
from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context
from nanobot_cli.formatters import format_json, format_success, format_table
from nanobot_cli.protocol.models import ReadResourceResult, Resource

app = typer.Typer(
    name="resources",
    help="List, read and upload server resources",
    no_args_is_help=True,
)


async def _list_resources() -> list[Resource]:
    async with client_context() as client:
        await client.connect()
        return await client.list_resources()


async def _read_resource(uri: str) -> ReadResourceResult:
    async with client_context() as client:
        await client.connect()
        return await client.read_resource(uri)


async def _create_resource(path: Path) -> str:
    attachment = load_attachment(path)
    async with client_context() as client:
        await client.connect()
        return await client.create_resource(attachment.name, attachment.base64, attachment.mime_type)


@app.command("list")
def list_resources(json_output: JsonOption = False) -> None:
    """List available resources.

    Examples:
        nanobot resources list
    """
    with handle_errors():
        resources = run(_list_resources())

        if json_output:
            print(format_json([r.model_dump(mode="json", by_alias=True) for r in resources]))
            return

        if not resources:
            console.print("[yellow]No resources found[/yellow]")
            return

        rows = [{"uri": r.uri, "name": r.name, "mime_type": r.mime_type} for r in resources]
        console.print(format_table(rows, title="Resources"))


@app.command()
def read(
    uri: Annotated[str, typer.Argument(help="Resource URI")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the first entry's content to a file"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Read a resource.

    Text is printed; binary content is only described unless --output is
    given.

    Examples:
        nanobot resources read nanobot://notes/today
        nanobot resources read nanobot://files/photo.png -o photo.png
    """
    with handle_errors():
        result = run(_read_resource(uri))

        if output is not None:
            if not result.contents:
                console.print(f"[yellow]Resource is empty:[/yellow] {uri}")
                raise typer.Exit(1)
            entry = result.contents[0]
            if entry.blob is not None:
                output.write_bytes(base64.b64decode(entry.blob))
            else:
                output.write_text(entry.text or "")
            console.print(format_success(f"Saved to {output}"))
            return

        if json_output:
            print(format_json(result.model_dump(mode="json", by_alias=True, exclude_none=True)))
            return

        for entry in result.contents:
            if entry.text is not None:
                console.print(entry.text, markup=False, highlight=False)
            else:
                size = len(base64.b64decode(entry.blob or ""))
                console.print(f"[dim]\\[{entry.mime_type or 'binary'}, {size} bytes][/dim]")


@app.command()
def create(
    path: Annotated[Path, typer.Argument(help="File to upload")],
    json_output: JsonOption = False,
) -> None:
    """Upload a file as a resource.

    Examples:
        nanobot resources create ./report.pdf
    """
    with handle_errors():
        uri = run(_create_resource(path))

        if json_output:
            print(format_json({"uri": uri}))
            return

        console.print(format_success("Resource created"))
        console.print(f"[bold]URI:[/bold] {uri}")
