"""Thread commands.

- list: List conversation threads
- show: Print a thread's history
- delete: Delete a thread on the server
"""

from __future__ import annotations

from typing import Annotated

import typer

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context, get_chat_service
from nanobot_cli.formatters import format_json, format_message, format_success, format_table
from nanobot_cli.services.models import Message, Thread

app = typer.Typer(
    name="threads",
    help="Browse and delete conversation threads",
    no_args_is_help=True,
)


async def _list_threads() -> list[Thread]:
    async with client_context() as client:
        await client.connect()
        chat = get_chat_service(client)
        await chat.load_threads()
        return chat.state.threads


async def _thread_messages(thread_id: str) -> list[Message]:
    async with client_context() as client:
        await client.connect()
        chat = get_chat_service(client)
        await chat.select_thread(thread_id)
        return chat.state.messages


async def _delete_thread(thread_id: str) -> None:
    async with client_context() as client:
        await client.connect()
        await client.delete_thread(thread_id)


@app.command("list")
def list_threads(json_output: JsonOption = False) -> None:
    """List threads, most recently updated first.

    Examples:
        nanobot threads list
    """
    with handle_errors():
        threads = sorted(run(_list_threads()), key=lambda t: t.updated_at, reverse=True)

        if json_output:
            print(format_json([t.model_dump(mode="json") for t in threads]))
            return

        if not threads:
            console.print("[yellow]No threads found[/yellow]")
            return

        rows = [{"id": t.id, "title": t.title, "updated_at": t.updated_at} for t in threads]
        console.print(format_table(rows, title="Threads"))


@app.command()
def show(
    thread_id: Annotated[str, typer.Argument(help="Thread id")],
    json_output: JsonOption = False,
) -> None:
    """Print the message history of a thread.

    Examples:
        nanobot threads show t1
    """
    with handle_errors():
        messages = run(_thread_messages(thread_id))

        if json_output:
            print(format_json([m.model_dump(mode="json", by_alias=True) for m in messages]))
            return

        if not messages:
            console.print(f"[yellow]No messages in thread[/yellow] {thread_id}")
            return

        for message in messages:
            console.print(format_message(message))
            console.print()


@app.command()
def delete(
    thread_id: Annotated[str, typer.Argument(help="Thread id")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
) -> None:
    """Delete a thread.

    Examples:
        nanobot threads delete t1 --yes
    """
    if not yes:
        confirm = typer.confirm(f"Are you sure you want to delete thread '{thread_id}'?")
        if not confirm:
            console.print("[yellow]Operation cancelled[/yellow]")
            raise typer.Exit(0)

    with handle_errors():
        run(_delete_thread(thread_id))
        console.print(format_success(f"Thread deleted: {thread_id}"))
