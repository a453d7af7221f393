"""Chat commands.

``send`` posts a message and renders the assistant's reply as it streams
in, until the server reports the run as done.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape

from nanobot_cli.attachments import load_attachment
from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context, get_chat_service
from nanobot_cli.formatters import format_block, format_json, format_warning
from nanobot_cli.services.exceptions import OperationError
from nanobot_cli.services.models import ChatState, MessageStatus, Role, TextBlock

app = typer.Typer(
    name="chat",
    help="Talk to an agent",
    no_args_is_help=True,
)


class ReplyPrinter:
    """State listener that prints the streaming reply incrementally.

    Text is written as it grows; other blocks are printed once, on their
    own line, when they are appended.
    """

    def __init__(self, out: Console) -> None:
        self.out = out
        self.message_id: str | None = None
        self.blocks = 0
        self.chars = 0

    def __call__(self, state: ChatState) -> None:
        if not state.messages:
            return
        message = state.messages[-1]
        if message.role != Role.ASSISTANT or message.status == MessageStatus.ERROR:
            return

        if message.id != self.message_id:
            self.message_id = message.id
            self.blocks = 0
            self.chars = 0

        while self.blocks < len(message.content):
            block = message.content[self.blocks]
            if isinstance(block, TextBlock):
                self.out.print(block.text[self.chars:], end="", markup=False, highlight=False)
                self.chars = len(block.text)
                if self.blocks == len(message.content) - 1:
                    # may still grow
                    break
            else:
                if self.chars:
                    self.out.print()
                self.out.print(format_block(block))
            self.blocks += 1
            self.chars = 0


async def _send(
    text: str,
    thread_id: str | None,
    agent_id: str | None,
    attach: list[Path],
    timeout: float | None,
    live: bool,
) -> dict[str, Any]:
    attachments = [load_attachment(path) for path in attach]

    async with client_context() as client:
        chat = get_chat_service(client)
        if not await chat.connect():
            raise OperationError(
                "Failed to connect",
                details={"error": chat.state.connection_error},
            )

        if thread_id:
            await chat.select_thread(thread_id)
        if agent_id:
            chat.select_agent(agent_id)
        if live:
            chat.add_listener(ReplyPrinter(console))

        subscription = await chat.send_message(text, attachments)
        if subscription is not None:
            try:
                await asyncio.wait_for(chat.wait_for_reply(), timeout)
            except asyncio.TimeoutError:
                chat.fail_streaming_message("Timed out waiting for reply")

        reply = chat.state.messages[-1]
        return {
            "thread_id": chat.state.current_thread_id,
            "message": reply.model_dump(mode="json", by_alias=True),
            "status": reply.status.value,
            "text": reply.text,
        }


@app.command()
def send(
    text: Annotated[str, typer.Argument(help="Message text")],
    thread: Annotated[
        str | None,
        typer.Option("--thread", "-t", help="Continue an existing thread"),
    ] = None,
    agent: Annotated[
        str | None,
        typer.Option("--agent", "-a", help="Agent to answer (default: first listed)"),
    ] = None,
    attach: Annotated[
        list[Path] | None,
        typer.Option("--attach", help="File to attach (repeatable)"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Seconds to wait for the reply"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Send a message and stream the reply.

    Examples:
        nanobot chat send "What's on my calendar today?"
        nanobot chat send "Summarize this" --attach report.pdf
        nanobot chat send "And tomorrow?" --thread 4f1c --json
    """
    with handle_errors():
        outcome = run(_send(text, thread, agent, attach or [], timeout, live=not json_output))

        if json_output:
            print(format_json(outcome))
        else:
            console.print()

        if outcome["status"] == MessageStatus.ERROR.value:
            if not json_output:
                console.print(f"[red]{escape(outcome['text'])}[/red]")
            raise typer.Exit(1)

        if outcome["status"] == MessageStatus.STREAMING.value and not json_output:
            console.print(format_warning("Stream ended before the reply was complete"))

        if not json_output:
            console.print(f"[dim]thread: {outcome['thread_id']}[/dim]")
