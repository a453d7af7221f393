"""Output formatters for the nanobot CLI.

Provides two output formats:
- JSON: Machine-readable format for scripting
- Table: Human-readable tabular format (default)

plus renderers for conversation messages and content blocks. Color is
auto-detected and disabled for piped output.
"""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nanobot_cli.services.models import (
    ContentBlock,
    ImageBlock,
    Message,
    MessageStatus,
    ResourceBlock,
    Role,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
)


def _should_use_color() -> bool:
    """Determine if color output should be used.

    Color is disabled when:
    - NO_COLOR environment variable is set
    - TERM is set to "dumb"
    - Output is piped (not a TTY)
    """
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return sys.stdout.isatty()


def get_console(force_color: bool | None = None) -> Console:
    """Get a Rich Console with appropriate color settings.

    Args:
        force_color: True forces color, False disables it, None auto-detects
    """
    if force_color is None:
        force_color = _should_use_color()

    return Console(
        force_terminal=force_color,
        no_color=not force_color,
        legacy_windows=False,
    )


def format_timestamp(timestamp: str | datetime | None, include_time: bool = True) -> str:
    """Format a timestamp for display.

    Returns:
        Formatted timestamp string or "N/A" if None
    """
    if timestamp is None:
        return "N/A"

    if isinstance(timestamp, str):
        try:
            dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        except ValueError:
            return timestamp
    else:
        dt = timestamp

    if include_time:
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    return dt.strftime("%Y-%m-%d")


def format_json(data: Any, pretty: bool = True) -> str:
    """Format data as JSON.

    Datetimes and other non-JSON values are rendered with ``str``.
    """
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)
    return json.dumps(data, ensure_ascii=False, default=str)


def format_table(
    data: list[dict[str, Any]],
    columns: list[str] | None = None,
    title: str | None = None,
    force_color: bool | None = None,
) -> str:
    """Format data as a rich table.

    Args:
        data: List of dictionaries to display as rows
        columns: Column keys to display (default: keys of the first row)
        title: Optional table title
        force_color: Force color output (None for auto-detect)

    Returns:
        Formatted table string
    """
    if not data:
        return "[dim]No data to display[/dim]"

    if columns is None:
        columns = list(data[0].keys())

    table = Table(title=title, show_header=True, header_style="bold magenta")
    for col in columns:
        table.add_column(col.replace("_", " ").title(), overflow="fold")

    for row in data:
        table.add_row(*(_format_value(row.get(col)) for col in columns))

    console = get_console(force_color)
    with console.capture() as capture:
        console.print(table)

    return capture.get()


def _format_value(value: Any) -> str:
    if value is None:
        return "[dim]N/A[/dim]"
    if isinstance(value, bool):
        return "[green]Yes[/green]" if value else "[red]No[/red]"
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            return "[dim]None[/dim]"
        if all(isinstance(x, str) for x in value):
            return escape(", ".join(value))
        return escape(str(value))
    if isinstance(value, dict):
        return escape(json.dumps(value, ensure_ascii=False))
    return escape(str(value))


def format_block(block: ContentBlock) -> str:
    """Render one content block as console markup."""
    if isinstance(block, TextBlock):
        return escape(block.text)
    if isinstance(block, ImageBlock):
        return f"[dim]\\[image {escape(block.mime_type)}][/dim]"
    if isinstance(block, ToolCallBlock):
        args = json.dumps(block.input, ensure_ascii=False)
        return f"[cyan]→ {escape(block.name)}[/cyan] [dim]{escape(args)}[/dim]"
    if isinstance(block, ToolResultBlock):
        color = "red" if block.is_error else "cyan"
        label = escape(block.name or "result")
        output = block.output if isinstance(block.output, str) else json.dumps(
            block.output, ensure_ascii=False, default=str
        )
        return f"[{color}]← {label}[/{color}] [dim]{escape(output)}[/dim]"
    if isinstance(block, ResourceBlock):
        if block.text:
            return escape(block.text)
        return f"[dim]\\[resource {escape(block.uri or block.mime_type or '')}][/dim]"
    return escape(str(block))


def format_message(message: Message) -> str:
    """Render a conversation message with a role header."""
    if message.role == Role.USER:
        header = "[bold blue]You[/bold blue]"
    else:
        header = "[bold green]Assistant[/bold green]"

    if message.status == MessageStatus.ERROR:
        header += " [red](error)[/red]"
    elif message.status == MessageStatus.STREAMING:
        header += " [yellow](incomplete)[/yellow]"

    body = "\n".join(format_block(block) for block in message.content)
    return f"{header}\n{body}" if body else header


def format_success(message: str) -> str:
    return f"[green]✓[/green] {message}"


def format_error(message: str) -> str:
    return f"[red]✗[/red] {message}"


def format_warning(message: str) -> str:
    return f"[yellow]⚠[/yellow] {message}"
