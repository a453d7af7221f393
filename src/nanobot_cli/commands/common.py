"""Helpers shared by the command groups.

Commands are synchronous Typer callbacks; each one runs its coroutine with
``asyncio.run`` inside ``handle_errors``, which turns the exception
hierarchies of every layer into a red console message and an exit code:
2 for invalid input or configuration, 1 for failed operations.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterator
from contextlib import contextmanager
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console

from nanobot_cli.exceptions import NotConfiguredError
from nanobot_cli.protocol.exceptions import ProtocolError, SessionExpiredError
from nanobot_cli.services.exceptions import OperationError, ServiceError, ValidationError
from nanobot_cli.transport.exceptions import HttpError, TransportError

T = TypeVar("T")

console = Console()

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        "-j",
        help="Output in JSON format",
    ),
]


def run(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Translate errors raised inside a command into exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except ValidationError as e:
        console.print(f"[red]Validation error:[/red] {e.message}")
        raise typer.Exit(2)
    except NotConfiguredError as e:
        console.print(f"[red]Not configured:[/red] {e}")
        raise typer.Exit(2)
    except OperationError as e:
        console.print(f"[red]Operation failed:[/red] {e.message}")
        if e.details:
            console.print(f"[dim]Details: {e.details}[/dim]")
        raise typer.Exit(1)
    except ServiceError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except SessionExpiredError:
        console.print("[red]Session expired:[/red] the server rejected the session after reconnecting")
        raise typer.Exit(1)
    except ProtocolError as e:
        console.print(f"[red]Server error:[/red] {e}")
        raise typer.Exit(1)
    except HttpError as e:
        console.print(f"[red]HTTP error:[/red] {e}")
        raise typer.Exit(1)
    except TransportError as e:
        console.print(f"[red]Connection error:[/red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        raise typer.Exit(2)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/red] {str(e)}")
        raise typer.Exit(1)
