"""Session commands.

- connect: Perform the initialize handshake and save the session id
- disconnect: Forget the saved session id
"""

from __future__ import annotations

from typing import Any

from nanobot_cli.commands.common import JsonOption, console, handle_errors, run
from nanobot_cli.container import client_context
from nanobot_cli.formatters import format_json, format_success


async def _connect() -> dict[str, Any]:
    async with client_context() as client:
        result = await client.connect()
        return {
            "server": result.server_info.name if result.server_info else None,
            "version": result.server_info.version if result.server_info else None,
            "protocol_version": result.protocol_version,
            "session_id": client.session_id,
            "capabilities": result.capabilities,
        }


async def _disconnect() -> None:
    async with client_context() as client:
        await client.disconnect()


def connect(json_output: JsonOption = False) -> None:
    """Connect to the nanobot server.

    Reuses the saved session when the server still accepts it.

    Examples:
        nanobot connect
        nanobot connect --json
    """
    with handle_errors():
        info = run(_connect())

        if json_output:
            print(format_json(info))
            return

        console.print(format_success("Connected"))
        console.print(f"[bold]Server:[/bold] {info['server'] or 'unknown'} {info['version'] or ''}")
        console.print(f"[bold]Protocol:[/bold] {info['protocol_version'] or 'unknown'}")
        console.print(f"[bold]Session:[/bold] {info['session_id'] or '[dim]none[/dim]'}")


def disconnect() -> None:
    """Forget the saved session.

    Examples:
        nanobot disconnect
    """
    with handle_errors():
        run(_disconnect())
        console.print(format_success("Disconnected"))
