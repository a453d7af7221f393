"""Custom exceptions for the nanobot CLI."""

from __future__ import annotations


class NanobotError(Exception):
    """Base exception for nanobot CLI errors."""

    pass


class NotConfiguredError(NanobotError):
    """No server URL is configured or saved."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No server URL configured. Run 'nanobot config set-server URL' "
            "or set NANOBOT_SERVER_URL."
        )
