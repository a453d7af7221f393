"""Service layer for the nanobot CLI.

Conversation logic on top of the protocol client: thread catalog, message
assembly from streamed events and agent selection. Services never build
JSON-RPC payloads themselves.
"""

from __future__ import annotations

from nanobot_cli.services.chat import ChatService

__all__ = [
    "ChatService",
]
