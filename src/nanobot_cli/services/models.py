"""Conversation domain models.

Content blocks are a closed tagged union: each variant carries only the
fields relevant to its tag. The server sends loosely shaped dictionaries;
``content_block_from_wire`` is the single place that interprets them.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from nanobot_cli.protocol.models import Agent

DEFAULT_THREAD_TITLE = "New Chat"
TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def utcnow() -> datetime:
    return datetime.now(UTC)


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TextBlock(_Block):
    type: Literal["text"] = "text"
    text: str = ""


class ImageBlock(_Block):
    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")


class ToolCallBlock(_Block):
    type: Literal["tool_call"] = "tool_call"
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(_Block):
    type: Literal["tool_result"] = "tool_result"
    name: str | None = None
    output: Any = None
    is_error: bool = Field(default=False, alias="isError")


class ResourceBlock(_Block):
    type: Literal["resource"] = "resource"
    uri: str | None = None
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ToolCallBlock, ToolResultBlock, ResourceBlock],
    Field(discriminator="type"),
]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    if value is None:
        return {}
    return {"value": value}


def content_block_from_wire(raw: Any) -> ContentBlock:
    """Interpret a loosely typed content dictionary.

    Accepts both the server's field names (``name``, ``input``, ``content``)
    and the camelCase variants used by other clients (``toolName``,
    ``toolInput``, ``toolResult``, ``resourceUri``). Anything unrecognised is
    rendered as text rather than dropped.

    Example:
        >>> content_block_from_wire({"type": "text", "text": "Hel"})
        TextBlock(type='text', text='Hel')
    """
    if isinstance(raw, str):
        return TextBlock(text=raw)
    if not isinstance(raw, dict):
        return TextBlock(text="" if raw is None else str(raw))

    kind = raw.get("type") or "text"

    if kind == "text":
        return TextBlock(text=str(raw.get("text") or ""))

    if kind == "image":
        return ImageBlock(
            data=str(raw.get("data") or ""),
            mime_type=raw.get("mimeType") or "application/octet-stream",
        )

    if kind in ("tool_use", "tool_call"):
        return ToolCallBlock(
            name=str(raw.get("name") or raw.get("toolName") or ""),
            input=_as_dict(raw.get("input", raw.get("toolInput", raw.get("arguments")))),
        )

    if kind == "tool_result":
        output = raw.get("content", raw.get("output", raw.get("toolResult")))
        return ToolResultBlock(
            name=raw.get("name") or raw.get("toolName"),
            output=output,
            is_error=bool(raw.get("isError", False)),
        )

    if kind == "resource":
        resource = _as_dict(raw.get("resource"))
        return ResourceBlock(
            uri=raw.get("uri") or raw.get("resourceUri") or resource.get("uri"),
            text=raw.get("text") or resource.get("text"),
            data=raw.get("data") or resource.get("blob"),
            mime_type=raw.get("mimeType") or resource.get("mimeType"),
        )

    return TextBlock(text=str(raw.get("text") or json.dumps(raw, ensure_ascii=False)))


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageStatus(str, Enum):
    """Lifecycle of a message: sending -> streaming -> sent, or -> error."""

    SENDING = "sending"
    STREAMING = "streaming"
    SENT = "sent"
    ERROR = "error"


class Message(BaseModel):
    """One entry of a conversation."""

    id: str
    role: Role
    content: list[ContentBlock] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utcnow)
    status: MessageStatus = MessageStatus.SENT

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))


class Thread(BaseModel):
    """Conversation catalog entry."""

    id: str
    title: str = DEFAULT_THREAD_TITLE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    agent_id: str | None = None

    def touch(self, when: datetime) -> None:
        """Bump updated_at, never moving it backwards."""
        if when > self.updated_at:
            self.updated_at = when


def derive_title(text: str) -> str:
    """Title for a thread from its first user message.

    Example:
        >>> derive_title("Summarize my unread email from today")
        'Summarize my unread email from...'
    """
    title = text[:TITLE_MAX_LENGTH]
    if len(text) > TITLE_MAX_LENGTH:
        title += TITLE_ELLIPSIS
    return title


class ChatState(BaseModel):
    """Observable state of the conversation client."""

    is_connected: bool = False
    is_connecting: bool = False
    connection_error: str | None = None

    threads: list[Thread] = Field(default_factory=list)
    current_thread_id: str | None = None
    messages: list[Message] = Field(default_factory=list)
    agents: list[Agent] = Field(default_factory=list)
    current_agent_id: str | None = None

    is_loading: bool = False
    is_sending: bool = False

    def find_thread(self, thread_id: str) -> Thread | None:
        for thread in self.threads:
            if thread.id == thread_id:
                return thread
        return None
