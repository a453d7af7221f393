"""JSON-RPC 2.0 and MCP protocol models.

This module defines Pydantic models for the JSON-RPC 2.0 envelope used by
the nanobot server and for the MCP descriptors its methods return.

References:
    JSON-RPC 2.0 Specification: https://www.jsonrpc.org/specification
    Model Context Protocol 2024-11-05
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object.

    Attributes:
        code: Error code (integer)
        message: Human-readable error message
        data: Additional error information (optional, any JSON value)

    Example:
        >>> error = JsonRpcError(code=-32600, message="Invalid Request")
        >>> print(error.code)
        -32600
    """

    code: int = Field(..., description="Error code")
    message: str = Field(..., description="Error message")
    data: Any = Field(default=None, description="Additional error data")


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request object.

    Attributes:
        jsonrpc: Protocol version (always "2.0")
        id: Request identifier, a fresh UUID string per request
        method: Method name to invoke
        params: Method parameters (object), omitted from the wire when None

    Example:
        >>> request = JsonRpcRequest(id="7d0c...", method="tools/list")
        >>> request.model_dump(exclude_none=True)
        {'jsonrpc': '2.0', 'id': '7d0c...', 'method': 'tools/list'}
    """

    jsonrpc: Literal["2.0"] = Field(default="2.0", description="JSON-RPC version")
    id: str = Field(..., description="Request ID")
    method: str = Field(..., description="Method name to invoke")
    params: dict[str, Any] | None = Field(
        default=None,
        description="Method parameters (MUST be object, not array)",
    )


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response object.

    Attributes:
        jsonrpc: Protocol version (always "2.0")
        id: Request identifier (echoed from request)
        result: Method result, any JSON value
        error: Error object (mutually exclusive with result)
    """

    jsonrpc: Literal["2.0"] = Field(default="2.0", description="JSON-RPC version")
    id: str | int | None = Field(default=None, description="Request ID")
    result: Any = Field(default=None, description="Method result")
    error: JsonRpcError | None = Field(default=None, description="Error object")


class _Descriptor(BaseModel):
    """Base for read-only metadata records returned by list operations."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")


class Tool(_Descriptor):
    """Remote tool descriptor."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = Field(default=None, alias="inputSchema")


class Resource(_Descriptor):
    """Remote resource descriptor."""

    uri: str
    name: str
    description: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")


class PromptArgument(_Descriptor):
    """Argument accepted by a prompt."""

    name: str
    description: str | None = None
    required: bool | None = None


class Prompt(_Descriptor):
    """Remote prompt descriptor."""

    name: str
    description: str | None = None
    arguments: list[PromptArgument] = Field(default_factory=list)


class Agent(_Descriptor):
    """Agent that can be selected to scope a send operation."""

    id: str
    name: str
    description: str | None = None
    model: str | None = None
    system_prompt: str | None = Field(default=None, alias="systemPrompt")


class ServerInfo(_Descriptor):
    """Server identification returned by initialize."""

    name: str
    version: str


class InitializeResult(_Descriptor):
    """Result of the initialize handshake."""

    protocol_version: str | None = Field(default=None, alias="protocolVersion")
    capabilities: dict[str, Any] = Field(default_factory=dict)
    server_info: ServerInfo | None = Field(default=None, alias="serverInfo")


class ToolContent(_Descriptor):
    """Loosely typed content item of a tool call result."""

    type: str
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")


class CallToolResult(_Descriptor):
    """Result of tools/call.

    For asynchronous calls the content is only an acknowledgement; the real
    output arrives on the event stream.
    """

    content: list[ToolContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    def first_text(self) -> str | None:
        """Return the text of the first content item, if any."""
        if self.content and self.content[0].text:
            return self.content[0].text
        return None


class ResourceContents(_Descriptor):
    """One entry of a resources/read result."""

    uri: str
    text: str | None = None
    blob: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")


class ReadResourceResult(_Descriptor):
    """Result of resources/read."""

    contents: list[ResourceContents] = Field(default_factory=list)


class ThreadSummary(_Descriptor):
    """Conversation entry returned by the list_threads tool.

    Attributes:
        updated_at: Milliseconds since the epoch, as sent by the server
    """

    id: str
    title: str | None = None
    updated_at: float | None = Field(default=None, alias="updatedAt")


class StreamEventType(str, Enum):
    """Kinds of events delivered on the thread event stream."""

    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    DONE = "done"
    ERROR = "error"


class StreamEvent(BaseModel):
    """Decoded event from the thread event stream.

    Example:
        >>> StreamEvent.model_validate({"type": "done", "data": None}).type
        <StreamEventType.DONE: 'done'>
    """

    model_config = ConfigDict(frozen=True)

    type: StreamEventType
    data: Any = None
