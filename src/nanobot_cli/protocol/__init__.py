"""Protocol layer for the nanobot CLI.

This module handles the MCP flavour of JSON-RPC 2.0 spoken by the nanobot
server with no knowledge of the conversation model. It is responsible for:
- JSON-RPC 2.0 envelopes and request/response correlation
- Request/response Pydantic validation
- Session identifier lifecycle and reconnect-on-expiry
- Decoding the per-thread server-to-client event stream
- Protocol error translation
"""

from nanobot_cli.protocol.exceptions import (
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    JsonRpcProtocolError,
    MethodNotFoundError,
    ParseError,
    ProtocolError,
    SessionExpiredError,
)
from nanobot_cli.protocol.jsonrpc import ExchangeResult, JsonRpcClient
from nanobot_cli.protocol.models import (
    Agent,
    CallToolResult,
    InitializeResult,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    Prompt,
    ReadResourceResult,
    Resource,
    StreamEvent,
    StreamEventType,
    ThreadSummary,
    Tool,
)
from nanobot_cli.protocol.session import SessionManager
from nanobot_cli.protocol.stream import EventStream, LineBuffer, Subscription, parse_event_line

__all__ = [
    # Models
    "JsonRpcRequest",
    "JsonRpcResponse",
    "JsonRpcError",
    "Tool",
    "Resource",
    "Prompt",
    "Agent",
    "InitializeResult",
    "CallToolResult",
    "ReadResourceResult",
    "ThreadSummary",
    "StreamEvent",
    "StreamEventType",
    # Exceptions
    "ProtocolError",
    "JsonRpcProtocolError",
    "InvalidRequestError",
    "MethodNotFoundError",
    "InvalidParamsError",
    "InternalError",
    "ParseError",
    "SessionExpiredError",
    # Clients
    "JsonRpcClient",
    "ExchangeResult",
    "SessionManager",
    "EventStream",
    "Subscription",
    "LineBuffer",
    "parse_event_line",
]
