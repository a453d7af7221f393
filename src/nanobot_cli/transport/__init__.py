"""Transport layer for the nanobot CLI.

This module handles HTTP communication with no knowledge of the JSON-RPC
protocol or the conversation model. It is responsible for:
- HTTP POST requests with JSON bodies
- Long-lived streamed GET responses
- Connection pooling
- SSL/TLS verification
- Network error translation
"""

from nanobot_cli.transport.exceptions import (
    HttpError,
    NetworkError,
    StreamError,
    TimeoutError,
    TransportError,
)
from nanobot_cli.transport.http import HttpResponse, HttpTransport

__all__ = [
    "HttpTransport",
    "HttpResponse",
    "TransportError",
    "NetworkError",
    "TimeoutError",
    "HttpError",
    "StreamError",
]
