"""Protocol layer exceptions.

These exceptions are raised by the protocol layer when JSON-RPC 2.0
specification violations, protocol-level errors or session expiry occur.
"""

from __future__ import annotations

from typing import Any

from nanobot_cli.transport.exceptions import HttpError


class ProtocolError(Exception):
    """Base exception for protocol layer errors.

    Raised when the server answers with a JSON-RPC error object or the
    response violates the envelope format. Never retried automatically.

    Args:
        message: Human-readable error description
        code: JSON-RPC error code (optional)
        data: Additional error data (optional)

    Attributes:
        message: Error message
        code: JSON-RPC error code (or None)
        data: Additional error information (or None)
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class JsonRpcProtocolError(ProtocolError):
    """JSON-RPC error returned by server with a non-standard code."""

    pass


class InvalidRequestError(ProtocolError):
    """Invalid JSON-RPC request format.

    Error code: -32600
    """

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message, code=-32600, data=data)


class MethodNotFoundError(ProtocolError):
    """Method does not exist on server.

    Error code: -32601

    Example:
        >>> raise MethodNotFoundError("prompts/list")
    """

    def __init__(self, method: str, data: Any = None) -> None:
        super().__init__(f"Method not found: {method}", code=-32601, data=data)
        self.method = method


class InvalidParamsError(ProtocolError):
    """Invalid method parameters.

    Error code: -32602
    """

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message, code=-32602, data=data)


class InternalError(ProtocolError):
    """Internal JSON-RPC error.

    Error code: -32603
    """

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message, code=-32603, data=data)


class ParseError(ProtocolError):
    """Invalid JSON or envelope received.

    Error code: -32700. Also raised locally when a response does not match
    the envelope schema or answers a different request id.
    """

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message, code=-32700, data=data)


class SessionExpiredError(HttpError):
    """The server no longer recognizes the session identifier.

    Signalled by HTTP 404 on the JSON-RPC endpoint. The session manager
    reconnects once and retries; if the retry expires again this error is
    surfaced as a regular transport error.
    """

    pass
