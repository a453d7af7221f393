"""Transport layer exceptions.

These exceptions are raised by the transport layer when network-level
errors occur. They have no knowledge of JSON-RPC or sessions.
"""

from __future__ import annotations

from collections.abc import Mapping

import httpx


class TransportError(Exception):
    """Base exception for transport layer errors.

    Raised when network-level communication fails. This is the base class
    for all transport-specific errors.

    Args:
        message: Human-readable error description
        status_code: HTTP status code if applicable
        cause: Original exception that caused this error

    Attributes:
        message: Error message
        status_code: HTTP status code (or None)
        cause: Original exception (or None)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.cause = cause

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (status: {self.status_code})"
        return self.message


class NetworkError(TransportError):
    """Network-level error occurred.

    Examples:
        - Connection refused
        - DNS lookup failed
        - Network unreachable
    """

    pass


class TimeoutError(TransportError):
    """Request timed out.

    Distinct from network errors: the connection was established but the
    server did not respond (or stopped streaming) in time.
    """

    pass


class HttpError(TransportError):
    """HTTP error response received.

    Raised when the server returns a status code >= 400. Response headers are
    kept because servers may issue session headers on error responses too.

    Attributes:
        headers: Response headers (case-insensitive)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        cause: Exception | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, cause=cause)
        self.headers = httpx.Headers(headers or {})


class StreamError(TransportError):
    """Reading a streamed response body failed.

    Raised after the stream was opened successfully, when the connection
    drops or the body cannot be read further.
    """

    pass
