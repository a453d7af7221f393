"""HTTP transport layer implementation.

This module provides async HTTP communication for the CLI with connection
pooling and proper error handling. It has NO knowledge of the JSON-RPC
protocol, sessions or conversations.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from nanobot_cli.transport.exceptions import (
    HttpError,
    NetworkError,
    StreamError,
    TimeoutError,
    TransportError,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    """Decoded HTTP response.

    Attributes:
        status_code: HTTP status code
        headers: Response headers (case-insensitive)
        body: Parsed JSON body
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Any = None


class HttpTransport:
    """Async HTTP transport for network communication.

    This class handles all HTTP operations with connection pooling and
    proper error translation. It operates at the network layer only and has
    no knowledge of JSON-RPC or business logic.

    Features:
        - Connection pooling for performance
        - Optional connection-level retries (never status-based)
        - Configurable SSL/TLS verification
        - Timeout handling
        - Streamed response bodies for server-to-client events
        - Network error translation

    Args:
        base_url: Base URL for the nanobot server (e.g., "http://localhost:8080")
        timeout: Request timeout in seconds (default: 30)
        retries: Connection retry attempts (default: 0)
        verify_ssl: Whether to verify SSL certificates (default: True)

    Example:
        >>> async with HttpTransport("http://localhost:8080") as transport:
        ...     response = await transport.post("/mcp/ui", {"method": "ping"})
        >>> print(response.body)
        {"jsonrpc": "2.0", "result": {}, "id": "..."}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        retries: int = 0,
        verify_ssl: bool = True,
    ) -> None:
        if not base_url:
            raise ValueError("base_url cannot be empty")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.client = self._create_client(retries)

    def _create_client(self, retries: int) -> httpx.AsyncClient:
        """Create configured async client.

        Connection retries only cover failures to establish a connection;
        a request that reached the server is never replayed here.

        Args:
            retries: Number of connection retry attempts

        Returns:
            Configured httpx.AsyncClient
        """
        transport = httpx.AsyncHTTPTransport(
            retries=retries,
            verify=self.verify_ssl,
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=10),
        )
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout),
            transport=transport,
        )

    async def post(
        self,
        endpoint: str,
        data: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        """Send HTTP POST request with a JSON body.

        Args:
            endpoint: Endpoint path (e.g., "/mcp/ui")
            data: Request body data (will be JSON-encoded)
            headers: Optional HTTP headers

        Returns:
            Decoded response with status, headers and parsed JSON body

        Raises:
            NetworkError: If connection fails
            TimeoutError: If request times out
            HttpError: If server returns error status code
            TransportError: For other transport-level errors
        """
        request_headers = {"Content-Type": "application/json"}
        if headers:
            request_headers.update(headers)

        try:
            response = await self.client.post(
                endpoint,
                json=data,
                headers=request_headers,
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(
                message=f"Request timed out after {self.timeout}s",
                cause=e,
            ) from e
        except httpx.ConnectError as e:
            raise NetworkError(
                message=f"Connection failed: {str(e)}",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                message=f"Transport error: {str(e)}",
                cause=e,
            ) from e

        if response.status_code >= 400:
            raise HttpError(
                message=f"HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
                headers=response.headers,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                message="Invalid JSON response from server",
                status_code=response.status_code,
                cause=e,
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=body,
        )

    @asynccontextmanager
    async def stream(
        self,
        endpoint: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        read_timeout: float | None = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streamed GET response.

        The connection stays open until the server closes the body or the
        caller leaves the context. Closing is always performed, including when
        the surrounding task is cancelled.

        Args:
            endpoint: Endpoint path
            params: Query parameters
            headers: Optional HTTP headers
            read_timeout: Seconds to wait for the next chunk (None = forever)

        Yields:
            Async iterator over raw body chunks

        Raises:
            NetworkError: If connection fails
            TimeoutError: If opening the stream times out
            HttpError: If server returns error status code
            StreamError: If reading the body fails (raised from the iterator)
        """
        request = self.client.build_request(
            "GET",
            endpoint,
            params=params,
            headers=headers,
            timeout=httpx.Timeout(self.timeout, read=read_timeout),
        )

        try:
            response = await self.client.send(request, stream=True)
        except httpx.TimeoutException as e:
            raise TimeoutError(
                message=f"Stream open timed out after {self.timeout}s",
                cause=e,
            ) from e
        except httpx.ConnectError as e:
            raise NetworkError(
                message=f"Connection failed: {str(e)}",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                message=f"Transport error: {str(e)}",
                cause=e,
            ) from e

        try:
            if response.status_code >= 400:
                raise HttpError(
                    message=f"Stream error: {response.status_code}",
                    status_code=response.status_code,
                    headers=response.headers,
                )
            logger.debug("stream_opened", endpoint=endpoint, params=params)
            yield self._iter_body(response)
        finally:
            await response.aclose()

    async def _iter_body(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield raw body chunks, translating read failures to StreamError."""
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.TimeoutException as e:
            raise StreamError(
                message="Stream read timed out",
                cause=e,
            ) from e
        except httpx.HTTPError as e:
            raise StreamError(
                message=f"Stream read failed: {str(e)}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client and release pooled connections."""
        await self.client.aclose()

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
