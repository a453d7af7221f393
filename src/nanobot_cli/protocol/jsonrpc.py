"""JSON-RPC 2.0 exchange over the nanobot HTTP endpoint.

One call sends one request envelope, correlates the single JSON reply with
it and reports any session identifier the server handed back. Retry and
reconnect policy lives in the session manager, not here.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
import uuid

import structlog

from nanobot_cli.protocol.exceptions import (
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    JsonRpcProtocolError,
    MethodNotFoundError,
    ParseError,
    SessionExpiredError,
)
from nanobot_cli.protocol.models import JsonRpcError, JsonRpcRequest, JsonRpcResponse
from nanobot_cli.transport.exceptions import HttpError
from nanobot_cli.transport.http import HttpTransport

logger = structlog.get_logger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
SESSION_EXPIRED_STATUS = 404
DEFAULT_ENDPOINT = "/mcp/ui"


@dataclass(frozen=True)
class ExchangeResult:
    """Outcome of a single exchange.

    Attributes:
        result: The envelope's ``result`` field, verbatim
        session_id: Session header value returned by the server (or None)
    """

    result: Any
    session_id: str | None = None


class JsonRpcClient:
    """JSON-RPC 2.0 client for the nanobot MCP endpoint.

    This client enforces JSON-RPC 2.0 compliance by:
    1. Generating a fresh UUID request id for every call
    2. Validating requests/responses with Pydantic models
    3. Rejecting responses that answer a different request id
    4. Translating error objects to typed exceptions
    5. Translating the session-expired status into SessionExpiredError

    Args:
        transport: HTTP transport instance
        endpoint: Endpoint path (default: "/mcp/ui")
        id_factory: Request id generator (default: uuid4 strings)

    Example:
        >>> client = JsonRpcClient(HttpTransport("http://localhost:8080"))
        >>> outcome = await client.exchange("tools/list", session_id="abc123")
        >>> outcome.result["tools"]
        [{'name': 'echo'}]
    """

    def __init__(
        self,
        transport: HttpTransport,
        endpoint: str = DEFAULT_ENDPOINT,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.transport = transport
        self.endpoint = endpoint
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))

    def _build_headers(self, session_id: str | None) -> dict[str, str]:
        """Build HTTP headers for a request.

        The Accept header allows both a plain JSON reply and an event-stream
        reply; only the former is consumed by this client.
        """
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
        }
        if session_id:
            headers[SESSION_HEADER] = session_id
        return headers

    async def exchange(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> ExchangeResult:
        """Execute one JSON-RPC method call.

        Args:
            method: Method name to invoke (e.g., "tools/call")
            params: Method parameters, omitted from the envelope when None
            session_id: Session identifier to attach, if one is held

        Returns:
            The verbatim result and any session id issued by the server

        Raises:
            SessionExpiredError: Server rejected the session (HTTP 404)
            HttpError: Any other non-success HTTP status
            NetworkError: Connection failed
            TimeoutError: Request timed out
            ParseError: Response is not a valid envelope for this request
            JsonRpcProtocolError: Server returned an error object
        """
        request = JsonRpcRequest(id=self._id_factory(), method=method, params=params)
        request_data = request.model_dump(exclude_none=True)

        try:
            response = await self.transport.post(
                self.endpoint,
                request_data,
                headers=self._build_headers(session_id),
            )
        except HttpError as e:
            if e.status_code == SESSION_EXPIRED_STATUS:
                raise SessionExpiredError(
                    message=f"Session not found: {session_id or 'none'}",
                    status_code=e.status_code,
                    cause=e,
                    headers=e.headers,
                ) from e
            raise

        new_session_id = response.headers.get(SESSION_HEADER)

        if not isinstance(response.body, dict):
            raise ParseError("Expected JSON object response")

        try:
            envelope = JsonRpcResponse(**response.body)
        except Exception as e:
            raise ParseError(f"Response validation failed: {str(e)}")

        if envelope.error is None and envelope.id != request.id:
            raise ParseError(
                f"Response id {envelope.id!r} does not match request id {request.id!r}"
            )

        if envelope.error:
            self._raise_error(envelope.error)

        logger.debug("rpc_exchange", method=method, request_id=request.id)
        return ExchangeResult(result=envelope.result, session_id=new_session_id)

    def _raise_error(self, error: JsonRpcError) -> None:
        """Raise appropriate exception based on error code.

        Raises:
            MethodNotFoundError: Method not found (-32601)
            InvalidParamsError: Invalid params (-32602)
            InternalError: Internal error (-32603)
            ParseError: Parse error (-32700)
            InvalidRequestError: Invalid request (-32600)
            JsonRpcProtocolError: Other errors
        """
        if error.code == -32601:
            method = "unknown"
            if isinstance(error.data, dict):
                method = error.data.get("method", "unknown")
            raise MethodNotFoundError(method, data=error.data)
        elif error.code == -32602:
            raise InvalidParamsError(error.message, data=error.data)
        elif error.code == -32603:
            raise InternalError(error.message, data=error.data)
        elif error.code == -32700:
            raise ParseError(error.message, data=error.data)
        elif error.code == -32600:
            raise InvalidRequestError(error.message, data=error.data)
        else:
            raise JsonRpcProtocolError(error.message, code=error.code, data=error.data)
