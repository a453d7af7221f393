"""Unit tests for the JSON-RPC exchange.

The HTTP layer is real; the server is scripted with respx.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import respx

from nanobot_cli.protocol.exceptions import (
    InternalError,
    InvalidParamsError,
    JsonRpcProtocolError,
    MethodNotFoundError,
    ParseError,
    SessionExpiredError,
)
from nanobot_cli.protocol.jsonrpc import JsonRpcClient
from nanobot_cli.transport.exceptions import HttpError, NetworkError
from nanobot_cli.transport.http import HttpTransport
from tests.helpers import BASE_URL, McpServer


@pytest.fixture
async def rpc() -> AsyncIterator[JsonRpcClient]:
    transport = HttpTransport(BASE_URL)
    yield JsonRpcClient(transport)
    await transport.close()


class TestExchange:
    """Tests for JsonRpcClient.exchange()."""

    async def test_envelope_and_headers(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test the request envelope and negotiated headers."""
        mcp_server.reply({"tools": []})

        outcome = await rpc.exchange("tools/list", session_id="abc123")

        assert outcome.result == {"tools": []}
        body = mcp_server.bodies[0]
        assert body["jsonrpc"] == "2.0"
        assert body["method"] == "tools/list"
        assert "params" not in body
        assert isinstance(body["id"], str) and body["id"]

        request = mcp_server.requests[0]
        assert request.headers["Accept"] == "application/json, text/event-stream"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Mcp-Session-Id"] == "abc123"

    async def test_no_session_header_without_session(
        self, rpc: JsonRpcClient, mcp_server: McpServer
    ) -> None:
        """Test the session header is omitted when no session is held."""
        mcp_server.reply({})

        await rpc.exchange("initialize", {"protocolVersion": "2024-11-05"})

        assert "Mcp-Session-Id" not in mcp_server.requests[0].headers
        assert mcp_server.bodies[0]["params"] == {"protocolVersion": "2024-11-05"}

    async def test_request_ids_are_unique(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test every request gets a fresh id."""
        mcp_server.reply({}).reply({})

        await rpc.exchange("ping")
        await rpc.exchange("ping")

        ids = [body["id"] for body in mcp_server.bodies]
        assert ids[0] != ids[1]

    async def test_session_header_reported(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test a session id issued by the server is returned."""
        mcp_server.reply({}, session_id="abc123")

        outcome = await rpc.exchange("initialize", {})

        assert outcome.session_id == "abc123"

    async def test_result_returned_verbatim(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test non-object results are passed through unchanged."""
        mcp_server.reply(["a", 1, None])

        outcome = await rpc.exchange("custom/method")

        assert outcome.result == ["a", 1, None]

    async def test_mismatched_id_rejected(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test a reply to another request is rejected."""
        mcp_server.reply({}, request_id="someone-else")

        with pytest.raises(ParseError, match="does not match"):
            await rpc.exchange("ping")

    async def test_session_expired(self, rpc: JsonRpcClient, mcp_server: McpServer) -> None:
        """Test a 404 becomes SessionExpiredError."""
        mcp_server.reply(status=404)

        with pytest.raises(SessionExpiredError) as exc_info:
            await rpc.exchange("tools/list", session_id="stale")

        assert exc_info.value.status_code == 404

    async def test_other_http_errors_propagate(
        self, rpc: JsonRpcClient, mcp_server: McpServer
    ) -> None:
        """Test other error statuses are not treated as expiry."""
        mcp_server.reply(status=500)

        with pytest.raises(HttpError) as exc_info:
            await rpc.exchange("tools/list")

        assert not isinstance(exc_info.value, SessionExpiredError)
        assert exc_info.value.status_code == 500

    async def test_network_error_propagates(self, rpc: JsonRpcClient, router: respx.MockRouter) -> None:
        """Test connection failures are not translated."""
        router.post("/mcp/ui").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError):
            await rpc.exchange("ping")

    async def test_non_object_body(self, rpc: JsonRpcClient, router: respx.MockRouter) -> None:
        """Test a JSON body that is not an object is a parse error."""
        router.post("/mcp/ui").mock(return_value=httpx.Response(200, json=[1, 2]))

        with pytest.raises(ParseError):
            await rpc.exchange("ping")


class TestErrorTranslation:
    """Tests for JSON-RPC error object translation."""

    @pytest.mark.parametrize(
        ("code", "exception"),
        [
            (-32601, MethodNotFoundError),
            (-32602, InvalidParamsError),
            (-32603, InternalError),
            (-32700, ParseError),
        ],
    )
    async def test_standard_codes(
        self,
        rpc: JsonRpcClient,
        mcp_server: McpServer,
        code: int,
        exception: type[Exception],
    ) -> None:
        """Test standard codes map to typed exceptions."""
        mcp_server.reply(error={"code": code, "message": "failed"})

        with pytest.raises(exception):
            await rpc.exchange("tools/call", {"name": "x"})

    async def test_custom_code_keeps_message_and_data(
        self, rpc: JsonRpcClient, mcp_server: McpServer
    ) -> None:
        """Test application codes keep message, code and data."""
        mcp_server.reply(error={"code": -32000, "message": "Agent busy", "data": {"retry": 5}})

        with pytest.raises(JsonRpcProtocolError) as exc_info:
            await rpc.exchange("tools/call", {"name": "run"})

        assert exc_info.value.code == -32000
        assert exc_info.value.message == "Agent busy"
        assert exc_info.value.data == {"retry": 5}
