"""Unit tests for protocol models.

These tests verify Pydantic validation of JSON-RPC envelopes and the MCP
result shapes returned by the nanobot server.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from nanobot_cli.protocol.models import (
    Agent,
    CallToolResult,
    InitializeResult,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
    StreamEvent,
    StreamEventType,
    ThreadSummary,
    Tool,
)


class TestJsonRpcRequest:
    """Tests for JsonRpcRequest model."""

    def test_params_omitted_when_none(self) -> None:
        """Test params are dropped from the envelope when not given."""
        request = JsonRpcRequest(id="1", method="tools/list")

        assert request.model_dump(exclude_none=True) == {
            "jsonrpc": "2.0",
            "id": "1",
            "method": "tools/list",
        }

    def test_invalid_version_rejected(self) -> None:
        """Test only JSON-RPC 2.0 is accepted."""
        with pytest.raises(ValidationError):
            JsonRpcRequest(jsonrpc="1.0", id="1", method="ping")


class TestJsonRpcResponse:
    """Tests for JsonRpcResponse model."""

    def test_result_is_kept_verbatim(self) -> None:
        """Test any JSON value is accepted as result."""
        response = JsonRpcResponse(id="1", result=[1, "two", None])

        assert response.result == [1, "two", None]
        assert response.error is None

    def test_error_object(self) -> None:
        """Test error objects are parsed."""
        response = JsonRpcResponse(id="1", error={"code": -32601, "message": "nope"})

        assert isinstance(response.error, JsonRpcError)
        assert response.error.code == -32601


class TestDescriptors:
    """Tests for tool, agent and thread descriptors."""

    def test_tool_accepts_camel_case_schema(self) -> None:
        """Test inputSchema maps to input_schema."""
        tool = Tool.model_validate({"name": "echo", "inputSchema": {"type": "object"}})

        assert tool.input_schema == {"type": "object"}

    def test_descriptors_are_frozen(self) -> None:
        """Test descriptors cannot be mutated."""
        agent = Agent(id="a1", name="Helper")

        with pytest.raises(ValidationError):
            agent.name = "Other"

    def test_unknown_fields_are_kept(self) -> None:
        """Test extra server fields survive validation."""
        agent = Agent.model_validate({"id": "a1", "name": "Helper", "icon": "bot.png"})

        assert agent.model_extra == {"icon": "bot.png"}

    def test_thread_summary_updated_at_millis(self) -> None:
        """Test updatedAt is read as milliseconds."""
        summary = ThreadSummary.model_validate({"id": "t1", "updatedAt": 1700000000000})

        assert summary.updated_at == 1700000000000
        assert summary.title is None


class TestResults:
    """Tests for initialize and tools/call results."""

    def test_initialize_result(self) -> None:
        """Test the handshake result is parsed."""
        result = InitializeResult.model_validate(
            {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "nanobot", "version": "1.0"},
            }
        )

        assert result.protocol_version == "2024-11-05"
        assert result.server_info is not None
        assert result.server_info.name == "nanobot"

    def test_first_text(self) -> None:
        """Test first_text returns the first content item's text."""
        result = CallToolResult.model_validate(
            {"content": [{"type": "text", "text": "[]"}, {"type": "text", "text": "x"}]}
        )

        assert result.first_text() == "[]"
        assert result.is_error is False

    def test_first_text_empty(self) -> None:
        """Test first_text is None without content."""
        assert CallToolResult().first_text() is None


class TestStreamEvent:
    """Tests for StreamEvent model."""

    def test_known_type(self) -> None:
        """Test a known event type is parsed."""
        event = StreamEvent.model_validate({"type": "message", "data": {"type": "text", "text": "Hi"}})

        assert event.type == StreamEventType.MESSAGE
        assert event.data == {"type": "text", "text": "Hi"}

    def test_unknown_type_rejected(self) -> None:
        """Test unknown event types fail validation."""
        with pytest.raises(ValidationError):
            StreamEvent.model_validate({"type": "progress", "data": 1})
