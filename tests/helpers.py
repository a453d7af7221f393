"""Scripted nanobot endpoint and wire helpers for respx-based tests.

``McpServer`` pops the next queued reply for each POST and echoes the request
id, so JSON-RPC correlation holds without knowing the generated ids up front.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import httpx

BASE_URL = "http://nanobot.test"
SESSION_HEADER = "Mcp-Session-Id"


@dataclass
class ScriptedReply:
    result: Any = None
    error: dict[str, Any] | None = None
    status: int = 200
    session_id: str | None = None
    request_id: Any = field(default=None)


class McpServer:
    """Scripted JSON-RPC endpoint usable as a respx side effect."""

    def __init__(self) -> None:
        self.replies: deque[ScriptedReply] = deque()
        self.requests: list[httpx.Request] = []

    def reply(
        self,
        result: Any = None,
        *,
        error: dict[str, Any] | None = None,
        status: int = 200,
        session_id: str | None = None,
        request_id: Any = None,
    ) -> McpServer:
        self.replies.append(
            ScriptedReply(
                result=result,
                error=error,
                status=status,
                session_id=session_id,
                request_id=request_id,
            )
        )
        return self

    def tool_reply(self, payload: Any, *, is_error: bool = False) -> McpServer:
        """Queue a tools/call result carrying payload as JSON text."""
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return self.reply({"content": [{"type": "text", "text": text}], "isError": is_error})

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    @property
    def methods(self) -> list[str]:
        return [body["method"] for body in self.bodies]

    def session_headers(self) -> list[str | None]:
        return [request.headers.get(SESSION_HEADER) for request in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = json.loads(request.content)
        scripted = self.replies.popleft()

        headers = {SESSION_HEADER: scripted.session_id} if scripted.session_id else {}
        if scripted.status >= 400:
            return httpx.Response(scripted.status, headers=headers)

        envelope: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": scripted.request_id if scripted.request_id is not None else body["id"],
        }
        if scripted.error is not None:
            envelope["error"] = scripted.error
        else:
            envelope["result"] = scripted.result
        return httpx.Response(200, json=envelope, headers=headers)


def initialize_result(name: str = "nanobot") -> dict[str, Any]:
    return {
        "protocolVersion": "2024-11-05",
        "capabilities": {"tools": {}},
        "serverInfo": {"name": name, "version": "0.0.1"},
    }


def sse_body(*events: dict[str, Any]) -> bytes:
    return b"".join(f"data: {json.dumps(event)}\n".encode() for event in events)


