"""MCP client facade for the nanobot server.

Typed operations (tools, resources, prompts, agents, threads, messages and
event subscriptions) built on the session manager and the event stream.
Every RPC goes through ``SessionManager.exchange`` so expired sessions are
recovered in one place.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from typing import Any

import structlog

from nanobot_cli import __version__
from nanobot_cli.protocol.jsonrpc import DEFAULT_ENDPOINT, JsonRpcClient
from nanobot_cli.protocol.models import (
    Agent,
    CallToolResult,
    InitializeResult,
    Prompt,
    ReadResourceResult,
    Resource,
    StreamEvent,
    ThreadSummary,
    Tool,
)
from nanobot_cli.protocol.session import SessionManager
from nanobot_cli.protocol.stream import ErrorCallback, EventCallback, EventStream, Subscription
from nanobot_cli.services.exceptions import OperationError
from nanobot_cli.storage import KeyValueStore
from nanobot_cli.transport.http import HttpTransport

logger = structlog.get_logger(__name__)

ASYNC_META_KEY = "ai.nanobot.async"


def _items(result: Any, key: str) -> list[Any]:
    """Extract a list field from a result object, tolerating odd shapes."""
    if isinstance(result, dict):
        value = result.get(key)
        if isinstance(value, list):
            return value
    return []


def _text_json(result: CallToolResult) -> Any:
    """Parse the JSON document carried as text by a tool result.

    Returns:
        The decoded value, or None when the result has no text

    Raises:
        ValueError: The text is not valid JSON
    """
    text = result.first_text()
    if not text:
        return None
    return json.loads(text)


class NanobotClient:
    """High-level client for a nanobot server.

    Args:
        session: Session manager routing all RPCs
        stream: Event stream factory for thread subscriptions
        transport: Underlying HTTP transport (closed by ``close()``)

    Example:
        >>> client = NanobotClient.create("http://localhost:8080", MemoryStore())
        >>> await client.connect()
        >>> [tool.name for tool in await client.list_tools()]
        ['echo']
    """

    def __init__(
        self,
        session: SessionManager,
        stream: EventStream,
        transport: HttpTransport | None = None,
    ) -> None:
        self.session = session
        self.stream = stream
        self.transport = transport

    @classmethod
    def create(
        cls,
        base_url: str,
        store: KeyValueStore,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30,
        retries: int = 0,
        verify_ssl: bool = True,
        stream_read_timeout: float | None = None,
        client_name: str = "nanobot-cli",
        client_version: str | None = None,
    ) -> NanobotClient:
        """Wire transport, JSON-RPC client, session manager and event stream."""
        transport = HttpTransport(
            base_url,
            timeout=timeout,
            retries=retries,
            verify_ssl=verify_ssl,
        )
        rpc = JsonRpcClient(transport, endpoint=endpoint)
        session = SessionManager(
            rpc,
            store,
            client_name=client_name,
            client_version=client_version or __version__,
        )
        stream = EventStream(transport, endpoint=endpoint, read_timeout=stream_read_timeout)
        return cls(session, stream, transport)

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def session_id(self) -> str | None:
        return self.session.session_id

    async def connect(self) -> InitializeResult:
        """Initialize the connection, reusing a stored session if any."""
        return await self.session.connect()

    async def disconnect(self) -> None:
        """Clear the session locally and in storage."""
        await self.session.disconnect()

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        if self.transport is not None:
            await self.transport.close()

    async def list_tools(self) -> list[Tool]:
        result = await self.session.exchange("tools/list")
        return [Tool.model_validate(item) for item in _items(result, "tools")]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        run_async: bool = False,
        progress_token: str | None = None,
    ) -> CallToolResult:
        """Invoke a remote tool.

        The ``_meta`` block is only sent when asynchronous execution or a
        progress token is requested.

        Args:
            name: Tool name
            arguments: Tool arguments
            run_async: Ask the server to run the tool in the background and
                deliver output on the event stream
            progress_token: Token for progress notifications

        Returns:
            Tool result (an acknowledgement for asynchronous calls)
        """
        params: dict[str, Any] = {
            "name": name,
            "arguments": arguments or {},
        }

        if run_async or progress_token:
            meta: dict[str, Any] = {}
            if run_async:
                meta[ASYNC_META_KEY] = True
            if progress_token:
                meta["progressToken"] = progress_token
            params["_meta"] = meta

        result = await self.session.exchange("tools/call", params)
        return CallToolResult.model_validate(result or {})

    async def list_resources(self) -> list[Resource]:
        result = await self.session.exchange("resources/list")
        return [Resource.model_validate(item) for item in _items(result, "resources")]

    async def read_resource(self, uri: str) -> ReadResourceResult:
        result = await self.session.exchange("resources/read", {"uri": uri})
        return ReadResourceResult.model_validate(result or {})

    async def list_prompts(self) -> list[Prompt]:
        result = await self.session.exchange("prompts/list")
        return [Prompt.model_validate(item) for item in _items(result, "prompts")]

    async def list_agents(self) -> list[Agent]:
        """List agents; any failure yields an empty list."""
        try:
            result = await self.call_tool("list_agents", {})
            data = _text_json(result)
            if isinstance(data, list):
                return [Agent.model_validate(item) for item in data]
        except Exception as e:
            logger.warning("list_agents_failed", error=str(e))
        return []

    async def send_message(
        self,
        text: str,
        thread_id: str,
        agent_id: str | None = None,
        attachments: list[dict[str, Any]] | None = None,
    ) -> CallToolResult:
        """Send a chat message for background execution.

        The call returns as soon as the server acknowledges it; the reply
        arrives on the thread's event stream.
        """
        args: dict[str, Any] = {
            "prompt": text,
            "thread_id": thread_id,
        }
        if agent_id:
            args["agent"] = agent_id
        if attachments:
            args["attachments"] = attachments

        return await self.call_tool("run", args, run_async=True)

    async def list_threads(self) -> list[ThreadSummary]:
        """List conversation threads; any failure yields an empty list."""
        try:
            result = await self.call_tool("list_threads", {})
            data = _text_json(result)
            if isinstance(data, list):
                return [ThreadSummary.model_validate(item) for item in data]
        except Exception as e:
            logger.warning("list_threads_failed", error=str(e))
        return []

    async def get_thread_messages(self, thread_id: str) -> list[dict[str, Any]]:
        """Fetch raw message history; any failure yields an empty list."""
        try:
            result = await self.call_tool("get_thread", {"thread_id": thread_id})
            thread = _text_json(result)
            if isinstance(thread, dict):
                messages = thread.get("messages") or []
                return [m for m in messages if isinstance(m, dict)]
        except Exception as e:
            logger.warning("get_thread_failed", thread_id=thread_id, error=str(e))
        return []

    async def delete_thread(self, thread_id: str) -> None:
        await self.call_tool("delete_thread", {"thread_id": thread_id})

    async def create_resource(self, name: str, data: str, mime_type: str) -> str:
        """Upload a resource.

        Args:
            name: Resource name
            data: Base64-encoded content
            mime_type: MIME type of the content

        Returns:
            URI of the created resource

        Raises:
            OperationError: The server reply carried no URI
        """
        result = await self.call_tool(
            "create_resource",
            {"name": name, "data": data, "mimeType": mime_type},
        )
        try:
            created = _text_json(result)
        except ValueError as e:
            raise OperationError("Failed to create resource", details={"error": str(e)})

        if isinstance(created, dict) and created.get("uri"):
            return str(created["uri"])
        raise OperationError("Failed to create resource")

    def subscribe(
        self,
        thread_id: str,
        on_event: EventCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Subscribe to a thread's event stream with the current session."""
        return self.stream.subscribe(
            thread_id,
            on_event,
            on_error,
            headers=self.session.headers(),
        )

    def events(self, thread_id: str) -> AsyncGenerator[StreamEvent, None]:
        """Iterate a thread's events with the current session."""
        return self.stream.events(thread_id, headers=self.session.headers())
