"""Session lifecycle for the nanobot MCP endpoint.

The server correlates stateless HTTP calls through the ``Mcp-Session-Id``
header. This module owns that identifier: it acquires one on connect, reuses
it across calls, persists it so a restarted process can pick it up again,
and transparently reconnects once when the server reports it expired.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from nanobot_cli import __version__
from nanobot_cli.protocol.exceptions import ParseError, SessionExpiredError
from nanobot_cli.protocol.jsonrpc import SESSION_HEADER, ExchangeResult, JsonRpcClient
from nanobot_cli.protocol.models import InitializeResult
from nanobot_cli.storage import SESSION_KEY, KeyValueStore
from nanobot_cli.transport.exceptions import HttpError

logger = structlog.get_logger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"


class SessionManager:
    """Owner of the session identifier.

    All calls that may change the identifier go through this class, so there
    is at most one writer per process. ``connect()`` is serialized with a lock;
    a reconnect triggered by an expired session never runs twice for the same
    expiry even when several calls notice it concurrently.

    Args:
        rpc: JSON-RPC client used for every exchange
        store: Key-value storage for the persisted session identifier
        client_name: Name reported in clientInfo
        client_version: Version reported in clientInfo
        protocol_version: MCP protocol revision sent with initialize

    Attributes:
        session_id: Current session identifier (or None)
        initialized: Whether initialize succeeded for the current session
        server: Result of the last successful initialize (or None)

    Example:
        >>> manager = SessionManager(rpc, MemoryStore())
        >>> await manager.connect()
        >>> result = await manager.exchange("tools/list")
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        store: KeyValueStore,
        client_name: str = "nanobot-cli",
        client_version: str = __version__,
        protocol_version: str = MCP_PROTOCOL_VERSION,
    ) -> None:
        self.rpc = rpc
        self.store = store
        self.client_name = client_name
        self.client_version = client_version
        self.protocol_version = protocol_version
        self.session_id: str | None = None
        self.initialized = False
        self.server: InitializeResult | None = None
        self._connect_lock = asyncio.Lock()
        # Bumped on every successful initialize; nonzero once a session was established
        self._generation = 0

    @property
    def is_connected(self) -> bool:
        return self.initialized

    def headers(self) -> dict[str, str]:
        """Session header for requests made outside exchange (event stream)."""
        if self.session_id:
            return {SESSION_HEADER: self.session_id}
        return {}

    def _initialize_params(self) -> dict[str, Any]:
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": {
                "roots": {"listChanged": True},
            },
            "clientInfo": {
                "name": self.client_name,
                "version": self.client_version,
            },
        }

    async def restore(self) -> str | None:
        """Seed the session identifier from storage if none is held.

        Returns:
            The session identifier now held (or None)
        """
        if self.session_id is None:
            self.session_id = await self.store.get(SESSION_KEY)
            if self.session_id:
                logger.debug("session_restored", session_id=self.session_id)
        return self.session_id

    async def connect(self) -> InitializeResult:
        """Perform the initialize handshake.

        A previously stored session is sent along; if the server no longer
        knows it, the stale identifier is dropped and initialize is retried
        once without it. While connected, the cached result is returned
        without another handshake.

        Returns:
            Parsed initialize result

        Raises:
            TransportError: Network or HTTP failure
            ProtocolError: Server answered with an error object
        """
        async with self._connect_lock:
            if self.initialized and self.server is not None:
                return self.server
            return await self._connect()

    async def _connect(self) -> InitializeResult:
        await self.restore()
        params = self._initialize_params()

        try:
            outcome = await self.rpc.exchange("initialize", params, self.session_id)
        except SessionExpiredError:
            if self.session_id is None:
                raise
            logger.info("stale_session_dropped", session_id=self.session_id)
            await self._reset()
            outcome = await self.rpc.exchange("initialize", params, None)

        await self._remember(outcome.session_id)

        try:
            server = InitializeResult.model_validate(outcome.result or {})
        except Exception as e:
            raise ParseError(f"Invalid initialize result: {str(e)}")

        self.initialized = True
        self.server = server
        self._generation += 1
        logger.info(
            "session_connected",
            session_id=self.session_id,
            protocol_version=server.protocol_version,
        )
        return server

    async def exchange(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Guarded exchange with a single reconnect on session expiry.

        If the server reports the session expired while a session was
        established, session state is cleared, ``connect()`` runs and the
        original call is retried exactly once. A second expiry propagates.

        Args:
            method: JSON-RPC method name
            params: Method parameters

        Returns:
            The verbatim ``result`` of the response

        Raises:
            SessionExpiredError: The retry after reconnecting expired as well
            TransportError: Network or HTTP failure
            ProtocolError: Server answered with an error object
        """
        generation = self._generation
        established = self._generation > 0 or self.session_id is not None

        try:
            return await self._exchange_once(method, params)
        except SessionExpiredError:
            if not established:
                raise
            logger.warning("session_expired", method=method, session_id=self.session_id)

        await self._reconnect(generation)
        return await self._exchange_once(method, params)

    async def _exchange_once(self, method: str, params: dict[str, Any] | None) -> Any:
        try:
            outcome: ExchangeResult = await self.rpc.exchange(method, params, self.session_id)
        except SessionExpiredError:
            raise
        except HttpError as e:
            await self._remember(e.headers.get(SESSION_HEADER))
            raise
        await self._remember(outcome.session_id)
        return outcome.result

    async def _reconnect(self, generation: int) -> None:
        async with self._connect_lock:
            if generation != self._generation:
                # Another call already reconnected after this one started
                return
            logger.info("session_reconnect", session_id=self.session_id)
            await self._reset()
            await self._connect()

    async def _remember(self, session_id: str | None) -> None:
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            await self.store.set(SESSION_KEY, session_id)

    async def _reset(self) -> None:
        self.initialized = False
        self.session_id = None
        await self.store.delete(SESSION_KEY)

    async def disconnect(self) -> None:
        """Forget the session locally and in storage."""
        await self._reset()
        self.server = None
        logger.info("session_disconnected")
