"""Dependency injection container for the nanobot CLI.

Centralizes object creation and wiring across the CLI layers.

Design principles:
- Configuration and the state store are cached for the process lifetime
- Clients are created per command, since an httpx client is bound to the
  event loop that ``asyncio.run`` creates for each command
- Every factory honours an override so tests can inject mocks

Factory functions:
- get_config(): Load and cache configuration
- get_store(): Create and cache the key-value store
- resolve_server_url(): Configured URL, else the saved one
- create_client(): Create a protocol client (no caching)
- client_context(): Create a client and close it on exit
- get_chat_service(): Create a conversation service (no caching)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any

from nanobot_cli.client import NanobotClient
from nanobot_cli.config import Config
from nanobot_cli.exceptions import NotConfiguredError
from nanobot_cli.services.chat import ChatService
from nanobot_cli.storage import SERVER_URL_KEY, FileStore, KeyValueStore

# Global container state for testing/mocking
_overrides: dict[str, Any] = {}


def set_override(key: str, value: Any) -> None:
    """Override a container dependency.

    Used by tests to inject mocks, and by the CLI to install the
    configuration loaded from ``--config``.

    Args:
        key: Dependency key ("config", "store", "client" or "chat_service")
        value: Replacement implementation

    Example:
        >>> set_override("client", Mock(spec=NanobotClient))
        >>> async with client_context() as client:  # yields the mock
        ...     ...
        >>> clear_overrides()
    """
    _overrides[key] = value


def clear_overrides() -> None:
    _overrides.clear()


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache configuration.

    Returns:
        Configuration instance

    Raises:
        ValueError: A config file is invalid
    """
    if "config" in _overrides:
        override = _overrides["config"]
        if not isinstance(override, Config):
            raise TypeError("Override for 'config' must be a Config instance")
        return override

    return Config.load()


@lru_cache(maxsize=1)
def get_store() -> KeyValueStore:
    """Create and cache the store holding the session id and saved server URL."""
    if "store" in _overrides:
        override = _overrides["store"]
        if not isinstance(override, KeyValueStore):
            raise TypeError("Override for 'store' must implement KeyValueStore")
        return override

    return FileStore(get_config().storage.path)


async def resolve_server_url() -> str:
    """Server URL from configuration, else the one saved with set-server.

    Raises:
        NotConfiguredError: Neither is available
    """
    config = get_config()
    if config.server.url:
        return config.server.url

    saved = await get_store().get(SERVER_URL_KEY)
    if saved:
        return saved

    raise NotConfiguredError()


async def create_client() -> NanobotClient:
    """Create a protocol client for the resolved server.

    Not cached: each command runs in its own event loop.

    Raises:
        NotConfiguredError: No server URL is available
    """
    if "client" in _overrides:
        override = _overrides["client"]
        if not isinstance(override, NanobotClient):
            raise TypeError("Override for 'client' must be a NanobotClient instance")
        return override

    config = get_config()
    return NanobotClient.create(
        await resolve_server_url(),
        get_store(),
        endpoint=config.server.endpoint,
        timeout=config.server.timeout,
        retries=config.server.retries,
        verify_ssl=config.server.verify_ssl,
        stream_read_timeout=config.server.stream_read_timeout,
        client_name=config.client.name,
        client_version=config.client.version,
    )


@asynccontextmanager
async def client_context() -> AsyncIterator[NanobotClient]:
    """Yield a client and release its connection pool afterwards.

    An overridden client is owned by whoever installed it and is not closed.
    """
    overridden = "client" in _overrides
    client = await create_client()
    try:
        yield client
    finally:
        if not overridden:
            await client.close()


def get_chat_service(client: NanobotClient) -> ChatService:
    """Create a conversation service on top of a client (no caching)."""
    if "chat_service" in _overrides:
        override = _overrides["chat_service"]
        if not isinstance(override, ChatService):
            raise TypeError("Override for 'chat_service' must be a ChatService instance")
        return override

    return ChatService(client)


def reset_container() -> None:
    """Clear all caches and overrides."""
    clear_overrides()
    get_config.cache_clear()
    get_store.cache_clear()
