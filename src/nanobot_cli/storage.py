"""Key-value string storage used for values that outlive the process.

The session identifier and the configured server URL are kept here so that
a restarted CLI can reuse a previously issued session without a fresh
initialize handshake.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

SESSION_KEY = "nanobot_session_id"
SERVER_URL_KEY = "nanobot_server_url"

DEFAULT_STATE_PATH = Path.home() / ".nanobot" / "state.json"


@runtime_checkable
class KeyValueStore(Protocol):
    """Async string storage.

    Implementations must treat a missing key as None on ``get`` and make
    ``delete`` of a missing key a no-op.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, used by tests and one-shot commands."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self.data.pop(key, None)


class FileStore:
    """JSON file store readable only by the current user.

    File I/O runs in a worker thread so the event loop is never blocked.
    A corrupt or unreadable file is treated as empty.

    Args:
        path: Location of the JSON document (default: ~/.nanobot/state.json)

    Example:
        >>> store = FileStore(Path("/tmp/state.json"))
        >>> await store.set("nanobot_session_id", "abc123")
        >>> await store.get("nanobot_session_id")
        'abc123'
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_STATE_PATH
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("state_file_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)

    async def get(self, key: str) -> str | None:
        data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if key not in data:
                return
            del data[key]
            await asyncio.to_thread(self._write, data)
