"""Tests for the key-value stores."""

from __future__ import annotations

import json
import stat
from pathlib import Path

import pytest

from nanobot_cli.storage import SESSION_KEY, FileStore, KeyValueStore, MemoryStore


class TestMemoryStore:
    """Tests for MemoryStore."""

    async def test_get_set_delete(self) -> None:
        store = MemoryStore()

        assert await store.get(SESSION_KEY) is None
        await store.set(SESSION_KEY, "abc123")
        assert await store.get(SESSION_KEY) == "abc123"
        await store.delete(SESSION_KEY)
        await store.delete(SESSION_KEY)
        assert await store.get(SESSION_KEY) is None

    def test_satisfies_protocol(self) -> None:
        assert isinstance(MemoryStore(), KeyValueStore)


class TestFileStore:
    """Tests for FileStore."""

    @pytest.fixture
    def path(self, tmp_path: Path) -> Path:
        return tmp_path / "nested" / "state.json"

    async def test_values_persist_across_instances(self, path: Path) -> None:
        """Test a value written by one store is read by another."""
        await FileStore(path).set(SESSION_KEY, "abc123")

        assert await FileStore(path).get(SESSION_KEY) == "abc123"
        assert json.loads(path.read_text()) == {SESSION_KEY: "abc123"}

    async def test_file_private_to_user(self, path: Path) -> None:
        """Test the state file is created with owner-only permissions."""
        await FileStore(path).set(SESSION_KEY, "abc123")

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    async def test_missing_file_reads_empty(self, path: Path) -> None:
        store = FileStore(path)

        assert await store.get(SESSION_KEY) is None
        await store.delete(SESSION_KEY)
        assert not path.exists()

    async def test_corrupt_file_reads_empty(self, path: Path) -> None:
        """Test an unreadable document is treated as empty and replaced on write."""
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        store = FileStore(path)

        assert await store.get(SESSION_KEY) is None
        await store.set(SESSION_KEY, "fresh")
        assert await store.get(SESSION_KEY) == "fresh"

    async def test_delete_keeps_other_keys(self, path: Path) -> None:
        store = FileStore(path)
        await store.set(SESSION_KEY, "abc123")
        await store.set("other", "value")

        await store.delete(SESSION_KEY)

        assert json.loads(path.read_text()) == {"other": "value"}
