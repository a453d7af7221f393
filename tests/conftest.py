"""Shared fixtures for the nanobot CLI tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import respx
import structlog

from nanobot_cli import container
from nanobot_cli.storage import MemoryStore
from tests.helpers import BASE_URL, McpServer


@pytest.fixture
def router() -> Iterator[respx.MockRouter]:
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock_router:
        yield mock_router


@pytest.fixture
def mcp_server(router: respx.MockRouter) -> McpServer:
    server = McpServer()
    router.post("/mcp/ui").mock(side_effect=server)
    return server


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture(autouse=True)
def clean_container() -> Iterator[None]:
    container.reset_container()
    yield
    container.reset_container()


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
