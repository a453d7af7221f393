"""Fixtures for command tests: a mocked client behind a configured container."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import pytest
from typer.testing import CliRunner

from nanobot_cli import container
from nanobot_cli.client import NanobotClient
from nanobot_cli.config import Config, ServerConfig
from nanobot_cli.protocol.models import CallToolResult, InitializeResult
from nanobot_cli.storage import MemoryStore
from tests.helpers import BASE_URL, initialize_result


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def config() -> Config:
    config = Config(server=ServerConfig(url=BASE_URL))
    container.set_override("config", config)
    return config


@pytest.fixture
def cli_store(store: MemoryStore) -> MemoryStore:
    container.set_override("store", store)
    return store


@pytest.fixture
def mock_client(config: Config, cli_store: MemoryStore) -> Mock:
    """Install a mocked protocol client in the container."""
    client = Mock(spec=NanobotClient)
    client.session_id = "abc123"
    client.connect = AsyncMock(return_value=InitializeResult.model_validate(initialize_result()))
    client.disconnect = AsyncMock()
    client.list_tools = AsyncMock(return_value=[])
    client.call_tool = AsyncMock(return_value=CallToolResult())
    client.list_resources = AsyncMock(return_value=[])
    client.read_resource = AsyncMock()
    client.create_resource = AsyncMock()
    client.list_prompts = AsyncMock(return_value=[])
    client.list_agents = AsyncMock(return_value=[])
    client.list_threads = AsyncMock(return_value=[])
    client.get_thread_messages = AsyncMock(return_value=[])
    client.delete_thread = AsyncMock()
    client.send_message = AsyncMock(return_value=CallToolResult())
    container.set_override("client", client)
    return client
