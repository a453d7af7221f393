"""Tests for agents and prompts commands."""

from __future__ import annotations

import json
from unittest.mock import Mock

from typer.testing import CliRunner

from nanobot_cli.main import app
from nanobot_cli.protocol.models import Agent, Prompt


class TestAgentsList:
    """Test suite for agents list."""

    def test_list(self, runner: CliRunner, mock_client: Mock) -> None:
        mock_client.list_agents.return_value = [Agent(id="a1", name="Helper", model="gpt-4o")]

        result = runner.invoke(app, ["agents", "list"])

        assert result.exit_code == 0, result.output
        assert "Helper" in result.output
        assert "gpt-4o" in result.output

    def test_list_empty(self, runner: CliRunner, mock_client: Mock) -> None:
        result = runner.invoke(app, ["agents", "list"])

        assert result.exit_code == 0
        assert "No agents found" in result.output


class TestPromptsList:
    """Test suite for prompts list."""

    def test_list_json(self, runner: CliRunner, mock_client: Mock) -> None:
        mock_client.list_prompts.return_value = [
            Prompt.model_validate({"name": "summarize", "arguments": [{"name": "topic", "required": True}]})
        ]

        result = runner.invoke(app, ["prompts", "list", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data[0]["name"] == "summarize"
        assert data[0]["arguments"][0]["name"] == "topic"

    def test_list_table(self, runner: CliRunner, mock_client: Mock) -> None:
        mock_client.list_prompts.return_value = [
            Prompt.model_validate({"name": "summarize", "arguments": [{"name": "topic"}]})
        ]

        result = runner.invoke(app, ["prompts", "list"])

        assert result.exit_code == 0
        assert "summarize" in result.output
        assert "topic" in result.output
