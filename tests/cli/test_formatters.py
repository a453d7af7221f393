"""Unit tests for CLI formatters."""

from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from unittest.mock import patch

from nanobot_cli.formatters import (
    _format_value,
    _should_use_color,
    format_block,
    format_error,
    format_json,
    format_message,
    format_success,
    format_table,
    format_timestamp,
    format_warning,
)
from nanobot_cli.services.models import (
    ImageBlock,
    Message,
    MessageStatus,
    ResourceBlock,
    Role,
    TextBlock,
    ToolCallBlock,
    ToolResultBlock,
)


class TestColorDetection:
    """Test color auto-detection."""

    def test_tty_enables_color(self) -> None:
        with patch("sys.stdout.isatty", return_value=True):
            with patch.dict(os.environ, {}, clear=True):
                assert _should_use_color() is True

    def test_pipe_disables_color(self) -> None:
        with patch("sys.stdout.isatty", return_value=False):
            assert _should_use_color() is False

    def test_no_color_env(self) -> None:
        with patch("sys.stdout.isatty", return_value=True):
            with patch.dict(os.environ, {"NO_COLOR": "1"}):
                assert _should_use_color() is False

    def test_dumb_term(self) -> None:
        with patch("sys.stdout.isatty", return_value=True):
            with patch.dict(os.environ, {"TERM": "dumb"}, clear=True):
                assert _should_use_color() is False


class TestScalars:
    """Tests for timestamps, JSON and cell values."""

    def test_format_timestamp(self) -> None:
        when = datetime(2024, 5, 1, 12, 30, 5, tzinfo=UTC)

        assert format_timestamp(when) == "2024-05-01 12:30:05"
        assert format_timestamp("2024-05-01T12:30:05Z", include_time=False) == "2024-05-01"
        assert format_timestamp("yesterday") == "yesterday"
        assert format_timestamp(None) == "N/A"

    def test_format_json_handles_datetimes(self) -> None:
        data = {"when": datetime(2024, 5, 1, tzinfo=UTC), "title": "café"}

        assert json.loads(format_json(data))["title"] == "café"
        assert "\n" not in format_json(data, pretty=False)

    def test_format_value_escapes_markup(self) -> None:
        assert _format_value("[bold]x[/bold]") == "\\[bold]x\\[/bold]"
        assert _format_value(None) == "[dim]N/A[/dim]"
        assert _format_value(True) == "[green]Yes[/green]"
        assert _format_value(["a", "b"]) == "a, b"
        assert _format_value([]) == "[dim]None[/dim]"


class TestFormatTable:
    """Tests for format_table()."""

    def test_rows_rendered(self) -> None:
        output = format_table(
            [{"name": "echo", "description": "Echo text"}],
            title="Tools",
            force_color=False,
        )

        assert "Tools" in output
        assert "echo" in output
        assert "Description" in output

    def test_empty(self) -> None:
        assert "No data" in format_table([])


class TestFormatBlock:
    """Tests for content block rendering."""

    def test_text_escaped(self) -> None:
        assert format_block(TextBlock(text="[x]")) == "\\[x]"

    def test_image(self) -> None:
        assert "image image/png" in format_block(ImageBlock(data="", mime_type="image/png"))

    def test_tool_call(self) -> None:
        output = format_block(ToolCallBlock(name="search", input={"q": "x"}))

        assert "search" in output
        assert '{"q": "x"}' in output

    def test_tool_result_error(self) -> None:
        output = format_block(ToolResultBlock(name="search", output={"n": 1}, is_error=True))

        assert output.startswith("[red]")
        assert '{"n": 1}' in output

    def test_resource(self) -> None:
        assert format_block(ResourceBlock(text="notes")) == "notes"
        assert "file:///a.txt" in format_block(ResourceBlock(uri="file:///a.txt"))


class TestFormatMessage:
    """Tests for format_message()."""

    def test_user_message(self) -> None:
        message = Message(id="m1", role=Role.USER, content=[TextBlock(text="hi")])

        assert format_message(message) == "[bold blue]You[/bold blue]\nhi"

    def test_error_marker(self) -> None:
        message = Message(
            id="m2",
            role=Role.ASSISTANT,
            content=[TextBlock(text="Error: boom")],
            status=MessageStatus.ERROR,
        )

        assert "(error)" in format_message(message)

    def test_incomplete_marker_without_content(self) -> None:
        message = Message(id="m3", role=Role.ASSISTANT, status=MessageStatus.STREAMING)

        assert format_message(message).endswith("[yellow](incomplete)[/yellow]")


class TestStatusMessages:
    """Tests for status message helpers."""

    def test_helpers(self) -> None:
        assert format_success("done") == "[green]✓[/green] done"
        assert format_error("bad") == "[red]✗[/red] bad"
        assert format_warning("hmm") == "[yellow]⚠[/yellow] hmm"
