"""Tests for status line formatting."""

from macrolink.application.status import (
    format_status_line,
    format_status_line_markup,
    get_status_icon,
    get_status_text,
)
from macrolink.domain.types import ConnectionState


def test_icons():
    assert get_status_icon(ConnectionState.READY) == "🟢"
    assert get_status_icon(ConnectionState.RECONNECTING) == "🟡"
    assert get_status_icon(ConnectionState.ERROR) == "🔴"
    assert get_status_icon(ConnectionState.IDLE) == "⚪"


def test_text():
    assert get_status_text(ConnectionState.READY) == "[green]Connected[/]"
    assert get_status_text(ConnectionState.IDLE) == "[dim]Idle[/]"


def test_reconnecting_line_includes_progress():
    markup = format_status_line_markup(
        ConnectionState.RECONNECTING,
        "codec.local",
        {"state": "reconnecting", "attempts": 3, "next_retry_delay": 4.0},
    )

    assert markup == "🟡 [yellow]Reconnecting...[/] [cyan]codec.local[/] [dim]attempt 3, retry in 4s[/]"


def test_reconnect_info_ignored_when_ready():
    markup = format_status_line_markup(
        ConnectionState.READY,
        "codec.local",
        {"state": "ready", "attempts": 0, "next_retry_delay": None},
    )

    assert markup == "🟢 [green]Connected[/] [cyan]codec.local[/]"


def test_rich_text():
    text = format_status_line(ConnectionState.DISCONNECTED, "codec.local")

    assert text.plain == "🔴 Disconnected codec.local"
