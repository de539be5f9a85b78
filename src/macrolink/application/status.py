"""
Formatting helpers for connection status displays.
"""

from __future__ import annotations

from typing import Any

from rich.text import Text

from macrolink.domain.types import ConnectionState


def get_status_icon(state: ConnectionState) -> str:
    """Return the emoji used for the given connection state."""
    status_icons = {
        ConnectionState.READY: "🟢",
        ConnectionState.DISCONNECTED: "🔴",
        ConnectionState.CONNECTING: "🟡",
        ConnectionState.RECONNECTING: "🟡",
        ConnectionState.ERROR: "🔴",
    }
    return status_icons.get(state, "⚪")


def get_status_text(state: ConnectionState) -> str:
    """Return the Rich markup representing the connection state."""
    status_texts = {
        ConnectionState.READY: "[green]Connected[/]",
        ConnectionState.DISCONNECTED: "[red]Disconnected[/]",
        ConnectionState.CONNECTING: "[yellow]Connecting...[/]",
        ConnectionState.RECONNECTING: "[yellow]Reconnecting...[/]",
        ConnectionState.ERROR: "[red]Error[/]",
    }
    return status_texts.get(state, "[dim]Idle[/]")


def format_status_line_markup(
    state: ConnectionState,
    host: str,
    reconnect_info: dict[str, Any] | None = None,
) -> str:
    """
    Build the markup for the status line, including reconnection details.
    """
    parts = [get_status_icon(state), get_status_text(state), f"[cyan]{host}[/]"]

    if state == ConnectionState.RECONNECTING and reconnect_info:
        attempts = reconnect_info.get("attempts", 0)
        next_retry = reconnect_info.get("next_retry_delay")
        if next_retry is not None:
            parts.append(f"[dim]attempt {attempts}, retry in {next_retry:.0f}s[/]")
        else:
            parts.append(f"[dim]attempt {attempts}[/]")

    return " ".join(parts)


def format_status_line(
    state: ConnectionState,
    host: str,
    reconnect_info: dict[str, Any] | None = None,
) -> Text:
    """Return the status line as a Rich Text object."""
    return Text.from_markup(format_status_line_markup(state, host, reconnect_info))
