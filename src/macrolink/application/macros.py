"""Macro records and device log formatting."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

__all__ = ["Macro", "parse_macro_list", "format_macro_log"]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "on", "1", "yes")
    return bool(value)


@dataclass(frozen=True)
class Macro:
    """A macro stored on the device."""

    name: str
    active: bool = False
    content: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Macro":
        return cls(
            name=str(payload.get("Name", "")),
            active=_as_bool(payload.get("Active", False)),
            content=payload.get("Content"),
        )


def parse_macro_list(result: Any) -> list[Macro]:
    """Extract macros from a ``Macros/Macro/Get`` result."""
    if not isinstance(result, Mapping):
        return []
    return [Macro.from_payload(item) for item in result.get("Macro") or [] if isinstance(item, Mapping)]


def _level_badge(level: str) -> str:
    if "ERR" in level:
        return "🔴"
    if "WARN" in level:
        return "🟡"
    return "🟢"


def format_macro_log(entry: Any) -> str:
    """
    Render a device log event as a single line.

    Structured entries (with ``Message``, ``Level`` or ``Macro`` keys) become
    ``HH:MM:SS.mmm <badge> [macro] - message``. Anything else is printed as
    the string itself or its JSON dump.

    Args:
        entry: Log event as delivered by the session log stream

    Returns:
        Formatted line
    """
    if isinstance(entry, Mapping) and (entry.get("Message") or entry.get("Level") or entry.get("Macro")):
        timestamp = entry.get("Timestamp")
        if isinstance(timestamp, str) and len(timestamp) >= 23:
            time_part = timestamp[11:23]
        else:
            time_part = datetime.now().strftime("%H:%M:%S.%f")[:12]
        level = str(entry.get("Level") or "").upper()
        macro = str(entry.get("Macro") or "")
        message = str(entry.get("Message") or "").strip()
        parts = [time_part, _level_badge(level)]
        if macro:
            parts.append(f"[{macro}]")
        return f"{' '.join(parts)} - {message}"

    if isinstance(entry, str):
        return entry
    try:
        return json.dumps(entry, indent=2, default=str)
    except (TypeError, ValueError):
        return str(entry)
