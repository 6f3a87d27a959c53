"""Event types delivered from the core to UI consumers.

Each event is a typed dataclass; ``event_to_dict`` converts it to the
JSON shape sent over SSE.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class CommandCenterEvent:
    """Base event."""
    event_type: str = ""


@dataclass
class TerminalStateChanged(CommandCenterEvent):
    """A terminal's display state changed (busy/permission/question/done)."""
    event_type: str = "terminal_state"
    terminal_id: str = ""
    state: str = ""


@dataclass
class TerminalRegistered(CommandCenterEvent):
    event_type: str = "terminal_registered"
    terminal_id: str = ""
    cwd: str = ""


@dataclass
class TerminalUnregistered(CommandCenterEvent):
    event_type: str = "terminal_unregistered"
    terminal_id: str = ""


@dataclass
class WatcherStatus(CommandCenterEvent):
    """Watcher lifecycle: "watching", "stopped" or "error"."""
    event_type: str = "watcher_status"
    status: str = ""
    detail: str = ""


def event_to_dict(event: CommandCenterEvent) -> dict[str, Any]:
    """Convert a typed event to a plain dict for JSON serialization."""
    d: dict[str, Any] = {}
    for f in event.__dataclass_fields__:
        val = getattr(event, f)
        if val is not None:
            d[f] = val
    if "event_type" in d:
        d["event"] = d.pop("event_type")
    return d
