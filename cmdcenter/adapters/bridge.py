"""Bridge between the session-state engine and a frontend.

Creates a HookStateWatcher whose UI forwarder publishes onto an
EventBus, tracks the terminals the frontend has registered, and exposes
a snapshot of terminals with their correlation and last display state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from cmdcenter.adapters.event_bus import EventBus
from cmdcenter.adapters.events import (
    TerminalRegistered,
    TerminalUnregistered,
    WatcherStatus,
)
from cmdcenter.adapters.forwarder import EventBusForwarder
from cmdcenter.engine.config import WatcherConfig
from cmdcenter.engine.paths import normalize_cwd
from cmdcenter.engine.watcher import HookStateWatcher

logger = logging.getLogger(__name__)


@dataclass
class TerminalView:
    """What a frontend shows for one terminal."""
    terminal_id: str
    cwd: str
    correlation: str  # "pending", "bound" or "none"
    session_id: str | None = None
    state: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "terminal_id": self.terminal_id,
            "cwd": self.cwd,
            "correlation": self.correlation,
            "session_id": self.session_id,
            "state": self.state,
        }


class SessionBridge:
    """Owns the watcher, event bus and terminal table for one frontend."""

    def __init__(
        self,
        config: WatcherConfig | None = None,
        bus: EventBus | None = None,
        watcher: HookStateWatcher | None = None,
    ) -> None:
        self.config = config or WatcherConfig()
        self.bus = bus or EventBus()
        self.forwarder = EventBusForwarder(self.bus)
        self.watcher = watcher or HookStateWatcher(
            self.config,
            forwarder=self.forwarder,
            on_status=self._on_watcher_status,
        )
        if watcher is not None:
            watcher.forwarder = self.forwarder
        self._terminals: dict[str, str] = {}
        self.watcher_status = "stopped"

    @property
    def terminal_ids(self) -> list[str]:
        return list(self._terminals)

    def _on_watcher_status(self, status: str, detail: str) -> None:
        self.watcher_status = status
        self.bus.publish(WatcherStatus(status=status, detail=detail))

    def register_terminal(self, terminal_id: str, cwd: str) -> None:
        self._terminals[terminal_id] = cwd
        self.watcher.register_terminal(terminal_id, cwd)
        self.bus.publish(TerminalRegistered(terminal_id=terminal_id, cwd=cwd))

    def unregister_terminal(self, terminal_id: str) -> bool:
        """Returns whether the terminal was known. Always safe to call."""
        known = self._terminals.pop(terminal_id, None) is not None
        self.watcher.unregister_terminal(terminal_id)
        self.forwarder.forget(terminal_id)
        if known:
            self.bus.publish(TerminalUnregistered(terminal_id=terminal_id))
        return known

    def snapshot(self) -> list[TerminalView]:
        """Current view of every registered terminal."""
        registry = self.watcher.registry
        bound = {b.terminal_handle: b for b in registry.bound_entries()}
        pending = {p.terminal_handle for p in registry.pending_entries()}
        views: list[TerminalView] = []
        for terminal_id, cwd in self._terminals.items():
            state = self.forwarder.last_states.get(terminal_id)
            binding = bound.get(terminal_id)
            if binding is not None:
                correlation = "bound"
            elif terminal_id in pending:
                correlation = "pending"
            else:
                correlation = "none"
            views.append(TerminalView(
                terminal_id=terminal_id,
                cwd=normalize_cwd(cwd),
                correlation=correlation,
                session_id=binding.session_id if binding else None,
                state=state.value if state else None,
            ))
        return views

    async def start(self) -> None:
        await self.watcher.start()

    async def shutdown(self) -> None:
        await self.watcher.stop()
        self.bus.close()
