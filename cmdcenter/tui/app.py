"""Command Center TUI — Textual application class."""

from __future__ import annotations

import logging

from textual.app import App, ComposeResult
from textual.widgets import Footer, Header

from cmdcenter.adapters.bridge import SessionBridge
from cmdcenter.adapters.events import WatcherStatus
from cmdcenter.engine.config import WatcherConfig
from cmdcenter.tui.widgets.status_bar import StatusBar
from cmdcenter.tui.widgets.terminal_table import TerminalTable

logger = logging.getLogger(__name__)


class CommandCenterApp(App):
    """Live view of terminals and their agent session state."""

    TITLE = "Command Center"
    SUB_TITLE = "Agent Sessions"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("d", "unregister_selected", "Unregister"),
        ("r", "refresh_table", "Refresh"),
    ]

    def __init__(
        self,
        config: WatcherConfig | None = None,
        terminals: list[tuple[str, str]] | None = None,
        bridge: SessionBridge | None = None,
        start_watcher: bool = True,
    ) -> None:
        super().__init__()
        self.config = config or WatcherConfig()
        self.bridge = bridge or SessionBridge(self.config)
        self._initial_terminals = list(terminals or [])
        self._start_watcher = start_watcher

    def compose(self) -> ComposeResult:
        yield Header()
        yield TerminalTable(id="terminal-table")
        yield StatusBar(id="status-bar")
        yield Footer()

    async def on_mount(self) -> None:
        status_bar = self.query_one(StatusBar)
        status_bar.state_file = str(self.config.state_file_path)
        for terminal_id, cwd in self._initial_terminals:
            self.bridge.register_terminal(terminal_id, cwd)
        if self._start_watcher:
            await self.bridge.start()
        self.refresh_view()
        self.run_worker(self._consume_events(), exclusive=True, group="events")

    async def _consume_events(self) -> None:
        async for event in self.bridge.bus.consume():
            if isinstance(event, WatcherStatus):
                self.query_one(StatusBar).status = event.status
            self.refresh_view()

    def refresh_view(self) -> None:
        views = self.bridge.snapshot()
        self.query_one(TerminalTable).show(views)
        status_bar = self.query_one(StatusBar)
        status_bar.status = self.bridge.watcher_status
        status_bar.terminals = len(views)
        status_bar.bound = sum(1 for v in views if v.correlation == "bound")

    def action_refresh_table(self) -> None:
        self.refresh_view()

    def action_unregister_selected(self) -> None:
        terminal_id = self.query_one(TerminalTable).selected_terminal()
        if terminal_id is None:
            return
        self.bridge.unregister_terminal(terminal_id)
        self.refresh_view()

    async def action_quit(self) -> None:
        await self.bridge.shutdown()
        await super().action_quit()
