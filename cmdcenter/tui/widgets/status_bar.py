"""Status bar — bottom bar showing watcher state and terminal counts."""

from __future__ import annotations

import time
from typing import Optional

from rich.text import Text
from textual.reactive import reactive
from textual.timer import Timer
from textual.widget import Widget


def _format_elapsed(seconds: float) -> str:
    """Format elapsed seconds into a human-readable string."""
    secs = int(seconds)
    if secs < 60:
        return f"{secs}s"
    elif secs < 3600:
        m, s = divmod(secs, 60)
        return f"{m}m {s}s"
    else:
        h, remainder = divmod(secs, 3600)
        m = remainder // 60
        return f"{h}h {m}m"


class StatusBar(Widget):
    """Single-line status bar: state file, watcher status, counts."""

    DEFAULT_CSS = """
    StatusBar {
        height: 1;
        dock: bottom;
    }
    """

    state_file: reactive[str] = reactive("—")
    status: reactive[str] = reactive("stopped")
    terminals: reactive[int] = reactive(0)
    bound: reactive[int] = reactive(0)

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._watching_since: Optional[float] = None
        self._elapsed_timer: Timer | None = None

    def watch_status(self, old_value: str, new_value: str) -> None:
        """Track how long the watcher has been running."""
        if new_value == "watching" and old_value != "watching":
            self._watching_since = time.monotonic()
            if self._elapsed_timer is None:
                self._elapsed_timer = self.set_interval(1.0, self.refresh)
        elif old_value == "watching" and new_value != "watching":
            self._watching_since = None
            if self._elapsed_timer is not None:
                self._elapsed_timer.stop()
                self._elapsed_timer = None

    def render(self) -> Text:
        status_colors = {
            "watching": "green",
            "stopped": "yellow",
            "error": "red bold",
        }
        color = status_colors.get(self.status, "white")

        bar = Text()
        status_display = f" ● {self.status}"
        if self._watching_since is not None:
            elapsed = _format_elapsed(time.monotonic() - self._watching_since)
            status_display += f" ({elapsed})"
        bar.append(status_display, style=color)
        bar.append(" │ ", style="dim")
        bar.append(f"{self.terminals} terminals", style="bold")
        bar.append(" │ ", style="dim")
        bar.append(f"{self.bound} bound", style="cyan")
        bar.append(" │ ", style="dim")
        bar.append(self.state_file, style="dim")
        return bar
