"""Terminal table — one row per registered terminal with its state."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import DataTable

from cmdcenter.adapters.bridge import TerminalView

STATE_STYLES: dict[str, tuple[str, str]] = {
    "busy": ("●", "blue"),
    "permission": ("◉", "bold dark_orange"),
    "question": ("?", "bold dark_orange"),
    "done": ("✓", "bold green"),
}


def render_state(state: str | None) -> Text:
    if state is None:
        return Text("—", style="dim")
    icon, style = STATE_STYLES.get(state, ("?", "white"))
    return Text(f"{icon} {state}", style=style)


def render_correlation(view: TerminalView) -> Text:
    if view.correlation == "bound" and view.session_id:
        return Text(view.session_id[:8], style="cyan")
    if view.correlation == "pending":
        return Text("pending", style="italic yellow")
    return Text("—", style="dim")


class TerminalTable(DataTable):
    """DataTable keyed by terminal id."""

    COLUMNS = ("Terminal", "Directory", "Session", "State")

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault("cursor_type", "row")
        kwargs.setdefault("zebra_stripes", True)
        super().__init__(**kwargs)
        self.add_columns(*self.COLUMNS)

    def show(self, views: list[TerminalView]) -> None:
        """Replace the table contents, keeping the cursor where it was."""
        row = self.cursor_row
        self.clear()
        for view in views:
            self.add_row(
                Text(view.terminal_id, style="bold"),
                view.cwd,
                render_correlation(view),
                render_state(view.state),
                key=view.terminal_id,
            )
        if views:
            self.move_cursor(row=min(row, len(views) - 1))

    def selected_terminal(self) -> str | None:
        if self.row_count == 0:
            return None
        row_key, _ = self.coordinate_to_cell_key(self.cursor_coordinate)
        return row_key.value
