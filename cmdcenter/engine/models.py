"""Core data models for session-state synchronization.

All dataclasses, enums, and type aliases. Single source of truth
to avoid circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .paths import normalize_cwd

# Opaque identifier owned by the terminal-lifecycle subsystem.
TerminalHandle = str


class DisplayState(str, Enum):
    """Status shown in the UI for a terminal."""
    BUSY = "busy"
    PERMISSION = "permission"
    QUESTION = "question"
    DONE = "done"


class HookEvent(str, Enum):
    """Lifecycle event names emitted by the agent tool's hooks."""
    PRE_TOOL_USE = "PreToolUse"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    STOP = "Stop"
    NOTIFICATION = "Notification"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PERMISSION_REQUEST = "PermissionRequest"


SESSION_START_EVENTS = frozenset({HookEvent.SESSION_START.value})
SESSION_END_EVENTS = frozenset({HookEvent.SESSION_END.value})


@dataclass
class PendingCorrelation:
    """A terminal awaiting its first lifecycle event, keyed by directory."""
    normalized_cwd: str
    terminal_handle: TerminalHandle


@dataclass
class BoundCorrelation:
    """A terminal linked to an agent session id.

    ``cwd`` is the normalized directory the binding was promoted from,
    used to re-arm the terminal when the session ends.
    """
    session_id: str
    terminal_handle: TerminalHandle
    last_seen: int
    cwd: str = ""


@dataclass(frozen=True)
class LifecycleRecord:
    """Latest hook record for one session, as stored in the state file.

    ``display_state`` is None for records that carry no UI transition
    (session end, or a ``state`` value this version does not know).
    """
    session_id: str
    cwd: str
    display_state: DisplayState | None
    timestamp_ms: int
    event_name: str

    @property
    def normalized_cwd(self) -> str:
        return normalize_cwd(self.cwd)

    @property
    def is_session_start(self) -> bool:
        return self.event_name in SESSION_START_EVENTS

    @property
    def is_session_end(self) -> bool:
        return self.event_name in SESSION_END_EVENTS

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the state-file record shape."""
        return {
            "session_id": self.session_id,
            "cwd": self.cwd,
            "state": self.display_state.value if self.display_state else None,
            "timestamp": self.timestamp_ms,
            "hook_event": self.event_name,
        }
