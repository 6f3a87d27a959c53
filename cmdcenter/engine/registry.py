"""Session registry — correlates agent sessions with terminal handles.

Two maps are kept:

- pending: normalized cwd -> PendingCorrelation, for terminals whose
  agent session has not announced itself yet;
- bound: session id -> BoundCorrelation, once a session id is known.

The registry never touches the filesystem and is only mutated from the
event loop that owns it.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .models import BoundCorrelation, PendingCorrelation, TerminalHandle
from .paths import normalize_cwd

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Wall-clock epoch milliseconds (same clock as the hook emitter)."""
    return int(time.time() * 1000)


class SessionRegistry:
    """Pending/bound correlation maps between sessions and terminals."""

    def __init__(self, clock: Callable[[], int] = now_ms) -> None:
        self._clock = clock
        self._pending: dict[str, PendingCorrelation] = {}
        self._bound: dict[str, BoundCorrelation] = {}

    # ── Mutation ──

    def register_pending(self, terminal_handle: TerminalHandle, cwd: str) -> None:
        """Record a terminal awaiting its first lifecycle event.

        A second terminal for the same directory replaces the first
        (last writer wins).
        """
        key = normalize_cwd(cwd)
        previous = self._pending.get(key)
        if previous is not None and previous.terminal_handle != terminal_handle:
            logger.info(
                "Pending correlation for %s replaced: %s -> %s",
                key, previous.terminal_handle, terminal_handle,
            )
        self._pending[key] = PendingCorrelation(
            normalized_cwd=key, terminal_handle=terminal_handle,
        )
        logger.debug("Registered terminal %s for cwd %s", terminal_handle, key)

    def unregister(self, terminal_handle: TerminalHandle) -> None:
        """Drop every pending and bound entry referencing a terminal.

        Unknown handles are a no-op.
        """
        for key in [
            k for k, p in self._pending.items()
            if p.terminal_handle == terminal_handle
        ]:
            del self._pending[key]
            logger.debug("Unregistered terminal %s from cwd %s", terminal_handle, key)
        for session_id in [
            s for s, b in self._bound.items()
            if b.terminal_handle == terminal_handle
        ]:
            del self._bound[session_id]
            logger.debug(
                "Unregistered session %s for terminal %s", session_id, terminal_handle,
            )

    def promote(
        self,
        session_id: str,
        cwd: str,
        now: int | None = None,
    ) -> TerminalHandle | None:
        """Bind a session id to the terminal pending for ``cwd``.

        Consumes the pending entry. Any older session still bound to the
        same terminal is dropped. Returns None when nothing is pending.
        """
        key = normalize_cwd(cwd)
        pending = self._pending.pop(key, None)
        if pending is None:
            return None
        handle = pending.terminal_handle
        for old_session_id in [
            s for s, b in self._bound.items()
            if b.terminal_handle == handle and s != session_id
        ]:
            del self._bound[old_session_id]
            logger.info(
                "Removed old session %s for terminal %s", old_session_id, handle,
            )
        self._bound[session_id] = BoundCorrelation(
            session_id=session_id,
            terminal_handle=handle,
            last_seen=self._clock() if now is None else now,
            cwd=key,
        )
        logger.info("Associated session %s with terminal %s", session_id, handle)
        return handle

    def touch(self, session_id: str, now: int) -> None:
        """Refresh ``last_seen`` for a bound session."""
        bound = self._bound.get(session_id)
        if bound is not None:
            bound.last_seen = now

    def end_session(self, session_id: str) -> TerminalHandle | None:
        """Remove the binding for an explicitly ended session.

        The terminal is re-armed as pending for its directory unless a
        newer terminal already claimed that directory.
        """
        bound = self._bound.pop(session_id, None)
        if bound is None:
            return None
        if bound.cwd and bound.cwd not in self._pending:
            self._pending[bound.cwd] = PendingCorrelation(
                normalized_cwd=bound.cwd, terminal_handle=bound.terminal_handle,
            )
            logger.debug(
                "Re-armed terminal %s for cwd %s after session %s ended",
                bound.terminal_handle, bound.cwd, session_id,
            )
        return bound.terminal_handle

    def sweep(self, now: int, retention_ms: int) -> int:
        """Remove bindings not refreshed within ``retention_ms``.

        Returns the number of bindings removed.
        """
        stale = [
            s for s, b in self._bound.items()
            if now - b.last_seen > retention_ms
        ]
        for session_id in stale:
            del self._bound[session_id]
        return len(stale)

    # ── Lookup ──

    def resolve(self, session_id: str, cwd: str | None) -> TerminalHandle | None:
        """Find the terminal for a record: by session id, then by cwd."""
        bound = self._bound.get(session_id)
        if bound is not None:
            return bound.terminal_handle
        if cwd:
            pending = self._pending.get(normalize_cwd(cwd))
            if pending is not None:
                return pending.terminal_handle
        return None

    def has_pending(self, cwd: str | None) -> bool:
        return bool(cwd) and normalize_cwd(cwd) in self._pending

    def bound_for(self, session_id: str) -> BoundCorrelation | None:
        return self._bound.get(session_id)

    def pending_entries(self) -> list[PendingCorrelation]:
        return list(self._pending.values())

    def bound_entries(self) -> list[BoundCorrelation]:
        return list(self._bound.values())

    def __len__(self) -> int:
        return len(self._pending) + len(self._bound)
