"""Hook state watcher — the reactive core.

Watches the shared state file written by hook processes, turns each new
record into a terminal display state, and hands it to a UI forwarder.

Per change notification:
    1. read + parse the file (a parse failure skips the cycle and keeps
       all prior state);
    2. for every record newer than that session's watermark: promote a
       pending terminal on session start, resolve the terminal, deliver
       the display state, refresh the binding, and drop the binding on
       session end.

Everything runs on one event loop; only the file read is pushed to a
worker thread.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from watchfiles import Change, awatch

from .config import WatcherConfig
from .forwarder import NullForwarder, UiForwarder
from .models import LifecycleRecord, TerminalHandle
from .registry import SessionRegistry, now_ms
from .state_file import ParseFailure, StateFileReader
from .sweeper import StalenessSweeper

logger = logging.getLogger(__name__)

# Signature: callback(status, detail) with status "watching"/"stopped"/"error"
StatusCallback = Callable[[str, str], None]


class HookStateWatcher:
    """Correlates hook records with registered terminals."""

    def __init__(
        self,
        config: WatcherConfig | None = None,
        forwarder: UiForwarder | None = None,
        registry: SessionRegistry | None = None,
        reader: StateFileReader | None = None,
        clock: Callable[[], int] = now_ms,
        on_status: StatusCallback | None = None,
    ) -> None:
        self.config = config or WatcherConfig()
        self.forwarder: UiForwarder = forwarder or NullForwarder()
        self._clock = clock
        self.registry = registry or SessionRegistry(clock=clock)
        self.reader = reader or StateFileReader(self.config.state_file_path)
        self._on_status = on_status
        # Highest timestamp processed per session id
        self._watermarks: dict[str, int] = {}
        self.sweeper = StalenessSweeper(
            self.registry,
            retention_ms=self.config.retention_ms,
            interval_seconds=self.config.sweep_interval_seconds,
            clock=clock,
            extra=self.prune_watermarks,
        )
        self._stop_event: asyncio.Event | None = None
        self._watch_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    @property
    def state_file_path(self) -> Path:
        return self.reader.path

    # ── Terminal lifecycle ──

    def register_terminal(self, terminal_id: TerminalHandle, cwd: str) -> None:
        """Called once when a terminal is created."""
        self.registry.register_pending(terminal_id, cwd)
        logger.info("Registered terminal %s for cwd: %s", terminal_id, cwd)

    def unregister_terminal(self, terminal_id: TerminalHandle) -> None:
        """Called once when a terminal is destroyed. Idempotent."""
        self.registry.unregister(terminal_id)
        logger.info("Unregistered terminal %s", terminal_id)

    # ── Dispatch ──

    def process_records(
        self,
        records: Mapping[str, LifecycleRecord],
        now: int | None = None,
    ) -> int:
        """Dispatch every record newer than its session's watermark.

        Returns the number of UI deliveries made.
        """
        now = self._clock() if now is None else now
        oldest_relevant = now - self.config.retention_ms
        delivered = 0
        for session_id, record in records.items():
            last = self._watermarks.get(session_id)
            if last is not None and record.timestamp_ms <= last:
                continue
            self._watermarks[session_id] = record.timestamp_ms
            if record.timestamp_ms < oldest_relevant:
                logger.debug(
                    "Ignoring expired record for session %s (%s)",
                    session_id, record.event_name,
                )
                continue
            if self._dispatch(session_id, record, now):
                delivered += 1
        return delivered

    def _dispatch(self, session_id: str, record: LifecycleRecord, now: int) -> bool:
        logger.debug(
            "State change: %s -> %s, session: %s, cwd: %s",
            record.event_name,
            record.display_state.value if record.display_state else None,
            session_id,
            record.normalized_cwd,
        )
        if record.is_session_start and self.registry.has_pending(record.cwd):
            self.registry.promote(session_id, record.cwd, now)

        handle = self.registry.resolve(session_id, record.cwd)
        if handle is None:
            logger.debug("No matching terminal found for session %s", session_id)
            return False

        delivered = False
        if record.display_state is not None:
            try:
                self.forwarder.send(handle, record.display_state)
                delivered = True
            except Exception:
                logger.exception(
                    "UI forwarder failed for terminal %s", handle,
                )
        self.registry.touch(session_id, now)

        if record.is_session_end:
            self.registry.end_session(session_id)
            logger.info("Session %s ended on terminal %s", session_id, handle)
        return delivered

    def prune_watermarks(self, now: int, retention_ms: int) -> int:
        """Forget watermarks for sessions silent longer than the window."""
        stale = [
            s for s, ts in self._watermarks.items() if now - ts > retention_ms
        ]
        for session_id in stale:
            del self._watermarks[session_id]
        return len(stale)

    def prime(self, records: Mapping[str, LifecycleRecord]) -> None:
        """Adopt current timestamps as watermarks without dispatching."""
        for session_id, record in records.items():
            last = self._watermarks.get(session_id, record.timestamp_ms)
            self._watermarks[session_id] = max(last, record.timestamp_ms)

    async def handle_change(self) -> int:
        """Read the file once and dispatch what is new.

        Returns the number of deliveries; a parse failure returns 0 and
        leaves every registry entry untouched.
        """
        result = await asyncio.to_thread(self.reader.read)
        if self._stop_event is not None and self._stop_event.is_set():
            return 0
        if isinstance(result, ParseFailure):
            logger.debug("Skipping state file update: %s", result.reason)
            return 0
        return self.process_records(result)

    # ── Lifecycle ──

    def _set_status(self, status: str, detail: str = "") -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(status, detail)
        except Exception:
            logger.debug("Status callback failed", exc_info=True)

    def _is_state_file(self, change: Change, path: str) -> bool:
        return Path(path).name == self.reader.path.name

    async def _watch_loop(self) -> None:
        assert self._stop_event is not None
        try:
            async for _changes in awatch(
                self.reader.path.parent,
                watch_filter=self._is_state_file,
                debounce=self.config.watch_debounce_ms,
                stop_event=self._stop_event,
                recursive=False,
            ):
                await self.handle_change()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("State file watch failed: %s", self.reader.path)
            self._set_status("error", str(exc))

    async def start(self) -> None:
        """Begin watching the state file and sweeping stale bindings."""
        if self.running:
            return
        self.reader.ensure_exists()
        initial = await asyncio.to_thread(self.reader.read)
        if not isinstance(initial, ParseFailure):
            # Records written before we started describe sessions we
            # never saw start; only react to what changes from here.
            self.prime(initial)
        self._stop_event = asyncio.Event()
        self._watch_task = asyncio.create_task(self._watch_loop())
        self.sweeper.start()
        logger.info("Started watching: %s", self.reader.path)
        self._set_status("watching", str(self.reader.path))

    async def stop(self) -> None:
        """Release the watch subscription; no dispatch happens afterwards."""
        if self._stop_event is not None:
            self._stop_event.set()
        task, self._watch_task = self._watch_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self.sweeper.stop()
        logger.info("Stopped watching")
        self._set_status("stopped")
