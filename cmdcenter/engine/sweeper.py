"""Periodic eviction of session bindings that stopped reporting.

A killed agent process never writes a final record, so bindings are
also expired by age, on a timer independent of file changes.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .registry import SessionRegistry, now_ms

logger = logging.getLogger(__name__)


class StalenessSweeper:
    """Runs ``SessionRegistry.sweep`` every ``interval_seconds``.

    Removal is silent: no UI delivery is made for swept terminals.
    ``extra`` is called with ``(now, retention_ms)`` after each sweep for
    other per-session bookkeeping that expires on the same window.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        retention_ms: int,
        interval_seconds: float = 60.0,
        clock: Callable[[], int] = now_ms,
        extra: Callable[[int, int], int] | None = None,
    ) -> None:
        self._registry = registry
        self._retention_ms = retention_ms
        self._interval = max(0.01, interval_seconds)
        self._clock = clock
        self._extra = extra
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> int:
        """Sweep now; returns the number of bindings removed."""
        now = self._clock()
        removed = self._registry.sweep(now, self._retention_ms)
        if removed:
            logger.info(
                "Swept %d stale session binding(s) older than %.0fs",
                removed, self._retention_ms / 1000,
            )
        if self._extra is not None:
            self._extra(now, self._retention_ms)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception:
                logger.exception("Staleness sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
