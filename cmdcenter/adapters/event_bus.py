"""Async event bus between the core and UI consumers.

Producers publish synchronously from the event loop; consumers iterate
``consume()``. Publishing never blocks: a full queue or a closed bus
drops the event.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from cmdcenter.adapters.events import CommandCenterEvent

logger = logging.getLogger(__name__)


class EventBus:
    """Bounded asyncio queue with drop-on-full publishing."""

    def __init__(self, maxsize: int = 5000) -> None:
        self._queue: asyncio.Queue[CommandCenterEvent] = asyncio.Queue(
            maxsize=maxsize
        )
        self._closed = False

    def publish(self, event: CommandCenterEvent) -> bool:
        """Queue an event. Returns False if it was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "EventBus queue full, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )
            return False
        return True

    async def consume(self) -> AsyncIterator[CommandCenterEvent]:
        """Yield events as they arrive. Stops on close()."""
        while not self._closed:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            yield event

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True
