"""UI forwarder interface: a one-way sink for ``(terminal_id, state)``.

Delivery is fire-and-forget. A forwarder never applies backpressure;
if its consumer is gone, deliveries are dropped.
"""
from __future__ import annotations

import logging
from typing import Protocol

from .models import DisplayState, TerminalHandle

logger = logging.getLogger(__name__)


class UiForwarder(Protocol):
    def send(self, terminal_id: TerminalHandle, state: DisplayState) -> None: ...


class NullForwarder:
    """Discards every delivery (headless runs)."""

    def send(self, terminal_id: TerminalHandle, state: DisplayState) -> None:
        logger.debug("Dropping state %s for terminal %s (no UI)", state.value, terminal_id)
