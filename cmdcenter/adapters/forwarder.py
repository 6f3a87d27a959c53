"""UI forwarders that hand display states to frontends."""
from __future__ import annotations

import logging

from cmdcenter.adapters.event_bus import EventBus
from cmdcenter.adapters.events import TerminalStateChanged
from cmdcenter.engine.forwarder import NullForwarder, UiForwarder
from cmdcenter.engine.models import DisplayState

logger = logging.getLogger(__name__)

__all__ = ["EventBusForwarder", "NullForwarder", "UiForwarder"]


class EventBusForwarder:
    """Publishes deliveries onto an EventBus as TerminalStateChanged.

    Also remembers the last state sent per terminal so late-joining
    consumers can be given a snapshot.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self.last_states: dict[str, DisplayState] = {}

    def send(self, terminal_id: str, state: DisplayState) -> None:
        self.last_states[terminal_id] = state
        if not self._bus.publish(
            TerminalStateChanged(terminal_id=terminal_id, state=state.value)
        ):
            logger.debug("UI gone, dropped state %s for %s", state.value, terminal_id)

    def forget(self, terminal_id: str) -> None:
        self.last_states.pop(terminal_id, None)
