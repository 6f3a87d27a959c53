"""Adapters package - bridge between the core and UI frontends.

Contains the event bus, typed events and UI forwarders that connect the
session-state engine to the TUI and HTTP/SSE frontends.
"""
from __future__ import annotations

__all__ = [
    "SessionBridge",
    "TerminalView",
    "EventBus",
    "EventBusForwarder",
    "NullForwarder",
    "UiForwarder",
]

from cmdcenter.adapters.event_bus import EventBus
from cmdcenter.adapters.forwarder import EventBusForwarder, NullForwarder, UiForwarder
from cmdcenter.adapters.bridge import SessionBridge, TerminalView
