"""Exception hierarchy for the command center.

The dispatch path itself never raises (see ``HookStateWatcher``);
these cover configuration, installation and explicit file access.
"""
from __future__ import annotations


class CommandCenterError(Exception):
    """Base exception for all command center errors."""


class ConfigError(CommandCenterError):
    """Configuration file is missing or malformed."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid config {path}: {reason}")


class StateFileError(CommandCenterError):
    """The shared hook state file could not be read or written."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"State file {path}: {reason}")


class HookInstallError(CommandCenterError):
    """Agent settings could not be updated with hook entries."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot update hooks in {path}: {reason}")
