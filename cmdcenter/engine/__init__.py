"""Session-state engine: correlates agent hook records with terminals."""
from .models import (
    BoundCorrelation,
    DisplayState,
    HookEvent,
    LifecycleRecord,
    PendingCorrelation,
    TerminalHandle,
)
from .config import WatcherConfig
from .forwarder import NullForwarder, UiForwarder
from .paths import normalize_cwd
from .registry import SessionRegistry
from .state_file import ParseFailure, StateFileReader, StateFileWriter
from .errors import (
    CommandCenterError,
    ConfigError,
    HookInstallError,
    StateFileError,
)

__all__ = [
    # Watcher (lazy import, pulls in watchfiles)
    "HookStateWatcher",
    "StalenessSweeper",
    # Models
    "BoundCorrelation",
    "DisplayState",
    "HookEvent",
    "LifecycleRecord",
    "PendingCorrelation",
    "TerminalHandle",
    # UI forwarding
    "NullForwarder",
    "UiForwarder",
    # Registry / wire format
    "SessionRegistry",
    "normalize_cwd",
    "ParseFailure",
    "StateFileReader",
    "StateFileWriter",
    # Config
    "WatcherConfig",
    "load_yaml_config",
    # Errors
    "CommandCenterError",
    "ConfigError",
    "HookInstallError",
    "StateFileError",
]


def __getattr__(name: str):
    if name == "HookStateWatcher":
        from .watcher import HookStateWatcher
        return HookStateWatcher
    if name == "StalenessSweeper":
        from .sweeper import StalenessSweeper
        return StalenessSweeper
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
