"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via CMDCENTER_* env vars
or a YAML file (see yaml_config.py).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .display_state import QUESTION_TOOL_NAME
from .state_file import DEFAULT_STATE_FILE

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_FILE = Path.home() / ".claude" / "settings.json"
DEFAULT_LOG_DIR = Path.home() / ".cmdcenter" / "logs"

# One hour, per session binding
DEFAULT_RETENTION_SECONDS = 3600.0


@dataclass
class WatcherConfig:
    """Session-state watcher configuration."""

    # Shared file written by hook processes
    state_file_path: Path = field(default_factory=lambda: DEFAULT_STATE_FILE)
    # Agent tool settings that hold the hook entries
    settings_path: Path = field(default_factory=lambda: DEFAULT_SETTINGS_FILE)

    # Bindings not refreshed within this window are swept
    retention_seconds: float = DEFAULT_RETENTION_SECONDS
    sweep_interval_seconds: float = 60.0
    # Coalescing window for file change notifications
    watch_debounce_ms: int = 50

    question_tool_name: str = QUESTION_TOOL_NAME

    # Logging
    log_level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: DEFAULT_LOG_DIR)

    # HTTP/SSE bridge; port 0 picks a free port
    server_host: str = "127.0.0.1"
    server_port: int = 0

    @property
    def retention_ms(self) -> int:
        return int(self.retention_seconds * 1000)

    @classmethod
    def from_env(cls) -> WatcherConfig:
        """Load configuration from CMDCENTER_* environment variables."""
        overrides = {
            k: v for k, v in os.environ.items() if k.startswith("CMDCENTER_")
        }
        if overrides:
            logger.info(
                "WatcherConfig.from_env: CMDCENTER_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(overrides.items())),
            )
        else:
            logger.debug("WatcherConfig.from_env: no CMDCENTER_* env vars set, using defaults")

        config = cls()
        state_file = os.getenv("CMDCENTER_STATE_FILE")
        if state_file:
            config.state_file_path = Path(state_file).expanduser()
        settings_file = os.getenv("CMDCENTER_SETTINGS_FILE")
        if settings_file:
            config.settings_path = Path(settings_file).expanduser()
        log_dir = os.getenv("CMDCENTER_LOG_DIR")
        if log_dir:
            config.log_dir = Path(log_dir).expanduser()
        config.retention_seconds = float(os.getenv(
            "CMDCENTER_RETENTION_SECONDS", str(cls.retention_seconds)
        ))
        config.sweep_interval_seconds = float(os.getenv(
            "CMDCENTER_SWEEP_INTERVAL", str(cls.sweep_interval_seconds)
        ))
        config.watch_debounce_ms = int(os.getenv(
            "CMDCENTER_WATCH_DEBOUNCE_MS", str(cls.watch_debounce_ms)
        ))
        config.question_tool_name = os.getenv(
            "CMDCENTER_QUESTION_TOOL", cls.question_tool_name
        )
        config.log_level = os.getenv("CMDCENTER_LOG_LEVEL", cls.log_level).upper()
        config.server_host = os.getenv("CMDCENTER_HOST", cls.server_host)
        config.server_port = int(os.getenv(
            "CMDCENTER_PORT", str(cls.server_port)
        ))
        logger.info(
            "WatcherConfig.from_env: state_file=%s retention=%.0fs sweep=%.0fs log_level=%s",
            config.state_file_path, config.retention_seconds,
            config.sweep_interval_seconds, config.log_level,
        )
        return config
