"""YAML configuration loader.

Layers a ``watcher:`` section over the environment-derived config.

Example YAML:
    watcher:
      state_file_path: ~/.claude/command-center-state.json
      retention_seconds: 3600
      sweep_interval_seconds: 60
      question_tool_name: AskUserQuestion
      log_level: DEBUG

    server:
      host: 127.0.0.1
      port: 8765
"""
from __future__ import annotations

import logging
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from .config import WatcherConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)

_PATH_FIELDS = {"state_file_path", "settings_path", "log_dir"}
_SERVER_KEYS = {"host": "server_host", "port": "server_port"}


def _coerce(name: str, value: Any, current: Any) -> Any:
    if name in _PATH_FIELDS:
        return Path(str(value)).expanduser()
    if isinstance(current, bool):
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return str(value)


def apply_overrides(config: WatcherConfig, values: dict[str, Any]) -> WatcherConfig:
    """Apply known keys onto ``config`` in place; unknown keys are logged."""
    known = {f.name for f in fields(config)}
    for key, value in values.items():
        if key not in known:
            logger.warning("Ignoring unknown watcher config key: %s", key)
            continue
        try:
            setattr(config, key, _coerce(key, value, getattr(config, key)))
        except (TypeError, ValueError) as exc:
            raise ConfigError("<yaml>", f"bad value for {key}: {value!r}") from exc
    return config


def load_yaml_config(
    path: str | Path,
    base: WatcherConfig | None = None,
) -> WatcherConfig:
    """Load ``path`` on top of ``base`` (default: ``WatcherConfig.from_env()``)."""
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(str(path), "file not found")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(str(path), "top level must be a mapping")

    config = base if base is not None else WatcherConfig.from_env()

    watcher_section = raw.get("watcher") or {}
    if not isinstance(watcher_section, dict):
        raise ConfigError(str(path), "'watcher' must be a mapping")
    try:
        apply_overrides(config, watcher_section)
    except ConfigError as exc:
        raise ConfigError(str(path), exc.reason) from exc

    server_section = raw.get("server") or {}
    if not isinstance(server_section, dict):
        raise ConfigError(str(path), "'server' must be a mapping")
    try:
        apply_overrides(config, {
            _SERVER_KEYS[k]: v for k, v in server_section.items()
            if k in _SERVER_KEYS
        })
    except ConfigError as exc:
        raise ConfigError(str(path), exc.reason) from exc

    logger.info("Loaded config from %s", path)
    return config
