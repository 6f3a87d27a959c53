"""Install and remove command-center hooks in the agent tool's settings.

Settings look like::

    {
      "hooks": {
        "PreToolUse": [
          {"hooks": [{"type": "command", "command": "...", "async": true, "timeout": 5}]}
        ]
      }
    }

Only entries whose command carries one of ``HOOK_MARKERS`` belong to us;
everything else in the file is left untouched.
"""
from __future__ import annotations

import json
import logging
import shutil
import sys
from pathlib import Path
from typing import Any

from cmdcenter.engine.errors import HookInstallError
from cmdcenter.shared.services.durable_write import atomic_write_text

logger = logging.getLogger(__name__)

HOOK_EVENTS = (
    "PreToolUse",
    "Stop",
    "Notification",
    "SessionStart",
    "SessionEnd",
    "UserPromptSubmit",
    "PermissionRequest",
)
HOOK_MARKERS = ("cmdcenter-hook", "cmdcenter.hooks.emitter")
HOOK_TIMEOUT_SECONDS = 5


def _forward_slashes(path: str) -> str:
    return path.replace("\\", "/")


def default_hook_command() -> str:
    """Command line the agent tool should run for each event."""
    script = shutil.which("cmdcenter-hook")
    if script:
        return f'"{_forward_slashes(script)}"'
    return f'"{_forward_slashes(sys.executable)}" -m cmdcenter.hooks.emitter'


def _is_ours(command: Any) -> bool:
    return isinstance(command, str) and any(m in command for m in HOOK_MARKERS)


def _entry_is_ours(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    return any(
        isinstance(h, dict) and _is_ours(h.get("command"))
        for h in entry.get("hooks") or []
    )


def _load_settings(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise HookInstallError(str(path), f"settings are not valid JSON: {exc.msg}") from exc
    except OSError as exc:
        raise HookInstallError(str(path), str(exc)) from exc
    if not isinstance(data, dict):
        raise HookInstallError(str(path), "settings top level is not an object")
    return data


def _save_settings(path: Path, settings: dict[str, Any]) -> None:
    try:
        atomic_write_text(path, json.dumps(settings, indent=2) + "\n")
    except OSError as exc:
        raise HookInstallError(str(path), str(exc)) from exc


def install_hooks(settings_path: Path, command: str | None = None) -> list[str]:
    """Add or migrate our hook entry for every event in ``HOOK_EVENTS``.

    Returns the events that changed. The file is written only if that
    list is non-empty.
    """
    command = command or default_hook_command()
    settings = _load_settings(settings_path)
    hooks = settings.setdefault("hooks", {})
    if not isinstance(hooks, dict):
        raise HookInstallError(str(settings_path), "'hooks' is not an object")

    ours = {
        "hooks": [{
            "type": "command",
            "command": command,
            "async": True,
            "timeout": HOOK_TIMEOUT_SECONDS,
        }]
    }
    changed: list[str] = []
    for event in HOOK_EVENTS:
        entries = hooks.setdefault(event, [])
        if not isinstance(entries, list):
            raise HookInstallError(str(settings_path), f"hooks.{event} is not a list")
        index = next(
            (i for i, e in enumerate(entries) if _entry_is_ours(e)), None,
        )
        if index is None:
            entries.append(ours)
            changed.append(event)
            logger.info("Added hook for %s", event)
            continue
        hook = next(
            h for h in entries[index]["hooks"]
            if isinstance(h, dict) and _is_ours(h.get("command"))
        )
        if not hook.get("async") or hook.get("command") != command:
            entries[index] = ours
            changed.append(event)
            logger.info("Migrated hook for %s", event)

    if changed:
        _save_settings(settings_path, settings)
        logger.info("Hooks installed/updated in %s", settings_path)
    else:
        logger.info("Hooks already up to date in %s", settings_path)
    return changed


def uninstall_hooks(settings_path: Path) -> list[str]:
    """Remove our entries; returns the events that had one."""
    if not settings_path.exists():
        return []
    settings = _load_settings(settings_path)
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        return []

    removed: list[str] = []
    for event in list(hooks):
        entries = hooks[event]
        if not isinstance(entries, list):
            continue
        kept = [e for e in entries if not _entry_is_ours(e)]
        if len(kept) != len(entries):
            removed.append(event)
        if kept:
            hooks[event] = kept
        else:
            del hooks[event]
    if not hooks:
        del settings["hooks"]

    if removed:
        _save_settings(settings_path, settings)
        logger.info("Hooks uninstalled from %s", settings_path)
    return removed
