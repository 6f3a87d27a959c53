"""Hook emitter — invoked by the agent tool on every lifecycle event.

Reads one JSON event from stdin and merges the resulting record into the
shared state file. It never writes to stdout and always exits 0: the
agent tool must not be disrupted by anything that happens here. The
outcome of each run is reported as a ``HookResult`` and logged to
``hook.log``.

Usage (as configured by ``cmdcenter --install-hooks``):
    cmdcenter-hook < event.json
"""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from cmdcenter.engine.config import WatcherConfig
from cmdcenter.engine.display_state import QUESTION_TOOL_NAME, display_state_for_hook
from cmdcenter.engine.errors import StateFileError
from cmdcenter.engine.models import SESSION_END_EVENTS, LifecycleRecord
from cmdcenter.engine.registry import now_ms
from cmdcenter.engine.state_file import StateFileWriter

logger = logging.getLogger(__name__)

HOOK_LOG_MAX_BYTES = 1_000_000

WRITTEN = "written"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class HookResult:
    """Outcome of one hook invocation. Never raised, only returned."""
    status: str
    reason: str = ""
    record: LifecycleRecord | None = None

    @property
    def ok(self) -> bool:
        return self.status != FAILED


def build_record(
    payload: dict[str, Any],
    timestamp_ms: int,
    question_tool_name: str = QUESTION_TOOL_NAME,
) -> LifecycleRecord | None:
    """Turn a hook payload into a state-file record.

    Returns None when the event carries nothing worth writing: no
    display state and not a session end.
    """
    event_name = payload.get("hook_event_name") or ""
    state = display_state_for_hook(payload, question_tool_name)
    if state is None and event_name not in SESSION_END_EVENTS:
        return None
    cwd = payload.get("cwd")
    return LifecycleRecord(
        session_id=payload["session_id"],
        cwd=cwd if isinstance(cwd, str) else "",
        display_state=state,
        timestamp_ms=timestamp_ms,
        event_name=event_name,
    )


def run_hook(
    raw: str,
    state_path: Path,
    now: int | None = None,
    retention_ms: int | None = None,
    question_tool_name: str = QUESTION_TOOL_NAME,
) -> HookResult:
    """Process one hook event from its raw stdin text."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        return HookResult(FAILED, f"invalid json on stdin: {exc.msg}")
    if not isinstance(payload, dict):
        return HookResult(FAILED, "stdin is not a JSON object")
    session_id = payload.get("session_id")
    if not isinstance(session_id, str) or not session_id:
        return HookResult(SKIPPED, "no session_id")

    record = build_record(
        payload,
        now_ms() if now is None else now,
        question_tool_name=question_tool_name,
    )
    if record is None:
        return HookResult(
            SKIPPED, f"no state change for {payload.get('hook_event_name')!r}",
        )
    try:
        stored = StateFileWriter(state_path).merge(record, retention_ms=retention_ms)
    except StateFileError as exc:
        return HookResult(FAILED, exc.reason, record)
    if stored is None:
        return HookResult(SKIPPED, "a newer record is already stored", record)
    return HookResult(WRITTEN, record=stored)


def _configure_logging(config: WatcherConfig) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    try:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        # Many short-lived hook processes share this file; a racing
        # rollover can lose a few lines but never blocks the hook.
        handler: logging.Handler = RotatingFileHandler(
            config.log_dir / "hook.log",
            maxBytes=HOOK_LOG_MAX_BYTES,
            backupCount=1,
            encoding="utf-8",
        )
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    ))
    root.handlers[:] = [handler]


def main() -> int:
    """Entry point for ``cmdcenter-hook``; always returns 0."""
    try:
        config = WatcherConfig.from_env()
        _configure_logging(config)
        raw = sys.stdin.read()
        result = run_hook(
            raw,
            config.state_file_path,
            retention_ms=config.retention_ms,
            question_tool_name=config.question_tool_name,
        )
    except Exception:
        # Last line of defence for the exit-0 contract; still recorded.
        logger.exception("Hook emitter crashed")
        return 0
    if not result.ok:
        logger.warning("Hook event not recorded: %s", result.reason)
    else:
        logger.debug("Hook %s: %s", result.status, result.reason or "ok")
    return 0


if __name__ == "__main__":
    sys.exit(main())
