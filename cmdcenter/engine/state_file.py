"""Shared hook state file: the only code that touches it on disk.

The file is a JSON object mapping session id to the latest record for
that session::

    {
      "<session_id>": {
        "session_id": "<session_id>",
        "cwd": "/path/to/project",
        "state": "busy" | "permission" | "question" | "done" | null,
        "timestamp": 1718000000000,
        "hook_event": "PreToolUse"
      }
    }

Hook processes write it (read-merge-replace under a lock); the watcher
only reads it and must tolerate seeing it mid-write.
"""
from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from cmdcenter.shared.services.durable_write import atomic_write_text

from .display_state import parse_display_state
from .errors import StateFileError
from .models import LifecycleRecord

try:
    import fcntl
except ImportError:  # Windows: writers rely on atomic replace alone
    fcntl = None

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = Path.home() / ".claude" / "command-center-state.json"


@dataclass(frozen=True)
class ParseFailure:
    """The file could not be parsed this cycle; keep prior state."""
    path: str
    reason: str


def _entry_timestamp(entry: Any) -> int | None:
    if not isinstance(entry, dict):
        return None
    timestamp = entry.get("timestamp")
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    return int(timestamp)


def parse_records(data: Any) -> dict[str, LifecycleRecord]:
    """Turn a decoded state-file object into records keyed by session id.

    Individual malformed entries are skipped; they do not fail the read.
    """
    records: dict[str, LifecycleRecord] = {}
    if not isinstance(data, dict):
        return records
    for key, entry in data.items():
        if not isinstance(entry, dict):
            continue
        inner_id = entry.get("session_id")
        if inner_id is not None and inner_id != key:
            logger.debug(
                "Skipping state entry %r: it names session %r", key, inner_id,
            )
            continue
        timestamp = _entry_timestamp(entry)
        if not isinstance(key, str) or not key or timestamp is None:
            logger.debug("Skipping malformed state entry %r", key)
            continue
        cwd = entry.get("cwd")
        event_name = entry.get("hook_event")
        records[key] = LifecycleRecord(
            session_id=key,
            cwd=cwd if isinstance(cwd, str) else "",
            display_state=parse_display_state(entry.get("state")),
            timestamp_ms=timestamp,
            event_name=event_name if isinstance(event_name, str) else "",
        )
    return records


class StateFileReader:
    """Read side used by the watcher."""

    def __init__(self, path: Path = DEFAULT_STATE_FILE) -> None:
        self.path = Path(path)

    def read(self) -> dict[str, LifecycleRecord] | ParseFailure:
        """Parse the current contents, or report why that was impossible."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ParseFailure(str(self.path), "missing")
        except OSError as exc:
            return ParseFailure(str(self.path), f"unreadable: {exc}")
        if not content.strip():
            # Truncated by a writer that has not finished yet
            return ParseFailure(str(self.path), "empty")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            return ParseFailure(str(self.path), f"invalid json: {exc.msg}")
        if not isinstance(data, dict):
            return ParseFailure(str(self.path), "top level is not an object")
        return parse_records(data)

    def ensure_exists(self) -> None:
        """Create an empty mapping file (and its directory) if absent."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                atomic_write_text(self.path, "{}")
        except OSError as exc:
            raise StateFileError(str(self.path), str(exc)) from exc


def is_legacy_shape(data: dict[str, Any]) -> bool:
    """True for the old single-record file (top-level ``session_id``)."""
    session_id = data.get("session_id")
    return isinstance(session_id, str) and not isinstance(data.get(session_id), dict)


class StateFileWriter:
    """Write side used by hook processes.

    Each write is a read-merge-replace under an exclusive lock on a
    sidecar file, so concurrent hooks for different sessions do not
    lose each other's entries.
    """

    def __init__(self, path: Path = DEFAULT_STATE_FILE) -> None:
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if fcntl is None:
            yield
            return
        with open(self.lock_path, "a") as fd:
            fcntl.flock(fd, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)

    def _load(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        if is_legacy_shape(data):
            logger.info("Migrating legacy single-record state file %s", self.path)
            return {}
        return data

    def merge(
        self,
        record: LifecycleRecord,
        retention_ms: int | None = None,
    ) -> LifecycleRecord | None:
        """Store ``record`` as its session's latest entry.

        Hooks run concurrently, so a record may arrive after a newer one
        for the same session. Such a record is not written and None is
        returned. A record with the same timestamp as the stored one is
        stored one millisecond later so readers still see it as newer.
        Otherwise the stored record is returned.

        Entries older than ``retention_ms`` (relative to the record's
        timestamp) are pruned.
        """
        try:
            with self._locked():
                return self._merge_locked(record, retention_ms)
        except OSError as exc:
            raise StateFileError(str(self.path), str(exc)) from exc

    def _merge_locked(
        self, record: LifecycleRecord, retention_ms: int | None,
    ) -> LifecycleRecord | None:
        data = self._load()
        stored_ts = _entry_timestamp(data.get(record.session_id))
        if stored_ts is not None:
            if stored_ts > record.timestamp_ms:
                logger.debug(
                    "Not storing %s for session %s: %d is older than stored %d",
                    record.event_name, record.session_id,
                    record.timestamp_ms, stored_ts,
                )
                return None
            if stored_ts == record.timestamp_ms:
                record = replace(record, timestamp_ms=stored_ts + 1)
        if retention_ms is not None:
            cutoff = record.timestamp_ms - retention_ms
            for key in [
                k for k, v in data.items()
                if not isinstance(v, dict)
                or not isinstance(v.get("timestamp"), (int, float))
                or v["timestamp"] < cutoff
            ]:
                del data[key]
        data[record.session_id] = record.to_wire()
        atomic_write_text(self.path, json.dumps(data, indent=2))
        return record
