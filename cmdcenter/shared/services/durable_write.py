"""Atomic file replacement for files other processes read while we write."""
from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path


def _sync_directory(dir_path: Path) -> None:
    """Persist a rename in ``dir_path`` where the platform allows it."""
    flags = os.O_RDONLY | getattr(os, "O_DIRECTORY", 0)
    try:
        fd = os.open(str(dir_path), flags)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        # Directory fsync is unsupported on some filesystems
        pass
    finally:
        os.close(fd)


def atomic_write_text(
    path: Path,
    content: str,
    *,
    encoding: str = "utf-8",
    sync_directory: bool = True,
) -> None:
    """Write ``content`` to a sibling temp file, then rename it over ``path``.

    Readers see either the old contents or the new ones, never a
    truncated file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
        if sync_directory:
            _sync_directory(path.parent)
    finally:
        if tmp_path.exists():
            with contextlib.suppress(OSError):
                tmp_path.unlink()
