"""Working-directory normalization shared by the emitter and the host."""
from __future__ import annotations


def normalize_cwd(cwd: str | None) -> str:
    """Return the correlation key for a working directory.

    All backslashes become forward slashes and trailing separators are
    dropped (except for a bare root), so ``"/a/b"``, ``"/a/b/"`` and
    ``"\\\\a\\\\b"`` share one key. Applying it twice is a no-op.
    """
    if not cwd:
        return ""
    normalized = cwd.replace("\\", "/")
    stripped = normalized.rstrip("/")
    if not stripped:
        return "/"
    # Windows drive root ("C:/") keeps its slash
    if len(stripped) == 2 and stripped[1] == ":":
        return stripped + "/"
    return stripped
