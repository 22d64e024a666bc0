"""Validation of user-supplied paths for the HTTP API."""

from __future__ import annotations

from pathlib import Path

from epub_counter.errors import InvalidPathError


def is_path_traversal(raw_path: str) -> bool:
    """True when *raw_path* contains a parent reference or a home shortcut.

    Backslashes are normalised first so ``..\\secret`` is caught on every
    platform.
    """
    normalized = raw_path.replace("\\", "/")
    return ".." in normalized or "~" in normalized


def resolve_request_path(raw_path: str, root: Path) -> Path:
    """Resolve *raw_path* against *root* and check it points at something usable.

    Absolute paths are kept as-is; relative ones are anchored at *root*, never
    at the process working directory.

    Raises:
        InvalidPathError: on traversal, a missing path, or a path that is
            neither a file nor a directory.
    """
    if is_path_traversal(raw_path):
        raise InvalidPathError("Path traversal detected")

    candidate = Path(raw_path)
    resolved = candidate if candidate.is_absolute() else (root / candidate)
    resolved = resolved.resolve()

    if not resolved.exists():
        raise InvalidPathError("Path does not exist")
    if not (resolved.is_file() or resolved.is_dir()):
        raise InvalidPathError("Path must be a file or directory")
    return resolved
