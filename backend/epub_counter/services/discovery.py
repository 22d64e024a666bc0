"""EPUB file discovery (single file, flat directory or recursive walk)."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

EPUB_SUFFIX = ".epub"


def _is_epub(name: str) -> bool:
    return name.lower().endswith(EPUB_SUFFIX)


def discover_epub_files(input_path: str | Path, recursive: bool = False, include_hidden: bool = False) -> List[str]:
    """Return EPUB paths under *input_path*, sorted for a stable processing order.

    A file path is returned as-is when it has an ``.epub`` extension (any
    case).  Hidden entries (dot-prefixed) are skipped unless
    ``include_hidden`` is set.  Missing or unreadable paths log a warning and
    yield an empty list.
    """
    path = Path(input_path)
    try:
        if path.is_file():
            return [str(path)] if _is_epub(path.name) else []
        if path.is_dir():
            return _scan_directory(path, recursive, include_hidden)
        if not path.exists():
            logger.warning("Path does not exist '%s'", input_path)
        return []
    except PermissionError:
        logger.warning("Permission denied accessing '%s'", input_path)
        return []


def _scan_directory(directory: Path, recursive: bool, include_hidden: bool) -> List[str]:
    found: List[str] = []

    def _on_error(exc: OSError) -> None:
        logger.warning("Permission denied reading directory '%s': %s", exc.filename, exc.strerror)

    if recursive:
        for root, dirs, files in os.walk(directory, onerror=_on_error):
            if not include_hidden:
                dirs[:] = [d for d in dirs if not d.startswith(".")]
            found.extend(
                os.path.join(root, name)
                for name in files
                if _is_epub(name) and (include_hidden or not name.startswith("."))
            )
    else:
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    if not include_hidden and entry.name.startswith("."):
                        continue
                    if entry.is_file() and _is_epub(entry.name):
                        found.append(entry.path)
        except PermissionError:
            logger.warning("Permission denied reading directory '%s'", directory)

    return sorted(found)
