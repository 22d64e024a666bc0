"""Filesystem helpers for report output."""

from pathlib import Path


def ensure_dir_exists(path: Path) -> Path:
    """Ensure that the given directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_text_file(output_dir: Path | str, filename: str, content: str) -> Path:
    """
    Write *content* to ``output_dir/filename`` as UTF-8, creating the directory.

    Returns:
        Absolute path of the written file.
    """
    directory = ensure_dir_exists(Path(output_dir))
    target = directory / filename
    with open(target, "w", encoding="utf-8") as f:
        f.write(content)
    return target.resolve()
