"""Error taxonomy and file-level error reporting.

Three severities decide what a failure does to a batch:

* ``FATAL`` aborts the whole batch (size limit exceeded, unknown tokenizer).
* ``ERROR`` skips the file; the batch carries on (missing file, permission
  denied, corrupt EPUB, anything unclassified).
* ``WARN`` is logged only (a single tokenizer backend failing for one file).

Failures are tagged with an :class:`ErrorKind` where they are raised, so
classification never has to guess from message text.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from epub_counter.config import settings
from epub_counter.models.results import FailedFile

logger = logging.getLogger(__name__)

ERROR_LOG_FILENAME = "errors.log"

SUGGEST_NOT_FOUND = "File not found. Check the file path."
SUGGEST_PERMISSIONS = "Check file permissions."
SUGGEST_CORRUPT = "File may be corrupted or not a valid EPUB."


class ErrorSeverity(str, Enum):
    FATAL = "FATAL"
    ERROR = "ERROR"
    WARN = "WARN"


class ErrorKind(str, Enum):
    FILESYSTEM = "filesystem"
    PARSE = "parse"
    LIMIT = "limit"
    TOKENIZER = "tokenizer"
    CONFIG = "config"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class EpubCounterError(Exception):
    """Base class for every failure this package raises on purpose."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.ERROR
    default_suggestion: Optional[str] = None

    def __init__(self, message: str, *, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion or self.default_suggestion

    @property
    def is_fatal(self) -> bool:
        return self.severity is ErrorSeverity.FATAL


class EpubParseError(EpubCounterError):
    kind = ErrorKind.PARSE
    default_suggestion = SUGGEST_CORRUPT


class ResourceLimitError(EpubCounterError):
    kind = ErrorKind.LIMIT
    severity = ErrorSeverity.FATAL
    default_suggestion = "Raise --max-mb or exclude the oversized file."


class UnknownTokenizerError(EpubCounterError):
    kind = ErrorKind.CONFIG
    severity = ErrorSeverity.FATAL


class TokenizerLoadError(EpubCounterError):
    kind = ErrorKind.TOKENIZER
    severity = ErrorSeverity.WARN


class InvalidPathError(EpubCounterError):
    kind = ErrorKind.FILESYSTEM


class InvalidJobCountError(EpubCounterError):
    kind = ErrorKind.CONFIG
    severity = ErrorSeverity.FATAL


def is_fatal(exc: BaseException) -> bool:
    return isinstance(exc, EpubCounterError) and exc.is_fatal


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorClassification:
    severity: ErrorSeverity
    kind: ErrorKind
    suggestion: Optional[str] = None


def classify_error(exc: BaseException) -> ErrorClassification:
    """Return severity, kind and remediation hint for *exc*.

    Tagged package errors carry their own classification; a few OS errors
    map to filesystem hints; everything else is a plain file-level ERROR.
    """
    if isinstance(exc, EpubCounterError):
        return ErrorClassification(exc.severity, exc.kind, exc.suggestion)
    if isinstance(exc, FileNotFoundError):
        return ErrorClassification(ErrorSeverity.ERROR, ErrorKind.FILESYSTEM, SUGGEST_NOT_FOUND)
    if isinstance(exc, PermissionError):
        return ErrorClassification(ErrorSeverity.ERROR, ErrorKind.FILESYSTEM, SUGGEST_PERMISSIONS)
    return ErrorClassification(ErrorSeverity.ERROR, ErrorKind.UNKNOWN)


def error_message(exc: BaseException) -> str:
    if isinstance(exc, EpubCounterError):
        return exc.message
    return str(exc) or exc.__class__.__name__ or "Unknown error"


# ---------------------------------------------------------------------------
# Persistent error log
# ---------------------------------------------------------------------------


@dataclass
class ErrorLogEntry:
    timestamp: str
    severity: ErrorSeverity
    file: str
    error: str
    suggestion: Optional[str] = None

    def format_line(self) -> str:
        line = f"[{self.timestamp}] [{self.severity.value}] {self.file}: {self.error}"
        if self.suggestion:
            line += f" Suggestion: {self.suggestion}"
        return line


def iso_timestamp() -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def write_error_log(entry: ErrorLogEntry, output_dir: Path | str) -> None:
    """Append *entry* to ``<output_dir>/errors.log``.

    A failure to write is reported through logging and otherwise ignored: the
    batch result matters more than the log line.
    """
    try:
        directory = Path(output_dir)
        directory.mkdir(parents=True, exist_ok=True)
        with open(directory / ERROR_LOG_FILENAME, "a", encoding="utf-8") as f:
            f.write(entry.format_line() + "\n")
    except OSError as exc:
        logger.error("Failed to write to %s: %s", ERROR_LOG_FILENAME, exc)


async def report_file_error(
    exc: BaseException,
    file_path: str,
    output_dir: Path | str,
    verbose: bool = True,
) -> FailedFile:
    """Log a file-level failure to the console and ``errors.log``.

    Console level follows severity.  In non-verbose mode individual failures
    only go to debug output and the error log.  Callers re-raise FATAL
    errors themselves, and those never reach ``errors.log``.  This function
    never raises.
    """
    classification = classify_error(exc)
    message = error_message(exc)
    entry = ErrorLogEntry(
        timestamp=iso_timestamp(),
        severity=classification.severity,
        file=file_path,
        error=message,
        suggestion=classification.suggestion,
    )

    console_msg = f"[{entry.severity.value}] {entry.file}: {entry.error}"
    if classification.severity is ErrorSeverity.FATAL:
        logger.critical(console_msg)
        if entry.suggestion:
            logger.critical("  Suggestion: %s", entry.suggestion)
    elif not verbose:
        logger.debug(console_msg)
    elif classification.severity is ErrorSeverity.ERROR:
        logger.error(console_msg)
        if entry.suggestion:
            logger.error("  Suggestion: %s", entry.suggestion)
        # Brief pause so the error stays visible before the next output.
        if settings.ERROR_PAUSE_SECONDS > 0:
            await asyncio.sleep(settings.ERROR_PAUSE_SECONDS)
    else:
        logger.warning(console_msg)

    # A FATAL error aborts the run with nothing written; the exception carries it.
    if classification.severity is not ErrorSeverity.FATAL:
        write_error_log(entry, output_dir)

    return FailedFile(
        file=file_path,
        error=message,
        suggestion=entry.suggestion,
        severity=classification.severity.value,
    )
