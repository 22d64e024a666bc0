"""Per-file processing pipeline and the sequential continue-on-error loop.

``process_epub`` handles one file and raises on any failure.
``process_file_with_errors`` wraps it with classification and logging so a
single bad file becomes a ``failed`` entry instead of an exception; FATAL
errors are still re-raised so the caller aborts the whole batch.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from epub_counter.errors import ResourceLimitError, is_fatal, report_file_error
from epub_counter.models.results import EpubRecord, ProcessingResult, TokenizerResult
from epub_counter.services.epub_parser import count_words, extract_metadata, extract_text, parse_epub_file
from epub_counter.services.tokenizers import Tokenizer, tokenize_text

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


@dataclass
class FileOutcome:
    record: EpubRecord
    token_counts: List[TokenizerResult] = field(default_factory=list)


def _read_epub(file_path: str) -> tuple:
    parsed = parse_epub_file(file_path)
    text = extract_text(parsed.sections)
    return parsed.info, text


async def process_epub(file_path: str, tokenizers: Sequence[Tokenizer], max_mb: float) -> FileOutcome:
    """Parse, measure and tokenize a single EPUB.

    Raises:
        EpubParseError: the container could not be read.
        ResourceLimitError: extracted text is larger than *max_mb* (FATAL).
        OSError: missing or unreadable file.
    """
    # Parsing and HTML extraction are blocking; keep the event loop free.
    info, text = await asyncio.to_thread(_read_epub, file_path)
    metadata = extract_metadata(info)
    word_count = count_words(text)

    text_bytes = len(text.encode("utf-8"))
    if text_bytes > max_mb * BYTES_PER_MB:
        raise ResourceLimitError(
            f"Extracted text of '{file_path}' is {text_bytes / BYTES_PER_MB:.1f} MB, "
            f"above the {max_mb:g} MB limit"
        )

    # Empty text never reaches a backend.
    token_counts = await tokenize_text(text, tokenizers) if text else []

    filename = os.path.basename(file_path)
    record = EpubRecord(
        filename=filename,
        file_path=str(Path(file_path).resolve()),
        word_count=word_count,
        title=metadata.title,
        author=metadata.author,
        language=metadata.language,
        publisher=metadata.publisher,
    )
    return FileOutcome(record=record, token_counts=token_counts)


async def process_file_with_errors(
    file_path: str,
    tokenizers: Sequence[Tokenizer],
    max_mb: float,
    output_dir: Path | str,
    verbose: bool = False,
) -> ProcessingResult:
    """Process one file into a single-file :class:`ProcessingResult`.

    Non-fatal errors are reported and recorded in ``failed``; FATAL errors
    are reported and re-raised.
    """
    result = ProcessingResult(total=1)
    try:
        logger.info("Processing: %s", file_path)
        outcome = await process_epub(file_path, tokenizers, max_mb)
    except Exception as exc:
        failure = await report_file_error(exc, file_path, output_dir, verbose=verbose)
        if is_fatal(exc):
            raise
        result.failed.append(failure)
        return result

    result.successful.append(outcome.record)
    result.token_counts[outcome.record.file_path] = outcome.token_counts
    logger.info("  %s: %d words", outcome.record.filename, outcome.record.word_count)
    return result


async def process_epubs_with_errors(
    file_paths: Iterable[str],
    tokenizers: Sequence[Tokenizer],
    max_mb: float,
    output_dir: Path | str,
    verbose: bool = False,
    on_file: Optional[Callable[[str, int, int], None]] = None,
) -> ProcessingResult:
    """Process files strictly in order, continuing past file-level errors.

    *on_file* is called with ``(path, index, total)`` before each file.
    """
    paths = list(file_paths)
    combined = ProcessingResult()
    for index, file_path in enumerate(paths, start=1):
        if on_file is not None:
            on_file(file_path, index, len(paths))
        combined.merge(await process_file_with_errors(file_path, tokenizers, max_mb, output_dir, verbose))
    return combined
