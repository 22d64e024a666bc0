"""Report builders: ``results.json``, ``results.md`` and the CLI summary.

``results.json`` is the :class:`ResultsOutput` document (camelCase, the same
shape the job API returns and ``/api/upload-results`` accepts).
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rich.console import Console
from rich.table import Table

from epub_counter.errors import iso_timestamp
from epub_counter.models.results import (
    EpubResultEntry,
    ProcessingResult,
    ResultsOptions,
    ResultsOutput,
    ResultsSummary,
)
from epub_counter.utils.storage import save_text_file

logger = logging.getLogger(__name__)

RESULTS_JSON = "results.json"
RESULTS_MARKDOWN = "results.md"


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def build_results_output(
    result: ProcessingResult,
    tokenizers: Sequence[str],
    max_mb: float,
    timestamp: Optional[str] = None,
) -> ResultsOutput:
    entries = [
        EpubResultEntry(
            file_path=record.file_path,
            metadata=record.metadata,
            word_count=record.word_count,
            token_counts=list(result.counts_for(record)),
        )
        for record in result.successful
    ]
    return ResultsOutput(
        timestamp=timestamp or iso_timestamp(),
        options=ResultsOptions(tokenizers=list(tokenizers), max_mb=max_mb),
        results=entries,
        summary=ResultsSummary(
            total=result.total,
            success=len(result.successful),
            failed=len(result.failed),
        ),
        failed=[failure.to_entry() for failure in result.failed],
    )


def write_json_file(output: ResultsOutput, output_dir: Path | str, filename: str = RESULTS_JSON) -> Path:
    content = json.dumps(output.to_json_dict(), indent=2, ensure_ascii=False)
    path = save_text_file(output_dir, filename, content)
    logger.info("Wrote %s", path)
    return path


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def _escape_cell(value: str) -> str:
    return value.replace("|", "\\|")


def _format_count(count: Optional[int]) -> str:
    if count is None:
        return ""
    return "error" if count < 0 else str(count)


def generate_results_markdown(
    result: ProcessingResult,
    timestamp: str,
    tokenizers: Sequence[str] = (),
) -> str:
    lines: List[str] = [
        "# EPUB Processing Results",
        "",
        f"Generated: {timestamp}",
        "",
        "## Summary",
        "",
        f"- Total: {result.total}",
        f"- Successful: {len(result.successful)}",
        f"- Failed: {len(result.failed)}",
        "",
    ]

    if result.successful:
        header = ["Filename", "Words", "Title", "Author", *tokenizers]
        lines.append("## Successful EPUBs")
        lines.append("")
        lines.append("| " + " | ".join(header) + " |")
        lines.append("|" + "|".join("-" * (len(col) + 2) for col in header) + "|")
        for record in result.successful:
            counts = {t.name: t.count for t in result.counts_for(record)}
            row = [
                _escape_cell(record.filename),
                str(record.word_count),
                _escape_cell(record.title),
                _escape_cell(record.author),
                *(_format_count(counts.get(name)) for name in tokenizers),
            ]
            lines.append("| " + " | ".join(row) + " |")
        lines.append("")

    if result.failed:
        lines.append("## Failed EPUBs")
        lines.append("")
        for failure in result.failed:
            lines.append(f"### {os.path.basename(failure.file)}")
            lines.append("")
            lines.append(f"**File:** `{failure.file}`")
            lines.append("")
            lines.append(f"**Error:** {failure.error}")
            if failure.suggestion:
                lines.append("")
                lines.append(f"**Suggestion:** {failure.suggestion}")
            lines.append("")

    return "\n".join(lines)


def write_markdown_file(
    result: ProcessingResult,
    output_dir: Path | str,
    tokenizers: Sequence[str] = (),
    filename: str = RESULTS_MARKDOWN,
    timestamp: Optional[str] = None,
) -> Path:
    content = generate_results_markdown(result, timestamp or iso_timestamp(), tokenizers)
    path = save_text_file(output_dir, filename, content)
    logger.info("Wrote %s", path)
    return path


def write_reports(
    result: ProcessingResult,
    tokenizers: Sequence[str],
    max_mb: float,
    output_dir: Path | str,
) -> tuple[ResultsOutput, Path, Path]:
    """Build the report once and write both ``results.json`` and ``results.md``."""
    output = build_results_output(result, tokenizers, max_mb)
    json_path = write_json_file(output, output_dir)
    md_path = write_markdown_file(result, output_dir, tokenizers, timestamp=output.timestamp)
    return output, json_path, md_path


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------


@dataclass
class SummaryStats:
    total_epubs: int
    successful_epubs: int
    failed_epubs: int
    total_words: int
    avg_words_per_epub: int
    total_tokens: Dict[str, int] = field(default_factory=dict)
    avg_tokens_per_epub: Dict[str, int] = field(default_factory=dict)
    total_time_ms: int = 0
    avg_time_per_epub_ms: int = 0


def calculate_summary(result: ProcessingResult, started_at: float, finished_at: Optional[float] = None) -> SummaryStats:
    """Aggregate word and token totals for the final CLI summary.

    *started_at* / *finished_at* are ``time.monotonic()`` readings.  Token
    averages skip failed (``-1``) and empty (``0``) counts.
    """
    finished_at = time.monotonic() if finished_at is None else finished_at
    total_time_ms = max(0, _round_half_up((finished_at - started_at) * 1000))

    successful = len(result.successful)
    failed = len(result.failed)
    total = successful + failed
    total_words = sum(record.word_count for record in result.successful)

    names: List[str] = []
    for counts in result.token_counts.values():
        for item in counts:
            if item.name not in names:
                names.append(item.name)

    total_tokens: Dict[str, int] = {}
    avg_tokens: Dict[str, int] = {}
    for name in names:
        valid = [
            item.count
            for counts in result.token_counts.values()
            for item in counts
            if item.name == name and item.count > 0
        ]
        total_tokens[name] = sum(valid)
        avg_tokens[name] = _round_half_up(sum(valid) / len(valid)) if valid else 0

    return SummaryStats(
        total_epubs=total,
        successful_epubs=successful,
        failed_epubs=failed,
        total_words=total_words,
        avg_words_per_epub=_round_half_up(total_words / successful) if successful else 0,
        total_tokens=total_tokens,
        avg_tokens_per_epub=avg_tokens,
        total_time_ms=total_time_ms,
        avg_time_per_epub_ms=_round_half_up(total_time_ms / total) if total else 0,
    )


def format_duration(ms: int) -> str:
    """``850ms``, ``12.3s`` or ``2m 5.0s``."""
    if ms < 1000:
        return f"{ms}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    minutes, rest = divmod(ms, 60000)
    return f"{minutes}m {rest / 1000:.1f}s"


# ---------------------------------------------------------------------------
# Console rendering
# ---------------------------------------------------------------------------


def display_results(result: ProcessingResult, console: Console, tokenizers: Sequence[str] = ()) -> None:
    table = Table(title="EPUB Results", header_style="bold cyan")
    table.add_column("Filename")
    table.add_column("Words", justify="right")
    table.add_column("Title")
    table.add_column("Author")
    for name in tokenizers:
        table.add_column(name, justify="right")

    for record in result.successful:
        counts = {t.name: t.count for t in result.counts_for(record)}
        table.add_row(
            record.filename,
            f"{record.word_count:,}",
            record.title,
            record.author,
            *(_format_count(counts.get(name)) for name in tokenizers),
        )
    console.print(table)


def display_summary(stats: SummaryStats, console: Console) -> None:
    overview = Table(title="Summary Statistics", header_style="bold cyan")
    overview.add_column("Metric")
    overview.add_column("Value", justify="right")
    overview.add_row("Total EPUBs processed", str(stats.total_epubs))
    overview.add_row("Successful", str(stats.successful_epubs))
    overview.add_row("Failed", str(stats.failed_epubs))
    overview.add_row("Total words", f"{stats.total_words:,}")
    overview.add_row("Average words/EPUB", f"{stats.avg_words_per_epub:,}")
    overview.add_row("Total time", format_duration(stats.total_time_ms))
    overview.add_row("Average time/EPUB", format_duration(stats.avg_time_per_epub_ms))
    console.print(overview)

    if stats.total_tokens:
        tokens = Table(title="Tokenizer Statistics", header_style="bold cyan")
        tokens.add_column("Tokenizer")
        tokens.add_column("Total Tokens", justify="right")
        tokens.add_column("Avg Tokens/EPUB", justify="right")
        for name, total in stats.total_tokens.items():
            tokens.add_row(name, f"{total:,}", f"{stats.avg_tokens_per_epub.get(name, 0):,}")
        console.print(tokens)
