"""Command-line interface.

    epub-counter [paths...] [-i PATH] [-r] [-o DIR] [-t gpt4,claude] [--max-mb N] [-j N|all] [-v]
    epub-counter list-models [--search QUERY]

Exit status is 0 whenever a batch completes, even with failed files, and 1
on a fatal error (bad flag value, unknown tokenizer, size limit exceeded,
unexpected exception); in that case no report is written.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import time
from typing import List, Optional, Sequence

from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from epub_counter.config import settings
from epub_counter.errors import EpubCounterError
from epub_counter.logging_config import setup_logging
from epub_counter.models.results import ProcessingResult
from epub_counter.services.discovery import discover_epub_files
from epub_counter.services.hf_models import BROWSE_MODELS_URL, get_models_by_architecture, search_models
from epub_counter.services.parallel import get_job_count, process_in_parallel
from epub_counter.services.pipeline import process_epubs_with_errors
from epub_counter.services.reports import calculate_summary, display_results, display_summary, write_reports
from epub_counter.services.tokenizers import create_tokenizers

logger = logging.getLogger(__name__)

DEFAULT_INPUT = "./epubs/"
DEFAULT_OUTPUT = "./results"


class _ArgumentParser(argparse.ArgumentParser):
    """argparse exits with 2 on bad input; this CLI reports bad flags with 1."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _positive_mb(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError:
        parsed = 0
    if parsed <= 0:
        raise argparse.ArgumentTypeError("--max-mb must be a positive number")
    return parsed


def _tokenizer_list(value: str) -> List[str]:
    names = [name.strip() for name in value.split(",") if name.strip()]
    if not names:
        raise argparse.ArgumentTypeError("--tokenizers needs at least one name")
    return names


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="epub-counter",
        description="Count words and tokens in EPUB files.",
        epilog="Run 'epub-counter list-models' to see Hugging Face models usable as hf:<model>.",
    )
    parser.add_argument("paths", nargs="*", help=f"Input files or folders (default: {DEFAULT_INPUT})")
    parser.add_argument("-i", "--input", help="Input folder or file path (overrides positional paths)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-r", "--recursive", action="store_true", help="Scan subdirectories recursively")
    parser.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help=f"Output folder path (default: {DEFAULT_OUTPUT})")
    parser.add_argument(
        "-t",
        "--tokenizers",
        type=_tokenizer_list,
        default=list(settings.DEFAULT_TOKENIZERS),
        help="Comma-separated tokenizers, e.g. gpt4,claude,hf:bert-base-uncased (default: %(default)s)",
    )
    parser.add_argument(
        "--max-mb",
        type=_positive_mb,
        default=settings.DEFAULT_MAX_MB,
        help="Maximum extracted text size in MB (default: %(default)s)",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        help='Process files in parallel: a positive number or "all" (default: sequential)',
    )
    return parser


def build_list_models_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="epub-counter list-models", description="List known Hugging Face tokenizer models.")
    parser.add_argument("-s", "--search", help="Filter by name, description or architecture")
    return parser


# ---------------------------------------------------------------------------
# list-models
# ---------------------------------------------------------------------------


def list_models(search: Optional[str], console: Console) -> None:
    console.print("[bold]Hugging Face Models[/bold]\n")

    if search:
        matches = search_models(search)
        if not matches:
            console.print(f'No models found matching "{search}"')
            console.print(f"\nBrowse all models: {BROWSE_MODELS_URL}")
            return

        table = Table(header_style="bold cyan")
        table.add_column("Model")
        table.add_column("Description")
        table.add_column("Arch")
        for model in matches:
            tag = f" [{model.tag}]" if model.tag else ""
            table.add_row(f"{model.tokenizer_id}{tag}", model.description, model.architecture)
        console.print(table)
        console.print(f'\nFound {len(matches)} model(s) matching "{search}"')
    else:
        for architecture, models in get_models_by_architecture().items():
            table = Table(title=f"{architecture} Models", header_style="bold cyan")
            table.add_column("Model")
            table.add_column("Description")
            for model in models:
                tag = f" [{model.tag}]" if model.tag else ""
                table.add_row(f"{model.tokenizer_id}{tag}", model.description)
            console.print(table)
        console.print("[ONNX] = Faster loading via Xenova conversions", markup=False)

    console.print(f"\nBrowse all models: {BROWSE_MODELS_URL}")


# ---------------------------------------------------------------------------
# Batch processing
# ---------------------------------------------------------------------------


def collect_files(input_paths: Sequence[str], recursive: bool) -> List[str]:
    """Discover EPUBs under every input path, dropping duplicates."""
    seen = set()
    files: List[str] = []
    for input_path in input_paths:
        for file_path in discover_epub_files(input_path, recursive=recursive):
            key = os.path.abspath(file_path)
            if key not in seen:
                seen.add(key)
                files.append(file_path)
    return files


async def run_batch(args: argparse.Namespace, console: Console) -> int:
    input_paths = [args.input] if args.input else (args.paths or [DEFAULT_INPUT])
    tokenizer_names: List[str] = args.tokenizers
    job_count = get_job_count(args.jobs) if args.jobs is not None else None

    if args.verbose:
        console.print(f"Input paths: {input_paths}")
        console.print(f"Output directory: {args.output}")
        console.print(f"Tokenizers: {tokenizer_names}")
        console.print(f"Max MB: {args.max_mb:g}")
        if job_count:
            console.print(f"Parallel jobs: {job_count}")

    # Unknown names fail here, before any file is touched.
    tokenizers = create_tokenizers(tokenizer_names)

    files = await asyncio.to_thread(collect_files, input_paths, args.recursive)
    if not files:
        console.print("No EPUB files found.")
        return 0

    started = time.monotonic()
    try:
        with Progress(console=console, transient=True) as progress:
            if job_count:
                result = await process_in_parallel(
                    files, job_count, tokenizers, args.max_mb, args.output, args.verbose, progress
                )
            else:
                task = progress.add_task("Processing EPUBs", total=len(files))

                def _advance(file_path: str, index: int, total: int) -> None:
                    progress.update(task, completed=index - 1, description=os.path.basename(file_path))

                result = await process_epubs_with_errors(
                    files, tokenizers, args.max_mb, args.output, args.verbose, on_file=_advance
                )
                progress.update(task, completed=len(files))
    finally:
        for tokenizer in tokenizers:
            tokenizer.dispose()

    _print_report(result, args, tokenizer_names, started, console)
    return 0


def _print_report(
    result: ProcessingResult,
    args: argparse.Namespace,
    tokenizer_names: Sequence[str],
    started: float,
    console: Console,
) -> None:
    display_results(result, console, tokenizer_names)

    _output, json_path, md_path = write_reports(result, tokenizer_names, args.max_mb, args.output)
    console.print("\nResults saved to:")
    console.print(f"- {md_path}")
    console.print(f"- {json_path}")

    display_summary(calculate_summary(result, started), console)

    console.print("\nSummary:")
    console.print(f"- Total EPUBs: {result.total}")
    console.print(f"- Successful: {len(result.successful)}")
    console.print(f"- Failed: {len(result.failed)}")

    if result.failed:
        if args.verbose:
            console.print("\nFailed files:")
            for failure in result.failed:
                console.print(f"  - {failure.file}: {failure.error}", markup=False)
        else:
            console.print(f"See {os.path.join(args.output, 'errors.log')} for details.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    console = Console()

    if argv and argv[0] == "list-models":
        args = build_list_models_parser().parse_args(argv[1:])
        list_models(args.search, console)
        return 0

    args = build_parser().parse_args(argv)
    setup_logging(level="INFO" if args.verbose else "WARNING", log_to_file=False)

    try:
        return asyncio.run(run_batch(args, console))
    except EpubCounterError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc.message}", highlight=False)
        if exc.suggestion:
            console.print(f"  Suggestion: {exc.suggestion}", highlight=False)
        return 1
    except KeyboardInterrupt:
        console.print("Interrupted.")
        return 1
    except Exception as exc:
        logger.exception("Fatal error: %s", exc)
        console.print(f"[bold red]Fatal error:[/bold red] {exc}", highlight=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
