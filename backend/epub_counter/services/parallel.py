"""Bounded-concurrency variant of the batch loop, used by the CLI ``--jobs`` flag.

Every file runs through the same per-file pipeline as the sequential
scheduler; an ``asyncio.Semaphore`` caps how many are in flight.  Results are
merged in completion order, which is not deterministic.  There is no
cancellation hook: a FATAL error in any task cancels the others and
propagates.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from rich.progress import Progress

from epub_counter.errors import InvalidJobCountError
from epub_counter.models.results import ProcessingResult
from epub_counter.services.pipeline import process_file_with_errors
from epub_counter.services.tokenizers import Tokenizer

logger = logging.getLogger(__name__)

HIGH_JOB_COUNT = 32


def _cpu_count() -> int:
    # os.cpu_count() can be None in some containers.
    return os.cpu_count() or 1


def get_job_count(jobs_flag: str | int | None = None) -> int:
    """Resolve the ``--jobs`` value to a worker count.

    ``None`` leaves one core for the system, ``"all"`` uses every core, and a
    positive integer is taken as-is (with a warning above 32).

    Raises:
        InvalidJobCountError: for anything else.
    """
    cpu_count = _cpu_count()
    if jobs_flag is None or jobs_flag == "":
        return max(1, cpu_count - 1)
    if isinstance(jobs_flag, str) and jobs_flag.strip().lower() == "all":
        return cpu_count

    try:
        parsed = int(jobs_flag)
    except (TypeError, ValueError):
        parsed = 0
    if parsed <= 0:
        raise InvalidJobCountError(f'--jobs must be a positive number or "all", got "{jobs_flag}"')

    if parsed > HIGH_JOB_COUNT:
        logger.warning(
            'Warning: --jobs=%d is unusually high. Consider using "all" (%d cores) or a lower value.',
            parsed,
            cpu_count,
        )
    return parsed


async def process_in_parallel(
    file_paths: Sequence[str],
    concurrency: int,
    tokenizers: Sequence[Tokenizer],
    max_mb: float,
    output_dir: Path | str,
    verbose: bool = False,
    progress: Optional[Progress] = None,
) -> ProcessingResult:
    """Process *file_paths* with at most *concurrency* files in flight.

    All tasks are submitted up front; the semaphore only gates admission.
    When *progress* is given each file gets its own bar once it starts.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    combined = ProcessingResult()

    async def _run(file_path: str) -> None:
        async with semaphore:
            bar = progress.add_task(os.path.basename(file_path), total=100) if progress is not None else None
            result = await process_file_with_errors(file_path, tokenizers, max_mb, output_dir, verbose)
            # Counts are keyed by resolved path, so same-named files never collide.
            combined.merge(result)
            if progress is not None and bar is not None:
                progress.update(bar, completed=100)

    tasks = [asyncio.ensure_future(_run(path)) for path in file_paths]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        # Let cancelled tasks unwind before the error propagates.
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    combined.total = len(file_paths)
    return combined
