"""In-process job queue with a sequential, cooperatively cancellable scheduler.

One :class:`JobQueue` is created per server process (see ``main.create_app``)
and handed to route handlers; nothing here is a module-level singleton.

Execution model
---------------
* ``enqueue`` appends to a FIFO backlog and starts the scheduler task only if
  it is idle.  That check is the single mutual-exclusion point: exactly one
  job, and one file within it, runs at any time.
* The scheduler drains the backlog job by job.  Before each file it checks the
  job's cancellation token, publishes an :class:`EpubProgress` snapshot and
  calls the job's progress callback (if any) synchronously.
* File-level errors are absorbed into the job's ``failed`` list.  FATAL errors
  and anything escaping the loop mark the job ``failed``.
* Cancelling a running job takes effect at the next file boundary, so its
  latency is bounded by the processing time of one file.  The token is
  checked once more after the last file, so a cancelled job never ends
  ``completed``.
* A job has at most one progress subscriber; a new subscription replaces the
  previous one (last subscriber wins).
"""

from __future__ import annotations

import asyncio
import logging
import os
import secrets
import time
from collections import deque
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Sequence

from epub_counter.config import settings
from epub_counter.errors import error_message
from epub_counter.models.job import JobState, JobStatus, ProcessingJob, ProcessRequest, ProgressCallback
from epub_counter.models.results import EpubProgress, ProcessingResult
from epub_counter.services.discovery import discover_epub_files
from epub_counter.services.pipeline import process_file_with_errors
from epub_counter.services.reports import build_results_output, write_reports
from epub_counter.services.tokenizers import Tokenizer, create_tokenizers

logger = logging.getLogger(__name__)

TokenizerFactory = Callable[[Sequence[str]], List[Tokenizer]]
DiscoverFiles = Callable[..., List[str]]


class JobQueue:
    """Owns every job's lifecycle state and the FIFO backlog."""

    def __init__(
        self,
        output_dir: Path | str | None = None,
        tokenizer_factory: TokenizerFactory = create_tokenizers,
        discover_files: DiscoverFiles = discover_epub_files,
        process_file=process_file_with_errors,
        write_results: bool = True,
    ) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else settings.RESULTS_DIR
        self._tokenizer_factory = tokenizer_factory
        self._discover_files = discover_files
        self._process_file = process_file
        self._write_results = write_results

        self._jobs: Dict[str, ProcessingJob] = {}
        self._queue: Deque[str] = deque()
        self._current_job: Optional[str] = None
        self._is_processing = False
        self._task: Optional[asyncio.Task] = None
        self._last_id_ms = 0

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def current_job_id(self) -> Optional[str]:
        return self._current_job

    def _generate_job_id(self) -> str:
        # Timestamp part never goes backwards, even if the wall clock does.
        now_ms = max(int(time.time() * 1000), self._last_id_ms)
        self._last_id_ms = now_ms
        while True:
            job_id = f"job-{now_ms}-{secrets.token_hex(4)}"
            if job_id not in self._jobs:
                return job_id

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def enqueue(self, request: ProcessRequest) -> str:
        """Create a ``queued`` job and start the scheduler if it is idle.

        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        job = ProcessingJob(id=self._generate_job_id(), request=request)
        self._jobs[job.id] = job
        self._queue.append(job.id)
        logger.info("Job %s queued (position %d): %s", job.id, len(self._queue), request.path)

        if not self._is_processing:
            # Flag is set before yielding so a second enqueue cannot start a
            # second scheduler.
            self._is_processing = True
            self._task = loop.create_task(self._run(), name="epub-counter-scheduler")
        return job.id

    def get_status(self, job_id: str) -> Optional[JobState]:
        job = self._jobs.get(job_id)
        return job.snapshot() if job else None

    def list_jobs(self) -> List[JobState]:
        """Snapshots of every known job, newest first."""
        jobs = sorted(self._jobs.values(), key=lambda j: (j.created_at, j.id), reverse=True)
        return [job.snapshot() for job in jobs]

    def get_queue_position(self, job_id: str) -> int:
        """1-based backlog position, or 0 when the job is not waiting."""
        try:
            return self._queue.index(job_id) + 1
        except ValueError:
            return 0

    def cancel(self, job_id: str) -> Optional[JobState]:
        """Cancel a job.

        Queued jobs are removed from the backlog and cancelled at once.  The
        running job is flagged and stops at its next file boundary.  Terminal
        jobs are returned unchanged.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return None

        if job_id in self._queue:
            self._queue.remove(job_id)
            job.finish(JobStatus.CANCELLED)
            logger.info("Job %s cancelled while queued", job_id)
        elif job.status is JobStatus.PROCESSING:
            job.cancel_token.cancel()
            logger.info("Job %s will stop after the current file", job_id)
        return job.snapshot()

    def set_progress_callback(self, job_id: str, callback: ProgressCallback) -> bool:
        job = self._jobs.get(job_id)
        if job is None:
            return False
        if job.on_progress is not None and job.on_progress is not callback:
            logger.debug("Replacing progress subscriber for job %s", job_id)
        job.on_progress = callback
        return True

    def remove_progress_callback(self, job_id: str, callback: ProgressCallback | None = None) -> bool:
        """Detach the subscriber; with *callback* given, only if it is still the current one."""
        job = self._jobs.get(job_id)
        if job is None or job.on_progress is None:
            return False
        if callback is not None and job.on_progress is not callback:
            return False
        job.on_progress = None
        return True

    async def wait_for(self, job_id: str, timeout: float | None = None) -> JobState:
        """Wait until *job_id* reaches a terminal state and return its snapshot.

        Raises:
            KeyError: unknown job.
            asyncio.TimeoutError: *timeout* elapsed first.
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(job_id)
        if job.status.is_terminal:
            return job.snapshot()
        if job.done is None:
            job.done = asyncio.get_running_loop().create_future()
        return await asyncio.wait_for(asyncio.shield(job.done), timeout)

    async def shutdown(self) -> None:
        """Stop the scheduler task; the running job ends ``failed``."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Scheduler
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            while self._queue:
                job_id = self._queue.popleft()
                job = self._jobs[job_id]
                self._current_job = job_id
                try:
                    await self._run_job(job)
                finally:
                    self._current_job = None
        except asyncio.CancelledError:
            logger.warning("Job scheduler cancelled with %d job(s) queued", len(self._queue))
            raise
        finally:
            self._is_processing = False
            self._task = None

    def _publish(self, job: ProcessingJob, progress: EpubProgress) -> None:
        job.progress = progress
        callback = job.on_progress
        if callback is None:
            return
        try:
            callback(progress.model_copy())
        except Exception:
            logger.exception("Progress callback for job %s failed", job.id)

    async def _run_job(self, job: ProcessingJob) -> None:
        request = job.request
        job.status = JobStatus.PROCESSING
        logger.info("Job %s processing: %s", job.id, request.path)

        tokenizers: List[Tokenizer] = []
        try:
            tokenizers = self._tokenizer_factory(request.tokenizers)
            files = await asyncio.to_thread(self._discover_files, request.path, recursive=request.recursive)

            if not files:
                logger.info("Job %s: no EPUB files found under %s", job.id, request.path)
                job.finish(
                    JobStatus.COMPLETED,
                    results=build_results_output(ProcessingResult(), request.tokenizers, request.max_mb),
                )
                return

            total = len(files)
            result = ProcessingResult()
            for index, file_path in enumerate(files, start=1):
                if job.cancel_token.cancelled:
                    job.finish(JobStatus.CANCELLED)
                    logger.info("Job %s cancelled after %d of %d file(s)", job.id, index - 1, total)
                    return

                progress = EpubProgress.at(os.path.basename(file_path), index, total)
                self._publish(job, progress)

                file_result = await self._process_file(
                    file_path, tokenizers, request.max_mb, self.output_dir, True
                )
                result.merge(file_result)
                if file_result.failed:
                    progress.error = file_result.failed[-1].error

            # A cancel that arrived during the last file still wins over completion.
            if job.cancel_token.cancelled:
                job.finish(JobStatus.CANCELLED)
                logger.info("Job %s cancelled after its last file", job.id)
                return

            if self._write_results:
                output, json_path, _md_path = await asyncio.to_thread(
                    write_reports, result, request.tokenizers, request.max_mb, self.output_dir
                )
                logger.info("Job %s results written to %s", job.id, json_path)
            else:
                output = build_results_output(result, request.tokenizers, request.max_mb)

            job.finish(JobStatus.COMPLETED, results=output)
            logger.info(
                "Job %s completed: %d succeeded, %d failed",
                job.id,
                output.summary.success,
                output.summary.failed,
            )
        except asyncio.CancelledError:
            job.finish(JobStatus.FAILED, error="Job queue shut down before the job finished")
            raise
        except Exception as exc:
            logger.error("Job %s failed: %s", job.id, exc, exc_info=True)
            job.finish(JobStatus.FAILED, error=error_message(exc) or "Job failed without error message")
        finally:
            for tokenizer in tokenizers:
                tokenizer.dispose()
