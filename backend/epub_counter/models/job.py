"""Job lifecycle models for the in-process processing queue.

Jobs live in memory for the lifetime of the server process only; there is no
persistence layer and nothing evicts finished jobs.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from pydantic import Field

from epub_counter.config import settings
from epub_counter.models.results import CamelModel, EpubProgress, ResultsOutput


class JobStatus(str, Enum):
    """Enum representing the lifecycle of a background processing job.

    ``queued -> processing -> {completed | failed | cancelled}``; the three
    right-hand states are terminal.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class ProcessRequest(CamelModel):
    """Validated batch request: what to scan and how to count it."""

    path: str
    tokenizers: List[str]
    recursive: bool = False
    max_mb: float = Field(default_factory=lambda: settings.DEFAULT_MAX_MB)


class JobState(CamelModel):
    """Public snapshot of a job; no scheduler internals are exposed."""

    job_id: str
    status: JobStatus
    progress: Optional[EpubProgress] = None
    results: Optional[ResultsOutput] = None
    error: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class CancellationToken:
    """Cooperative cancellation flag polled by the scheduler between files.

    Setting it never interrupts the file being processed; cancellation takes
    effect at the next per-file checkpoint.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


ProgressCallback = Callable[[EpubProgress], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProcessingJob:
    """Mutable in-memory job record owned by :class:`JobQueue`."""

    id: str
    request: ProcessRequest
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    progress: Optional[EpubProgress] = None
    results: Optional[ResultsOutput] = None
    error: Optional[str] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    on_progress: Optional[ProgressCallback] = None
    done: Optional[asyncio.Future] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def finish(self, status: JobStatus, *, results: ResultsOutput | None = None, error: str | None = None) -> None:
        """Move the job into a terminal state and wake anyone waiting on it."""
        self.status = status
        self.results = results
        self.error = error
        self.progress = None
        self.completed_at = utcnow()
        if self.done is not None and not self.done.done():
            self.done.set_result(self.snapshot())

    def snapshot(self) -> JobState:
        return JobState(
            job_id=self.id,
            status=self.status,
            progress=self.progress.model_copy() if self.progress else None,
            results=self.results,
            error=self.error,
            created_at=self.created_at,
            completed_at=self.completed_at,
        )
