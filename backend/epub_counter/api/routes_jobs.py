from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from ..models.job import JobState
from ..workers.job_queue import JobQueue
from .errors import get_job_queue, job_not_found

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[JobState])
async def list_jobs(queue: JobQueue = Depends(get_job_queue)) -> List[JobState]:
    """Return every job known to this process, newest first."""
    return queue.list_jobs()


@router.get("/{job_id}", response_model=JobState)
async def get_job(job_id: str, queue: JobQueue = Depends(get_job_queue)) -> JobState:
    """Return a single job snapshot by ID."""
    state = queue.get_status(job_id)
    if state is None:
        raise job_not_found()
    return state


@router.post("/{job_id}/cancel", response_model=JobState)
async def cancel_job(job_id: str, queue: JobQueue = Depends(get_job_queue)) -> JobState:
    """Cancel a queued job, or stop a running one after its current file."""
    state = queue.cancel(job_id)
    if state is None:
        raise job_not_found()
    logger.info("Cancel requested for job %s (now %s)", job_id, state.status.value)
    return state
