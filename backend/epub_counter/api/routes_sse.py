"""Server-Sent Events stream of a job's progress.

The first event depends on the job's state when the client attaches, so a
late observer still learns something useful:

* ``queued``     -> ``queued {status, position}`` then live updates
* ``processing`` -> the current ``progress`` snapshot then live updates
* ``completed``  -> ``completed`` with the full results
* ``failed``     -> ``error {code: JOB_FAILED}``
* ``cancelled``  -> ``error {code: JOB_CANCELLED}``

Exactly one terminal event is sent.  Afterwards the stream stays open and
silent until the client disconnects, unless ``SSE_CLOSE_ON_TERMINAL`` is set.
Disconnecting removes the job's progress callback.  WARN-level tokenizer
failures are never streamed; they only show up as ``-1`` counts in the
results.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ..config import settings
from ..models.job import JobState, JobStatus
from ..models.results import EpubProgress
from ..workers.job_queue import JobQueue
from .errors import get_job_queue, job_not_found

router = APIRouter()
logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def terminal_event(state: JobState) -> str:
    if state.status is JobStatus.COMPLETED and state.results is not None:
        return format_sse("completed", state.results.to_json_dict())
    if state.status is JobStatus.CANCELLED:
        return format_sse("error", {"code": "JOB_CANCELLED", "message": "Job was cancelled"})
    return format_sse(
        "error",
        {"code": "JOB_FAILED", "message": state.error or "Job failed without error message"},
    )


async def job_event_stream(
    queue: JobQueue,
    job_id: str,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    close_on_terminal: Optional[bool] = None,
    poll_seconds: Optional[float] = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for *job_id* until its terminal event."""
    close_on_terminal = settings.SSE_CLOSE_ON_TERMINAL if close_on_terminal is None else close_on_terminal
    poll_seconds = settings.SSE_POLL_SECONDS if poll_seconds is None else poll_seconds

    state = queue.get_status(job_id)
    if state is None:
        return

    updates: asyncio.Queue[EpubProgress] = asyncio.Queue()
    subscribed = False
    waiter: Optional[asyncio.Future] = None
    getter: Optional[asyncio.Future] = None

    def _on_progress(progress: EpubProgress) -> None:
        updates.put_nowait(progress)

    try:
        if state.status.is_terminal:
            yield terminal_event(state)
        else:
            # Subscribe before the first yield so no update slips through.
            subscribed = queue.set_progress_callback(job_id, _on_progress)
            waiter = asyncio.ensure_future(queue.wait_for(job_id))

            if state.status is JobStatus.QUEUED:
                yield format_sse("queued", {"status": "queued", "position": queue.get_queue_position(job_id)})
            elif state.progress is not None:
                yield format_sse("progress", state.progress.to_json_dict())

            while True:
                getter = asyncio.ensure_future(updates.get())
                done, _pending = await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
                if getter in done:
                    yield format_sse("progress", getter.result().to_json_dict())
                    continue

                getter.cancel()
                while not updates.empty():
                    yield format_sse("progress", updates.get_nowait().to_json_dict())
                yield terminal_event(waiter.result())
                break

        if not close_on_terminal and is_disconnected is not None:
            while not await is_disconnected():
                await asyncio.sleep(poll_seconds)
    finally:
        for future in (getter, waiter):
            if future is not None and not future.done():
                future.cancel()
        if subscribed:
            queue.remove_progress_callback(job_id, _on_progress)
            logger.debug("SSE subscriber for job %s detached", job_id)


@router.get("/{job_id}")
async def stream_job(job_id: str, request: Request, queue: JobQueue = Depends(get_job_queue)) -> StreamingResponse:
    """Open the event stream for *job_id*; unknown jobs get a plain 404."""
    if queue.get_status(job_id) is None:
        raise job_not_found()
    logger.info("SSE client attached to job %s", job_id)
    return StreamingResponse(
        job_event_stream(queue, job_id, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
