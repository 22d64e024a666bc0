from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, status

from ..config import settings
from ..errors import InvalidPathError
from ..models.job import ProcessRequest
from ..services.tokenizers import validate_tokenizer_names
from ..utils.paths import resolve_request_path
from ..workers.job_queue import JobQueue
from .errors import ApiError, get_job_queue

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_request(payload: Any) -> ProcessRequest:
    """Validate the raw JSON body, raising :class:`ApiError` with a stable code."""
    if not isinstance(payload, dict):
        raise ApiError(400, "INVALID_REQUEST", "Request body must be a JSON object")

    raw_path = payload.get("path")
    if not isinstance(raw_path, str) or not raw_path.strip():
        raise ApiError(400, "INVALID_REQUEST", 'Missing or invalid "path" field')

    tokenizers = payload.get("tokenizers")
    if not isinstance(tokenizers, list) or not tokenizers:
        raise ApiError(400, "INVALID_TOKENIZERS", 'Missing or empty "tokenizers" array')
    invalid = validate_tokenizer_names(tokenizers)
    if invalid:
        raise ApiError(
            400,
            "INVALID_TOKENIZERS",
            f"Unknown tokenizer(s): {', '.join(invalid)}. Valid presets: gpt4, claude. "
            "Or use hf:model-name for Hugging Face models.",
        )

    recursive = payload.get("recursive", False)
    if not isinstance(recursive, bool):
        raise ApiError(400, "INVALID_REQUEST", '"recursive" must be a boolean')

    max_mb = payload.get("maxMb", settings.DEFAULT_MAX_MB)
    if isinstance(max_mb, bool) or not isinstance(max_mb, (int, float)) or max_mb <= 0:
        raise ApiError(400, "INVALID_REQUEST", '"maxMb" must be a positive number')

    try:
        resolved = resolve_request_path(raw_path.strip(), settings.WORKSPACE_ROOT)
    except InvalidPathError as exc:
        raise ApiError(400, "INVALID_PATH", exc.message)

    return ProcessRequest(path=str(resolved), tokenizers=tokenizers, recursive=recursive, max_mb=float(max_mb))


@router.post("/process", status_code=status.HTTP_201_CREATED)
async def start_processing(request: Request, queue: JobQueue = Depends(get_job_queue)) -> dict[str, str]:
    """Queue a batch job for every EPUB under ``path``."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ApiError(400, "INVALID_REQUEST", "Request body must be valid JSON")

    process_request = _parse_request(payload)
    job_id = queue.enqueue(process_request)
    logger.info("Accepted job %s for %s", job_id, process_request.path)
    return {"jobId": job_id, "status": "queued"}
