from __future__ import annotations

import json
import logging
from typing import Any, List

from fastapi import APIRouter, Request
from pydantic import ValidationError

from ..config import settings
from ..models.results import UploadedResults
from .errors import ApiError

router = APIRouter()
logger = logging.getLogger(__name__)


def _format_validation_errors(exc: ValidationError) -> List[str]:
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        details.append(f"{location}: {error['msg']}" if location else error["msg"])
    return details


def validate_results_payload(data: Any) -> List[str]:
    """Return every schema violation in an uploaded ``results.json`` (empty if valid)."""
    if not isinstance(data, dict):
        return ["Input must be an object"]
    try:
        UploadedResults.model_validate(data)
    except ValidationError as exc:
        return _format_validation_errors(exc)
    return []


@router.post("/upload-results")
async def upload_results(request: Request) -> dict[str, Any]:
    """Validate an uploaded ``results.json`` document; nothing is stored."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > settings.UPLOAD_MAX_BYTES:
        raise ApiError(413, "PAYLOAD_TOO_LARGE", f"Request body exceeds {settings.UPLOAD_MAX_BYTES} bytes")

    body = await request.body()
    if len(body) > settings.UPLOAD_MAX_BYTES:
        raise ApiError(413, "PAYLOAD_TOO_LARGE", f"Request body exceeds {settings.UPLOAD_MAX_BYTES} bytes")

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ApiError(400, "INVALID_JSON", "Request body must be valid JSON")

    details = validate_results_payload(data)
    if details:
        logger.info("Rejected results upload with %d schema error(s)", len(details))
        raise ApiError(400, "INVALID_SCHEMA", "Invalid results.json format", details)

    return {
        "success": True,
        "data": {
            "message": "Results validated successfully",
            "resultsCount": len(data["results"]),
            "summary": data["summary"],
        },
    }
