"""API error type and the JSON envelope every endpoint uses for failures.

``{"error": {"code": "...", "message": "...", "details": [...]}}``; the
``code`` is machine readable and stable, ``details`` is optional.
"""

from __future__ import annotations

from typing import Any, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Domain-level API failure mapped to a JSON response by ``main``."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[List[str]] = None) -> None:  # noqa: D401
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details

    def to_body(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"error": error}


def job_not_found() -> ApiError:
    return ApiError(404, "JOB_NOT_FOUND", "Job not found")


def get_job_queue(request: Request):
    """Dependency returning the process-wide :class:`JobQueue`."""
    return request.app.state.job_queue


def error_response(exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())
