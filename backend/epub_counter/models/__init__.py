# Namespace for Pydantic models and in-flight processing records.
from .job import CancellationToken, JobState, JobStatus, ProcessingJob, ProcessRequest
from .results import (
    EpubMetadata,
    EpubProgress,
    EpubRecord,
    FailedFile,
    ProcessingResult,
    ResultsOutput,
    TokenizerResult,
)

__all__ = [
    "CancellationToken",
    "EpubMetadata",
    "EpubProgress",
    "EpubRecord",
    "FailedFile",
    "JobState",
    "JobStatus",
    "ProcessingJob",
    "ProcessRequest",
    "ProcessingResult",
    "ResultsOutput",
    "TokenizerResult",
]
