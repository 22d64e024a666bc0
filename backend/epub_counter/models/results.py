"""Result and progress models shared by the CLI, the job queue and the API.

The pydantic models serialise with camelCase keys (``filePath``,
``wordCount``, ``schemaVersion``…) because ``results.json`` is consumed by the
dashboard as-is.  Python code keeps using snake_case attribute names.

The dataclasses at the bottom are in-flight accumulators owned by the
processing pipeline; they never cross the HTTP boundary directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictStr, field_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "1.0"

# Reserved count meaning "this tokenizer failed for this file".
FAILED_TOKEN_COUNT = -1


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON while accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class EpubProgress(CamelModel):
    """Point-in-time snapshot of a running job (not an accumulating log)."""

    file_name: str
    current: int
    total: int
    percent: int
    error: Optional[str] = None

    @classmethod
    def at(cls, file_name: str, current: int, total: int) -> "EpubProgress":
        # Half-up rounding, so 1/8 -> 13 and 1/2 -> 50.
        percent = int(current * 100 / total + 0.5) if total else 0
        return cls(file_name=file_name, current=current, total=total, percent=percent)


class TokenizerResult(CamelModel):
    name: str
    count: int

    @property
    def failed(self) -> bool:
        return self.count == FAILED_TOKEN_COUNT


class EpubMetadata(CamelModel):
    title: str
    author: str
    language: Optional[str] = None
    publisher: Optional[str] = None


class EpubResultEntry(CamelModel):
    """One successful file as it appears in ``results.json``."""

    file_path: str
    metadata: EpubMetadata
    word_count: int
    token_counts: List[TokenizerResult] = []


class FailedEntry(CamelModel):
    file: str
    error: str
    suggestion: Optional[str] = None


class ResultsOptions(CamelModel):
    tokenizers: List[str]
    max_mb: Union[int, float]

    @field_validator("max_mb")
    @classmethod
    def _whole_megabytes_as_int(cls, value: Union[int, float]) -> Union[int, float]:
        # 500.0 is written as 500 in results.json.
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value


class ResultsSummary(CamelModel):
    total: int
    success: int
    failed: int


class ResultsOutput(CamelModel):
    """The complete machine-readable report for one batch run."""

    schema_version: str = SCHEMA_VERSION
    timestamp: str
    options: ResultsOptions
    results: List[EpubResultEntry] = []
    summary: ResultsSummary
    failed: List[FailedEntry] = []


# ---------------------------------------------------------------------------
# Upload validation schema
# ---------------------------------------------------------------------------
# Looser than ``ResultsOutput``: only the top-level shape is enforced, but
# without type coercion so "3" is not accepted where a number is expected.
# Strict floats still take ints and reject bools.

_Number = StrictFloat


class UploadedOptions(CamelModel):
    model_config = ConfigDict(extra="allow")

    tokenizers: List[Any]
    max_mb: Optional[_Number] = None


class UploadedSummary(CamelModel):
    model_config = ConfigDict(extra="allow")

    total: _Number
    success: _Number
    failed: _Number


class UploadedResults(CamelModel):
    model_config = ConfigDict(extra="allow")

    schema_version: StrictStr
    timestamp: StrictStr
    options: UploadedOptions
    results: List[Any]
    summary: UploadedSummary


# ---------------------------------------------------------------------------
# Pipeline accumulators
# ---------------------------------------------------------------------------


@dataclass
class EpubRecord:
    """Per-file success record produced by the pipeline."""

    filename: str
    file_path: str
    word_count: int
    title: str
    author: str
    language: Optional[str] = None
    publisher: Optional[str] = None

    @property
    def metadata(self) -> EpubMetadata:
        return EpubMetadata(
            title=self.title,
            author=self.author,
            language=self.language,
            publisher=self.publisher,
        )


@dataclass
class FailedFile:
    file: str
    error: str
    suggestion: Optional[str] = None
    severity: str = "ERROR"

    def to_entry(self) -> FailedEntry:
        return FailedEntry(file=self.file, error=self.error, suggestion=self.suggestion)


@dataclass
class ProcessingResult:
    """Outcome of processing a list of files.

    ``token_counts`` is keyed by the record's resolved ``file_path``: two
    books named ``book.epub`` in different directories must not share counts.
    Use :meth:`counts_for` to look a record up.
    """

    successful: List[EpubRecord] = field(default_factory=list)
    failed: List[FailedFile] = field(default_factory=list)
    total: int = 0
    token_counts: Dict[str, List[TokenizerResult]] = field(default_factory=dict)

    def merge(self, other: "ProcessingResult") -> None:
        self.successful.extend(other.successful)
        self.failed.extend(other.failed)
        self.total += other.total
        self.token_counts.update(other.token_counts)

    def counts_for(self, record: EpubRecord) -> List[TokenizerResult]:
        return self.token_counts.get(record.file_path, [])
