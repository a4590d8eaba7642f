"""
Import types — job record, normalized rows, rejections, errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Job
# ═══════════════════════════════════════════════════════════════════════════════


class JobStatus(Enum):
    """
    Import job lifecycle.

        PENDING → PROCESSING → COMPLETED
                             → COMPLETED_WITH_ERRORS
                             → FAILED
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {JobStatus.COMPLETED, JobStatus.COMPLETED_WITH_ERRORS, JobStatus.FAILED}
)


@dataclass(frozen=True, slots=True)
class ImportJob:
    id: str
    user_id: str
    store_id: str
    file_key: str
    file_url: str
    status: JobStatus
    progress: int
    total_rows: int
    processed_rows: int
    error_rows: int
    error_file_url: str | None
    error_message: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class JobStatusView:
    """What a client polling a job sees."""

    job_id: str
    status: JobStatus
    progress: int
    total_rows: int
    processed_rows: int
    error_rows: int
    error_file_url: str | None

    @classmethod
    def of(cls, job: ImportJob) -> JobStatusView:
        return cls(
            job_id=job.id,
            status=job.status,
            progress=job.progress,
            total_rows=job.total_rows,
            processed_rows=job.processed_rows,
            error_rows=job.error_rows,
            error_file_url=job.error_file_url,
        )


@dataclass(frozen=True, slots=True)
class UploadReceipt:
    """Returned as soon as the file is stored and the job is queued."""

    job_id: str
    file_url: str
    filename: str
    size: int


# ═══════════════════════════════════════════════════════════════════════════════
# Rows
# ═══════════════════════════════════════════════════════════════════════════════

type Row = Mapping[str, str]


@dataclass(frozen=True, slots=True)
class NormalizedProduct:
    """A CSV row ready for insertion. Price in minor units."""

    store_id: str
    name: str
    description: str
    price: int
    image_url: str
    stock: int
    sold_count: int
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class RowRejection:
    """
    A row that failed validation.

    Note: row_number is 1-based and counts data rows, not the header.
    """

    row_number: int
    row: Row
    reason: str


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class ImportErrorKind(Enum):
    """Kinds of import errors."""

    SOURCE_UNAVAILABLE = auto()  # Blob store unreachable or file missing
    MALFORMED_CSV = auto()  # Structural parse failure
    INVALID_FILE = auto()  # Upload is not a CSV, or too large
    NO_STORE = auto()  # Uploading user owns no store
    JOB_NOT_FOUND = auto()  # Unknown job id, or not the caller's


@dataclass(frozen=True, slots=True)
class SourceUnavailableError:
    message: str
    cause: Exception | None = None

    @property
    def kind(self) -> ImportErrorKind:
        return ImportErrorKind.SOURCE_UNAVAILABLE


@dataclass(frozen=True, slots=True)
class MalformedCsvError:
    """Structural failure. rows_read counts data rows read before it."""

    message: str
    rows_read: int = 0

    @property
    def kind(self) -> ImportErrorKind:
        return ImportErrorKind.MALFORMED_CSV


@dataclass(frozen=True, slots=True)
class InvalidFileError:
    message: str
    too_large: bool = False

    @property
    def kind(self) -> ImportErrorKind:
        return ImportErrorKind.INVALID_FILE


@dataclass(frozen=True, slots=True)
class NoStoreError:
    user_id: str

    @property
    def kind(self) -> ImportErrorKind:
        return ImportErrorKind.NO_STORE

    @property
    def message(self) -> str:
        return "User has no registered store"


@dataclass(frozen=True, slots=True)
class JobNotFoundError:
    job_id: str

    @property
    def kind(self) -> ImportErrorKind:
        return ImportErrorKind.JOB_NOT_FOUND

    @property
    def message(self) -> str:
        return f"Import job {self.job_id} not found"


type UploadError = InvalidFileError | NoStoreError | SourceUnavailableError


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "JobStatus",
    "ImportJob",
    "JobStatusView",
    "UploadReceipt",
    "Row",
    "NormalizedProduct",
    "RowRejection",
    "ImportErrorKind",
    "SourceUnavailableError",
    "MalformedCsvError",
    "InvalidFileError",
    "NoStoreError",
    "JobNotFoundError",
    "UploadError",
)
