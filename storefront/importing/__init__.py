"""
Importing — bulk CSV product import as a background job.

    from storefront import importing as I

    controller = I.ImportJobController(session_factory, blobs)
    queue = I.ImportQueue(controller, workers=2)
    service = I.ImportService(session_factory, blobs, queue)

    await queue.start()
    match await service.upload_and_import(user_id, data, "products.csv", "text/csv"):
        case Ok(receipt):
            status = await service.get_job_status(receipt.job_id)

Rows are validated one by one (see validate_row); valid rows are committed in
one atomic insert, rejected rows end up in an error report.
"""

from storefront.importing._types import (
    JobStatus,
    ImportJob,
    JobStatusView,
    UploadReceipt,
    Row,
    NormalizedProduct,
    RowRejection,
    ImportErrorKind,
    SourceUnavailableError,
    MalformedCsvError,
    InvalidFileError,
    NoStoreError,
    JobNotFoundError,
    UploadError,
)
from storefront.importing._validate import (
    validate_row,
    parse_price,
    parse_stock,
    NAME_REQUIRED,
    PRICE_REQUIRED,
    INVALID_PRICE,
    INVALID_STOCK,
    MAX_COLUMN_INT,
)
from storefront.importing._parse import ParsedCsv, parse_csv, normalize_header
from storefront.importing._report import report_key, render_report, write_report
from storefront.importing._committer import CommitSummary, BulkInsertCommitter
from storefront.importing._jobs import JobOutcome, JobStore
from storefront.importing._controller import (
    ImportJobController,
    ProgressObserver,
    row_progress,
)
from storefront.importing._queue import ImportTask, TaskOutcome, ImportQueue
from storefront.importing._reaper import reap_stale_jobs
from storefront.importing._service import ImportService, is_csv, upload_key

__all__ = (
    # Types
    "JobStatus",
    "ImportJob",
    "JobStatusView",
    "UploadReceipt",
    "Row",
    "NormalizedProduct",
    "RowRejection",
    # Errors
    "ImportErrorKind",
    "SourceUnavailableError",
    "MalformedCsvError",
    "InvalidFileError",
    "NoStoreError",
    "JobNotFoundError",
    "UploadError",
    # Rows
    "validate_row",
    "parse_price",
    "parse_stock",
    "NAME_REQUIRED",
    "PRICE_REQUIRED",
    "INVALID_PRICE",
    "INVALID_STOCK",
    "MAX_COLUMN_INT",
    "ParsedCsv",
    "parse_csv",
    "normalize_header",
    # Report
    "report_key",
    "render_report",
    "write_report",
    # Jobs
    "CommitSummary",
    "BulkInsertCommitter",
    "JobOutcome",
    "JobStore",
    "ImportJobController",
    "ProgressObserver",
    "row_progress",
    "ImportTask",
    "TaskOutcome",
    "ImportQueue",
    "reap_stale_jobs",
    # Service
    "ImportService",
    "is_csv",
    "upload_key",
)
