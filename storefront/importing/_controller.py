"""
CSV Import Job Controller — runs one import job through its state machine.

    controller = ImportJobController(session_factory, blobs)
    status = await controller.start_import(job_id, store_id)

Sequence:

    claim        PENDING → PROCESSING, progress 10     (no-op if not pending)
    fetch        blob get                               → FAILED on error
    parse        normalized headers                     → FAILED if malformed
    validate     per row, progress every ~10% of rows   (10 → 90)
    commit       one atomic bulk insert of valid rows
    report       rejected rows → CSV in the blob store
    finish       COMPLETED | COMPLETED_WITH_ERRORS | FAILED, progress 100

An exception after the claim marks the job FAILED. Rows already committed
stay committed.
"""

from __future__ import annotations

import math
from collections.abc import Callable

import structlog

from kungfu import Ok, Error
from combinators import lift as L

from storefront._types import Clock, utcnow
from storefront.blob import BlobStore
from storefront.db import SessionFactory
from storefront.importing._committer import BulkInsertCommitter
from storefront.importing._jobs import JobOutcome, JobStore
from storefront.importing._parse import ParsedCsv, parse_csv
from storefront.importing._report import write_report
from storefront.importing._types import (
    JobStatus,
    NormalizedProduct,
    RowRejection,
    SourceUnavailableError,
)
from storefront.importing._validate import validate_row

logger = structlog.get_logger(__name__)

CLAIMED_PROGRESS = 10
VALIDATED_PROGRESS = 90
PROGRESS_STEPS = 10

type ProgressObserver = Callable[[str, int], None]
"""Called with (job_id, progress) after each progress write lands."""


def row_progress(done: int, total: int) -> int:
    """Progress after `done` of `total` rows: 10 at the start, 90 when all are done."""
    span = VALIDATED_PROGRESS - CLAIMED_PROGRESS
    return CLAIMED_PROGRESS + math.floor(done / total * span)


class ImportJobController:
    def __init__(
        self,
        session_factory: SessionFactory,
        blobs: BlobStore,
        *,
        committer: BulkInsertCommitter | None = None,
        clock: Clock = utcnow,
        observer: ProgressObserver | None = None,
    ) -> None:
        self._jobs = JobStore(session_factory)
        self._blobs = blobs
        self._committer = committer or BulkInsertCommitter(session_factory)
        self._clock = clock
        self._observer = observer

    async def start_import(self, job_id: str, store_id: str) -> JobStatus | None:
        """
        Process one job to a terminal state.

        Returns the terminal status, or None when the job was not PENDING
        (already claimed by another delivery, or unknown).

        Raises only if the job could not be claimed or marked FAILED, that is
        when the job store itself is unavailable.
        """
        log = logger.bind(job_id=job_id, store_id=store_id)

        if not await self._jobs.claim(job_id, progress=CLAIMED_PROGRESS, now=self._clock()):
            log.info("Import job not pending, skipping")
            return None
        self._observe(job_id, CLAIMED_PROGRESS)
        log.info("Import job started")

        try:
            return await self._run(job_id, store_id, log)
        except Exception as e:
            log.exception("Import job crashed")
            await self._jobs.fail(job_id, f"Import failed: {e}", now=self._clock())
            return JobStatus.FAILED

    # ═══════════════════════════════════════════════════════════════════════════
    # Steps
    # ═══════════════════════════════════════════════════════════════════════════

    async def _run(
        self, job_id: str, store_id: str, log: structlog.stdlib.BoundLogger
    ) -> JobStatus:
        job = await self._jobs.get(job_id)
        if job is None:
            raise LookupError(f"Import job {job_id} vanished after claim")

        # Fetch
        match await L.catching_async(
            lambda: self._blobs.get(job.file_key),
            on_error=lambda e: SourceUnavailableError(str(e), e),
        ):
            case Ok(Ok(data)):
                pass
            case Ok(Error(blob_error)):
                return await self._fail(job_id, f"Source unavailable: {blob_error.message}", log)
            case Error(unavailable):
                return await self._fail(job_id, f"Source unavailable: {unavailable.message}", log)

        # Parse
        match parse_csv(data):
            case Ok(parsed):
                pass
            case Error(malformed):
                log.warning("Import file malformed", reason=malformed.message)
                await self._finish(
                    job_id,
                    JobOutcome(
                        status=JobStatus.FAILED,
                        total_rows=malformed.rows_read,
                        processed_rows=0,
                        error_message=malformed.message,
                    ),
                    log,
                )
                return JobStatus.FAILED

        # Validate
        valid, rejected = await self._validate(job_id, store_id, parsed)

        # Commit
        if valid:
            summary = await self._committer.commit(valid)
            log.info(
                "Import rows committed",
                inserted=summary.inserted,
                skipped_duplicates=summary.skipped,
            )

        # Report
        error_file_url = None
        if rejected:
            match await write_report(self._blobs, job_id, parsed.headers, rejected):
                case Ok(url):
                    error_file_url = url
                case Error(e):
                    log.warning("Error report not stored", reason=e.message)

        if not valid:
            status = JobStatus.FAILED
        elif rejected:
            status = JobStatus.COMPLETED_WITH_ERRORS
        else:
            status = JobStatus.COMPLETED

        await self._finish(
            job_id,
            JobOutcome(
                status=status,
                total_rows=len(parsed),
                processed_rows=len(valid),
                error_rows=len(rejected),
                error_file_url=error_file_url,
                error_message="No valid rows" if not valid else None,
                progress=100,
            ),
            log,
        )
        return status

    async def _validate(
        self, job_id: str, store_id: str, parsed: ParsedCsv
    ) -> tuple[list[NormalizedProduct], list[RowRejection]]:
        valid: list[NormalizedProduct] = []
        rejected: list[RowRejection] = []
        total = len(parsed)
        if total == 0:
            return valid, rejected

        now = self._clock()
        step = math.ceil(total / PROGRESS_STEPS)
        for number, row in enumerate(parsed.rows, start=1):
            match validate_row(row, store_id=store_id, now=now):
                case Ok(product):
                    valid.append(product)
                case Error(reason):
                    rejected.append(RowRejection(row_number=number, row=row, reason=reason))

            if number % step == 0 or number == total:
                progress = row_progress(number, total)
                if await self._jobs.advance(job_id, progress, now=self._clock()):
                    self._observe(job_id, progress)

        return valid, rejected

    async def _finish(
        self, job_id: str, outcome: JobOutcome, log: structlog.stdlib.BoundLogger
    ) -> None:
        if not await self._jobs.finish(job_id, outcome, now=self._clock()):
            log.warning("Import job left PROCESSING before finishing", status=outcome.status.value)
            return
        if outcome.progress is not None:
            self._observe(job_id, outcome.progress)
        log.info(
            "Import job finished",
            status=outcome.status.value,
            total_rows=outcome.total_rows,
            processed_rows=outcome.processed_rows,
            error_rows=outcome.error_rows,
        )

    async def _fail(
        self, job_id: str, message: str, log: structlog.stdlib.BoundLogger
    ) -> JobStatus:
        log.warning("Import job failed", reason=message)
        await self._jobs.fail(job_id, message, now=self._clock())
        return JobStatus.FAILED

    def _observe(self, job_id: str, progress: int) -> None:
        if self._observer is not None:
            self._observer(job_id, progress)


__all__ = ("ImportJobController", "ProgressObserver", "row_progress")
