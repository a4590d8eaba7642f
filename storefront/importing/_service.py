"""
Import service — the entry points the HTTP layer and the CLI call.

    service = ImportService(session_factory, blobs, queue)

    match await service.upload_and_import(user_id, data, "products.csv", "text/csv"):
        case Ok(receipt):
            ...  # poll service.get_job_status(receipt.job_id)
        case Error(e):
            ...
"""

from __future__ import annotations

from datetime import UTC
from pathlib import PurePosixPath

import structlog
from sqlalchemy import select

from kungfu import Result, Ok, Error
from combinators import lift as L

from storefront._types import Clock, new_id, utcnow
from storefront.blob import BlobStore
from storefront.db import SessionFactory, StoreTable
from storefront.importing._jobs import JobStore
from storefront.importing._queue import ImportQueue, ImportTask
from storefront.importing._types import (
    InvalidFileError,
    JobNotFoundError,
    JobStatusView,
    NoStoreError,
    SourceUnavailableError,
    UploadError,
    UploadReceipt,
)

logger = structlog.get_logger(__name__)

CSV_MIME_TYPES = frozenset({"text/csv", "application/vnd.ms-excel"})


def is_csv(filename: str, mime_type: str | None) -> bool:
    """CSV by extension or by declared content type (parameters ignored)."""
    if filename.lower().endswith(".csv"):
        return True
    if not mime_type:
        return False
    return mime_type.split(";", 1)[0].strip().lower() in CSV_MIME_TYPES


def upload_key(user_id: str, filename: str, now_ms: int) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name or "upload.csv"
    return f"csv-uploads/{user_id}/{now_ms}-{name}"


class ImportService:
    def __init__(
        self,
        session_factory: SessionFactory,
        blobs: BlobStore,
        queue: ImportQueue,
        *,
        clock: Clock = utcnow,
        max_upload_bytes: int | None = None,
    ) -> None:
        self._session = session_factory
        self._blobs = blobs
        self._queue = queue
        self._jobs = JobStore(session_factory)
        self._clock = clock
        self._max_upload_bytes = max_upload_bytes

    async def upload_and_import(
        self,
        user_id: str,
        file_bytes: bytes,
        filename: str,
        mime_type: str | None,
    ) -> Result[UploadReceipt, UploadError]:
        """
        Store the file, create a PENDING job, queue it.

        Returns as soon as the job is queued; processing happens on the
        queue's workers.
        """
        log = logger.bind(user_id=user_id, filename=filename)

        if not is_csv(filename, mime_type):
            return Error(InvalidFileError("Only CSV files are allowed"))
        if self._max_upload_bytes is not None and len(file_bytes) > self._max_upload_bytes:
            return Error(
                InvalidFileError(
                    f"File exceeds {self._max_upload_bytes} bytes", too_large=True
                )
            )

        match await L.catching_async(
            lambda: self._store_of(user_id), on_error=_store_unavailable
        ):
            case Ok(store_id):
                pass
            case Error(e):
                log.error("Store lookup failed", error=repr(e.cause))
                return Error(e)
        if store_id is None:
            return Error(NoStoreError(user_id))

        now = self._clock()
        key = upload_key(user_id, filename, int(now.replace(tzinfo=UTC).timestamp() * 1000))
        match await self._blobs.put(
            key,
            file_bytes,
            mime_type or "text/csv",
            {"userId": user_id, "storeId": store_id, "originalName": filename},
        ):
            case Ok(stored):
                pass
            case Error(e):
                log.error("Upload not stored", key=key, reason=e.message)
                return Error(SourceUnavailableError(e.message, e.cause))

        match await L.catching_async(
            lambda: self._jobs.create(
                job_id=new_id(),
                user_id=user_id,
                store_id=store_id,
                file_key=stored.key,
                file_url=stored.url,
                now=now,
            ),
            on_error=_store_unavailable,
        ):
            case Ok(job):
                pass
            case Error(e):
                log.error("Import job not created", key=key, error=repr(e.cause))
                await self._discard(stored.key, log)
                return Error(e)

        try:
            self._queue.submit(ImportTask(job_id=job.id, store_id=store_id))
        except RuntimeError as e:
            log.error("Import job not queued", job_id=job.id, reason=str(e))
            return Error(SourceUnavailableError("Import queue is not accepting jobs", e))

        log.info("Import job queued", job_id=job.id, size=stored.size)
        return Ok(
            UploadReceipt(
                job_id=job.id,
                file_url=stored.url,
                filename=filename,
                size=stored.size,
            )
        )

    async def get_job_status(
        self,
        job_id: str,
        user_id: str | None = None,
    ) -> Result[JobStatusView, JobNotFoundError | SourceUnavailableError]:
        """With user_id, jobs owned by someone else are reported as not found."""
        match await L.catching_async(
            lambda: self._jobs.get(job_id), on_error=_store_unavailable
        ):
            case Ok(job):
                pass
            case Error(e):
                logger.error("Job status lookup failed", job_id=job_id, error=repr(e.cause))
                return Error(e)
        if job is None or (user_id is not None and job.user_id != user_id):
            return Error(JobNotFoundError(job_id))
        return Ok(JobStatusView.of(job))

    async def _store_of(self, user_id: str) -> str | None:
        async with self._session() as session:
            result = await session.execute(
                select(StoreTable.id).where(StoreTable.owner_id == user_id)
            )
            return result.scalar_one_or_none()

    async def _discard(self, key: str, log: structlog.stdlib.BoundLogger) -> None:
        match await self._blobs.delete(key):
            case Ok(_):
                pass
            case Error(e):
                log.warning("Orphaned upload not removed", key=key, reason=e.message)


def _store_unavailable(e: Exception) -> SourceUnavailableError:
    return SourceUnavailableError("Database unavailable", e)


__all__ = ("ImportService", "is_csv", "upload_key", "CSV_MIME_TYPES")
