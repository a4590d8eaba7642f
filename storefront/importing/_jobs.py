"""
Job store — every write to csv_import_jobs goes through here.

All transitions are conditional UPDATEs on the current status, so a job in a
terminal state is never moved again and progress never goes backwards, no
matter how many workers or reapers race on the same row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult

from storefront.db import ImportJobTable, SessionFactory
from storefront.importing._types import ImportJob, JobStatus


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Counters written with a terminal status."""

    status: JobStatus
    total_rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    error_file_url: str | None = None
    error_message: str | None = None
    progress: int | None = None


class JobStore:
    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def create(
        self,
        *,
        job_id: str,
        user_id: str,
        store_id: str,
        file_key: str,
        file_url: str,
        now: datetime,
    ) -> ImportJob:
        row = ImportJobTable(
            id=job_id,
            user_id=user_id,
            store_id=store_id,
            file_key=file_key,
            file_url=file_url,
            status=JobStatus.PENDING.value,
            progress=0,
            total_rows=0,
            processed_rows=0,
            error_rows=0,
            created_at=now,
            updated_at=now,
        )
        async with self._session() as session:
            async with session.begin():
                session.add(row)
        return to_import_job(row)

    async def get(self, job_id: str) -> ImportJob | None:
        async with self._session() as session:
            row = await session.get(ImportJobTable, job_id)
            return to_import_job(row) if row is not None else None

    async def claim(self, job_id: str, *, progress: int, now: datetime) -> bool:
        """PENDING → PROCESSING. False if the job is not pending."""
        return await self._transition(
            job_id,
            expected=(JobStatus.PENDING,),
            values={
                "status": JobStatus.PROCESSING.value,
                "progress": progress,
                "updated_at": now,
            },
        )

    async def advance(self, job_id: str, progress: int, *, now: datetime) -> bool:
        """Raise progress of a processing job. Never lowers it."""
        stmt = (
            update(ImportJobTable)
            .where(
                ImportJobTable.id == job_id,
                ImportJobTable.status == JobStatus.PROCESSING.value,
                ImportJobTable.progress <= progress,
            )
            .values(progress=progress, updated_at=now)
        )
        return await self._execute(stmt)

    async def finish(self, job_id: str, outcome: JobOutcome, *, now: datetime) -> bool:
        """PROCESSING → terminal. False if the job was no longer processing."""
        if not outcome.status.is_terminal:
            raise ValueError(f"{outcome.status} is not a terminal status")
        values: dict[str, Any] = {
            "status": outcome.status.value,
            "total_rows": outcome.total_rows,
            "processed_rows": outcome.processed_rows,
            "error_rows": outcome.error_rows,
            "error_file_url": outcome.error_file_url,
            "error_message": outcome.error_message,
            "updated_at": now,
        }
        if outcome.progress is not None:
            values["progress"] = outcome.progress
        return await self._transition(
            job_id, expected=(JobStatus.PROCESSING,), values=values
        )

    async def fail(
        self,
        job_id: str,
        message: str,
        *,
        now: datetime,
        idle_since: datetime | None = None,
    ) -> bool:
        """
        Mark a processing job FAILED, leaving its counters as they are.

        With idle_since, only if the job has not been touched since then.
        """
        return await self._transition(
            job_id,
            expected=(JobStatus.PROCESSING,),
            idle_since=idle_since,
            values={
                "status": JobStatus.FAILED.value,
                "error_message": message,
                "error_file_url": None,
                "updated_at": now,
            },
        )

    async def stale(self, older_than: datetime) -> list[str]:
        """Ids of PROCESSING jobs not touched since older_than."""
        async with self._session() as session:
            result = await session.execute(
                select(ImportJobTable.id).where(
                    ImportJobTable.status == JobStatus.PROCESSING.value,
                    ImportJobTable.updated_at < older_than,
                )
            )
            return list(result.scalars())

    async def _transition(
        self,
        job_id: str,
        *,
        expected: tuple[JobStatus, ...],
        values: dict[str, Any],
        idle_since: datetime | None = None,
    ) -> bool:
        stmt = update(ImportJobTable).where(
            ImportJobTable.id == job_id,
            ImportJobTable.status.in_([s.value for s in expected]),
        )
        if idle_since is not None:
            stmt = stmt.where(ImportJobTable.updated_at < idle_since)
        stmt = stmt.values(**values)
        return await self._execute(stmt)

    async def _execute(self, stmt: Any) -> bool:
        async with self._session() as session:
            async with session.begin():
                cursor = cast(CursorResult[Any], await session.execute(stmt))
                return cursor.rowcount > 0


def to_import_job(row: ImportJobTable) -> ImportJob:
    return ImportJob(
        id=row.id,
        user_id=row.user_id,
        store_id=row.store_id,
        file_key=row.file_key,
        file_url=row.file_url,
        status=JobStatus(row.status),
        progress=row.progress,
        total_rows=row.total_rows,
        processed_rows=row.processed_rows,
        error_rows=row.error_rows,
        error_file_url=row.error_file_url,
        error_message=row.error_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


__all__ = ("JobOutcome", "JobStore", "to_import_job")
