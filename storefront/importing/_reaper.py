"""
Stale job reaper — fails PROCESSING jobs nobody is working on any more.

A job only stays PROCESSING without progress writes when the worker running
it died. Progress writes touch updated_at, so a job idle past the threshold
is treated as abandoned.
"""

from __future__ import annotations

from datetime import timedelta

import structlog

from storefront._types import Clock, utcnow
from storefront.db import SessionFactory
from storefront.importing._jobs import JobStore

logger = structlog.get_logger(__name__)

STALE_MESSAGE = "Import abandoned: no progress within {minutes} minutes"


async def reap_stale_jobs(
    session_factory: SessionFactory,
    older_than: timedelta,
    *,
    clock: Clock = utcnow,
) -> list[str]:
    """Mark stale PROCESSING jobs FAILED. Returns the ids actually reaped."""
    jobs = JobStore(session_factory)
    now = clock()
    message = STALE_MESSAGE.format(minutes=int(older_than.total_seconds() // 60))

    cutoff = now - older_than

    reaped: list[str] = []
    for job_id in await jobs.stale(cutoff):
        # Re-checked in the UPDATE: a job that moved on meanwhile is left alone.
        if await jobs.fail(job_id, message, now=now, idle_since=cutoff):
            reaped.append(job_id)

    if reaped:
        logger.warning("Reaped stale import jobs", count=len(reaped), job_ids=reaped)
    return reaped


__all__ = ("reap_stale_jobs",)
