"""
Error report — rejected rows rendered as CSV and stored next to the upload.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence

from kungfu import Result, Ok, Error

from storefront.blob import BlobStore
from storefront.importing._types import RowRejection, SourceUnavailableError


def report_key(job_id: str) -> str:
    return f"csv-errors/{job_id}.csv"


def render_report(headers: Sequence[str], rejections: Sequence[RowRejection]) -> bytes:
    """
    One line per rejected row: its number, the reason, then the original columns.

        row,reason,name,price,stock
        3,Invalid price,Widget,abc,1
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer)
    writer.writerow(["row", "reason", *headers])
    for rejection in rejections:
        writer.writerow(
            [
                rejection.row_number,
                rejection.reason,
                *(rejection.row.get(h, "") for h in headers),
            ]
        )
    return buffer.getvalue().encode("utf-8")


async def write_report(
    blobs: BlobStore,
    job_id: str,
    headers: Sequence[str],
    rejections: Sequence[RowRejection],
) -> Result[str, SourceUnavailableError]:
    """Store the report; returns its URL."""
    match await blobs.put(
        report_key(job_id),
        render_report(headers, rejections),
        "text/csv",
        {"jobId": job_id},
    ):
        case Ok(stored):
            return Ok(stored.url)
        case Error(e):
            return Error(SourceUnavailableError(e.message, e.cause))


__all__ = ("report_key", "render_report", "write_report")
