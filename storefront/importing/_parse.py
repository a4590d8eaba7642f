"""
CSV parsing — header-normalized rows, structural failures as values.
"""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass

from kungfu import Result, Ok, Error

from storefront.importing._types import MalformedCsvError, Row


@dataclass(frozen=True, slots=True)
class ParsedCsv:
    headers: tuple[str, ...]
    rows: tuple[Row, ...]

    def __len__(self) -> int:
        return len(self.rows)


def normalize_header(header: str) -> str:
    return header.strip().lower()


def parse_csv(data: bytes) -> Result[ParsedCsv, MalformedCsvError]:
    """
    Parse delimited text with a header line.

    Headers are trimmed and lower-cased; blank lines are skipped. A row whose
    field count differs from the header, an unterminated quote, or bytes that
    are not UTF-8 make the whole file malformed.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        return Error(MalformedCsvError(f"File is not valid UTF-8: {e.reason}"))

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    rows: list[Row] = []
    headers: tuple[str, ...] = ()
    try:
        for record in reader:
            if not record:
                continue
            if not headers:
                headers = tuple(normalize_header(h) for h in record)
                continue
            if len(record) != len(headers):
                return Error(
                    MalformedCsvError(
                        f"Line {reader.line_num}: expected {len(headers)} fields, "
                        f"got {len(record)}",
                        rows_read=len(rows),
                    )
                )
            rows.append(dict(zip(headers, record)))
    except csv.Error as e:
        return Error(
            MalformedCsvError(f"Line {reader.line_num}: {e}", rows_read=len(rows))
        )

    return Ok(ParsedCsv(headers=headers, rows=tuple(rows)))


__all__ = ("ParsedCsv", "parse_csv", "normalize_header")
