"""
Row validation — pure CSV row → NormalizedProduct or rejection reason.

Checks run in order; the first failure wins:

    name   required, non-blank                → "Name is required"
    price  present                            → "Price is required"
           decimal ("." or ","), finite, ≥ 0,
           fits the price column              → "Invalid price"
    stock  optional (0), integer ≥ 0, fits    → "Invalid stock"

No I/O, no clock: the store id and timestamp come from the caller, so the
same row always yields the same result.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from kungfu import Result, Ok, Error

from storefront.importing._types import NormalizedProduct, Row

NAME_REQUIRED = "Name is required"
PRICE_REQUIRED = "Price is required"
INVALID_PRICE = "Invalid price"
INVALID_STOCK = "Invalid stock"

_CENTS = Decimal(100)

# Price and stock are INTEGER columns, 32-bit on PostgreSQL.
MAX_COLUMN_INT = 2**31 - 1


def validate_row(
    row: Row,
    *,
    store_id: str,
    now: datetime,
) -> Result[NormalizedProduct, str]:
    """
    Validate and normalize one row.

    Example:
        >>> validate_row({"name": "Widget", "price": "19,90", "stock": "5"}, ...)
        Ok(NormalizedProduct(name="Widget", price=1990, stock=5, ...))
    """
    name = (row.get("name") or "").strip()
    if not name:
        return Error(NAME_REQUIRED)

    raw_price = row.get("price")
    if not raw_price:
        return Error(PRICE_REQUIRED)
    price = parse_price(raw_price)
    if price is None:
        return Error(INVALID_PRICE)

    stock = parse_stock(row.get("stock"))
    if stock is None:
        return Error(INVALID_STOCK)

    return Ok(
        NormalizedProduct(
            store_id=store_id,
            name=name,
            description=(row.get("description") or "").strip(),
            price=price,
            image_url=(row.get("imageurl") or "").strip(),
            stock=stock,
            sold_count=0,
            created_at=now,
            updated_at=now,
        )
    )


def parse_price(raw: str) -> int | None:
    """Decimal text → minor units, rounded half-up. None if invalid, negative or too large."""
    try:
        value = Decimal(raw.strip().replace(",", ".", 1))
        if not value.is_finite() or value < 0:
            return None
        cents = int((value * _CENTS).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return None
    return cents if cents <= MAX_COLUMN_INT else None


def parse_stock(raw: str | None) -> int | None:
    """Blank or missing → 0. None if not a non-negative integer that fits the column."""
    if raw is None or not raw.strip():
        return 0
    text = raw.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    if len(text.lstrip("0")) > len(str(MAX_COLUMN_INT)):
        return None
    stock = int(text)
    return stock if stock <= MAX_COLUMN_INT else None


__all__ = (
    "validate_row",
    "parse_price",
    "parse_stock",
    "NAME_REQUIRED",
    "PRICE_REQUIRED",
    "INVALID_PRICE",
    "INVALID_STOCK",
    "MAX_COLUMN_INT",
)
