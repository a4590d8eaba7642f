"""
Core types for storefront.

Re-exports from kungfu/combinators + identifier aliases.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
import uuid

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Identifiers
# ═══════════════════════════════════════════════════════════════════════════════

type UserId = str
type StoreId = str
type ProductId = str
type OrderId = str
type JobId = str

# ═══════════════════════════════════════════════════════════════════════════════
# Clock
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]
"""Source of "now". Injected wherever timestamps are stamped."""


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Identifiers
    "UserId",
    "StoreId",
    "ProductId",
    "OrderId",
    "JobId",
    # Clock
    "Clock",
    "utcnow",
    "new_id",
)
