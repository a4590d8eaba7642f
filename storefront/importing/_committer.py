"""
Bulk insert committer — all valid rows in one transaction, duplicates skipped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from itertools import batched
from typing import Any, cast

from sqlalchemy.engine import CursorResult

from storefront._types import new_id
from storefront.db import ProductTable, SessionFactory, insert_ignoring_conflicts
from storefront.importing._types import NormalizedProduct

DEFAULT_CHUNK_SIZE = 500


@dataclass(frozen=True, slots=True)
class CommitSummary:
    submitted: int
    inserted: int

    @property
    def skipped(self) -> int:
        return self.submitted - self.inserted


class BulkInsertCommitter:
    """
    Inserts normalized products atomically.

    Rows are sent in chunks to stay under driver parameter limits, but every
    chunk runs inside the same transaction: either all non-duplicate rows land
    or none do. Rows colliding on (store_id, name) are skipped, not failed.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._session = session_factory
        self._chunk_size = chunk_size

    async def commit(self, products: Sequence[NormalizedProduct]) -> CommitSummary:
        """Raises on storage failure; nothing is written in that case."""
        if not products:
            return CommitSummary(submitted=0, inserted=0)

        inserted = 0
        async with self._session() as session:
            async with session.begin():
                for chunk in batched(products, self._chunk_size):
                    stmt = insert_ignoring_conflicts(session, ProductTable).values(
                        [_values(p) for p in chunk]
                    )
                    cursor = cast(CursorResult[Any], await session.execute(stmt))
                    inserted += max(cursor.rowcount, 0)

        return CommitSummary(submitted=len(products), inserted=inserted)


def _values(p: NormalizedProduct) -> dict[str, Any]:
    return {
        "id": new_id(),
        "store_id": p.store_id,
        "name": p.name,
        "description": p.description,
        "image_url": p.image_url,
        "price": p.price,
        "stock": p.stock,
        "sold_count": p.sold_count,
        "is_visible": True,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


__all__ = ("CommitSummary", "BulkInsertCommitter", "DEFAULT_CHUNK_SIZE")
