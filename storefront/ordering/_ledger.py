"""
Inventory ledger — stock and sold-count adjustments.

The ledger has no transaction boundary of its own: every method runs on the
caller's session, so a reservation commits or rolls back together with the
order that made it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error

from storefront.db import ProductTable


@dataclass(frozen=True, slots=True)
class StockShortfall:
    """Conditional decrement matched no row: stock < requested (or no product)."""

    product_id: str
    requested: int


class InventoryLedger:
    """
    Atomic conditional stock decrement.

    reserve() is a single statement:

        UPDATE products
           SET stock = stock - :q, sold_count = sold_count + :q
         WHERE id = :id AND stock >= :q

    Zero affected rows means the stock was not there at commit time, so two
    concurrent reservations can never drive stock below zero.
    """

    async def reserve(
        self,
        session: AsyncSession,
        product_id: str,
        quantity: int,
        *,
        now: datetime,
    ) -> Result[None, StockShortfall]:
        if quantity <= 0:
            raise ValueError(f"quantity must be positive, got {quantity}")

        stmt = (
            update(ProductTable)
            .where(ProductTable.id == product_id, ProductTable.stock >= quantity)
            .values(
                stock=ProductTable.stock - quantity,
                sold_count=ProductTable.sold_count + quantity,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await session.execute(stmt))
        if cursor.rowcount == 0:
            return Error(StockShortfall(product_id=product_id, requested=quantity))
        return Ok(None)

    async def available(self, session: AsyncSession, product_id: str) -> int | None:
        """Current stock, or None when the product does not exist."""
        result = await session.execute(
            select(ProductTable.stock).where(ProductTable.id == product_id)
        )
        return result.scalar_one_or_none()


__all__ = ("StockShortfall", "InventoryLedger")
