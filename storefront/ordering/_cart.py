"""
Cart — snapshot reader and line mutation.
"""

from __future__ import annotations

from typing import Any, cast

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kungfu import Result, Ok, Error
from combinators import lift as L

from storefront._types import Clock, new_id, utcnow
from storefront.db import (
    CartItemTable,
    CartTable,
    ProductTable,
    SessionFactory,
    StoreTable,
    insert_ignoring_conflicts,
)
from storefront.ordering._types import (
    CartError,
    CartItemNotFoundError,
    CartLine,
    CartSnapshot,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    TransactionFailedError,
)

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Snapshot Reader
# ═══════════════════════════════════════════════════════════════════════════════


class CartSnapshotReader:
    """Loads a user's cart with each line's product price and stock at read time."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session = session_factory

    async def read(self, user_id: str) -> CartSnapshot | None:
        """Snapshot in a short read-only session. None if the user has no cart."""
        async with self._session() as session:
            return await self.read_in(session, user_id)

    async def read_in(self, session: AsyncSession, user_id: str) -> CartSnapshot | None:
        cart = (
            await session.execute(select(CartTable).where(CartTable.user_id == user_id))
        ).scalar_one_or_none()
        if cart is None:
            return None

        rows = await session.execute(
            select(CartItemTable, ProductTable)
            .join(ProductTable, ProductTable.id == CartItemTable.product_id)
            .where(CartItemTable.cart_id == cart.id)
            .order_by(CartItemTable.added_at, CartItemTable.id)
        )
        lines = tuple(
            CartLine(
                item_id=item.id,
                product_id=product.id,
                product_name=product.name,
                unit_price=product.price,
                stock=product.stock,
                quantity=item.quantity,
                added_at=item.added_at,
            )
            for item, product in rows.tuples()
        )
        return CartSnapshot(
            cart_id=cart.id,
            user_id=cart.user_id,
            lines=lines,
            updated_at=cart.updated_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Service — line mutation
# ═══════════════════════════════════════════════════════════════════════════════


class CartService:
    """
    Adds products to and removes them from a user's cart.

    Note: A cart holds at most one line per product. Adding a product that is
    already in the cart increases that line's quantity.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Clock = utcnow,
    ) -> None:
        self._session = session_factory
        self._clock = clock
        self._reader = CartSnapshotReader(session_factory)

    async def snapshot(
        self, user_id: str
    ) -> Result[CartSnapshot | None, TransactionFailedError]:
        """Current cart, or Ok(None) when the user has none yet."""
        match await L.catching_async(
            lambda: self._reader.read(user_id),
            on_error=lambda e: TransactionFailedError("Cart could not be loaded", e),
        ):
            case Ok(snapshot):
                return Ok(snapshot)
            case Error(failure):
                logger.error("Cart read failed", user_id=user_id, error=repr(failure.cause))
                return Error(failure)

    async def add_item(
        self,
        user_id: str,
        product_id: str,
        quantity: int,
    ) -> Result[CartLine, CartError]:
        if quantity <= 0:
            return Error(InvalidQuantityError(quantity))

        now = self._clock()
        try:
            async with self._session() as session:
                async with session.begin():
                    product = await self._sellable_product(session, product_id)
                    if product is None:
                        return Error(ProductNotFoundError(product_id))

                    cart_id = await self._ensure_cart(session, user_id, now)
                    current = (
                        await session.execute(
                            select(CartItemTable.quantity).where(
                                CartItemTable.cart_id == cart_id,
                                CartItemTable.product_id == product_id,
                            )
                        )
                    ).scalar_one_or_none() or 0

                    merged = current + quantity
                    if product.stock < merged:
                        return Error(
                            InsufficientStockError(
                                product_id=product.id,
                                product_name=product.name,
                                available=product.stock,
                                requested=merged,
                            )
                        )

                    item_id = await self._merge_line(
                        session, cart_id, product_id, quantity, now
                    )
                    await session.execute(
                        update(CartTable)
                        .where(CartTable.id == cart_id)
                        .values(updated_at=now)
                    )
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to add item to cart",
                user_id=user_id,
                product_id=product_id,
                error=str(e),
            )
            return Error(TransactionFailedError("Cart could not be updated", e))

        logger.info(
            "Cart item added",
            user_id=user_id,
            product_id=product_id,
            quantity=merged,
        )
        return Ok(
            CartLine(
                item_id=item_id,
                product_id=product.id,
                product_name=product.name,
                unit_price=product.price,
                stock=product.stock,
                quantity=merged,
                added_at=now,
            )
        )

    async def remove_item(
        self,
        user_id: str,
        product_id: str,
    ) -> Result[None, CartError]:
        """Drop the product's line from the user's cart."""
        now = self._clock()
        try:
            async with self._session() as session:
                async with session.begin():
                    cart_id = (
                        await session.execute(
                            select(CartTable.id).where(CartTable.user_id == user_id)
                        )
                    ).scalar_one_or_none()
                    if cart_id is None:
                        return Error(CartItemNotFoundError(product_id))

                    cursor = cast(
                        CursorResult[Any],
                        await session.execute(
                            delete(CartItemTable)
                            .where(
                                CartItemTable.cart_id == cart_id,
                                CartItemTable.product_id == product_id,
                            )
                            .execution_options(synchronize_session=False)
                        ),
                    )
                    if cursor.rowcount == 0:
                        return Error(CartItemNotFoundError(product_id))

                    await session.execute(
                        update(CartTable)
                        .where(CartTable.id == cart_id)
                        .values(updated_at=now)
                    )
        except SQLAlchemyError as e:
            logger.warning(
                "Failed to remove item from cart",
                user_id=user_id,
                product_id=product_id,
                error=str(e),
            )
            return Error(TransactionFailedError("Cart could not be updated", e))

        logger.info("Cart item removed", user_id=user_id, product_id=product_id)
        return Ok(None)

    async def _sellable_product(
        self, session: AsyncSession, product_id: str
    ) -> ProductTable | None:
        """Product that exists, is visible, and belongs to an active store."""
        result = await session.execute(
            select(ProductTable)
            .join(StoreTable, StoreTable.id == ProductTable.store_id)
            .where(
                ProductTable.id == product_id,
                ProductTable.is_visible.is_(True),
                StoreTable.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def _ensure_cart(self, session: AsyncSession, user_id: str, now: Any) -> str:
        """Find or create the user's cart. Returns the cart id."""
        await session.execute(
            insert_ignoring_conflicts(session, CartTable).values(
                id=new_id(), user_id=user_id, created_at=now, updated_at=now
            )
        )
        result = await session.execute(
            select(CartTable.id).where(CartTable.user_id == user_id)
        )
        return result.scalar_one()

    async def _merge_line(
        self,
        session: AsyncSession,
        cart_id: str,
        product_id: str,
        quantity: int,
        now: Any,
    ) -> str:
        """Increase an existing line or insert a new one. Returns the line id."""
        bump = (
            update(CartItemTable)
            .where(
                CartItemTable.cart_id == cart_id,
                CartItemTable.product_id == product_id,
            )
            .values(quantity=CartItemTable.quantity + quantity, added_at=now)
            .execution_options(synchronize_session=False)
        )
        cursor = cast(CursorResult[Any], await session.execute(bump))
        if cursor.rowcount == 0:
            await session.execute(
                insert_ignoring_conflicts(session, CartItemTable).values(
                    id=new_id(),
                    cart_id=cart_id,
                    product_id=product_id,
                    quantity=quantity,
                    added_at=now,
                )
            )
        result = await session.execute(
            select(CartItemTable.id).where(
                CartItemTable.cart_id == cart_id,
                CartItemTable.product_id == product_id,
            )
        )
        return result.scalar_one()


__all__ = ("CartSnapshotReader", "CartService")
