"""
Order Transaction Coordinator — cart → order, atomically.

    coordinator = OrderCoordinator(session_factory)

    match await coordinator.place_order(user_id):
        case Ok(order):
            print(order.id, order.total)
        case Error(e):
            print(e.kind, e.message)

Steps run strictly in order:

    1. snapshot the cart                      → EmptyCartError
    2. check stock against the snapshot       → InsufficientStockError
    3. total = Σ snapshot price × quantity
    4. one transaction:
         reserve stock per line (conditional decrement)
         insert order + items (snapshot unit prices)
         delete the snapshot's cart lines, touch cart.updated_at
    5. any failure inside 4 rolls everything back

Step 2 is a fast path only. The authoritative check is the conditional
decrement in step 4, which is what keeps concurrent orders from driving
stock negative.
"""

from __future__ import annotations

from typing import Any, cast

import structlog
from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from kungfu import Result, Ok, Error
from combinators import lift as L

from storefront._types import Clock, new_id, utcnow
from storefront.db import (
    CartItemTable,
    CartTable,
    OrderItemTable,
    OrderTable,
    SessionFactory,
)
from storefront.ordering._cart import CartSnapshotReader
from storefront.ordering._ledger import InventoryLedger
from storefront.ordering._types import (
    CartLine,
    CartSnapshot,
    EmptyCartError,
    InsufficientStockError,
    Order,
    OrderError,
    OrderItem,
    OrderStatus,
    TransactionFailedError,
)

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Rollback signals
# ═══════════════════════════════════════════════════════════════════════════════


class _StockShortfall(Exception):
    def __init__(self, line: CartLine) -> None:
        super().__init__(line.product_id)
        self.line = line


class _CartChanged(Exception):
    pass


def _as_failure(e: Exception) -> _StockShortfall | TransactionFailedError:
    match e:
        case _StockShortfall():
            return e
        case _CartChanged():
            return TransactionFailedError("Cart changed while placing the order", e)
        case _:
            return TransactionFailedError("Order could not be placed", e)


# ═══════════════════════════════════════════════════════════════════════════════
# Coordinator
# ═══════════════════════════════════════════════════════════════════════════════


class OrderCoordinator:
    """
    Converts a user's cart into an order.

    Note: No retries. A failed placement leaves store state untouched and the
    caller may resubmit.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        ledger: InventoryLedger | None = None,
        reader: CartSnapshotReader | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._session = session_factory
        self._ledger = ledger or InventoryLedger()
        self._reader = reader or CartSnapshotReader(session_factory)
        self._clock = clock

    async def place_order(self, user_id: str) -> Result[Order, OrderError]:
        log = logger.bind(user_id=user_id)

        # 1. Snapshot
        try:
            snapshot = await self._reader.read(user_id)
        except SQLAlchemyError as e:
            log.exception("Cart snapshot failed")
            return Error(TransactionFailedError("Order could not be placed", e))
        if snapshot is None or snapshot.is_empty:
            return Error(EmptyCartError(user_id))

        # 2. Stock check against the snapshot
        for line in snapshot.lines:
            if line.stock < line.quantity:
                return Error(
                    InsufficientStockError(
                        product_id=line.product_id,
                        product_name=line.product_name,
                        available=line.stock,
                        requested=line.quantity,
                    )
                )

        # 3–5. Atomic unit
        now = self._clock()
        match await L.catching_async(
            lambda: self._commit(snapshot, now),
            on_error=_as_failure,
        ):
            case Ok(order):
                log.info(
                    "Order placed",
                    order_id=order.id,
                    total=order.total,
                    lines=len(order.items),
                )
                return Ok(order)
            case Error(_StockShortfall(line=line)):
                available = await self._available_after_rollback(line)
                log.info(
                    "Order rejected at commit: stock taken concurrently",
                    product_id=line.product_id,
                    available=available,
                    requested=line.quantity,
                )
                return Error(
                    InsufficientStockError(
                        product_id=line.product_id,
                        product_name=line.product_name,
                        available=available,
                        requested=line.quantity,
                    )
                )
            case Error(TransactionFailedError() as failure):
                log.error(
                    "Order transaction rolled back",
                    reason=failure.message,
                    error=repr(failure.cause),
                )
                return Error(failure)
            case _:
                raise AssertionError("unreachable")

    async def list_orders(self, user_id: str) -> Result[list[Order], TransactionFailedError]:
        """User's orders, newest first, with items."""
        match await L.catching_async(
            lambda: self._load_orders(user_id),
            on_error=lambda e: TransactionFailedError("Orders could not be loaded", e),
        ):
            case Ok(orders):
                return Ok(orders)
            case Error(failure):
                logger.error("Order listing failed", user_id=user_id, error=repr(failure.cause))
                return Error(failure)

    async def _load_orders(self, user_id: str) -> list[Order]:
        async with self._session() as session:
            result = await session.execute(
                select(OrderTable)
                .where(OrderTable.user_id == user_id)
                .options(selectinload(OrderTable.items))
                .order_by(OrderTable.created_at.desc(), OrderTable.id)
            )
            return [_to_order(row) for row in result.scalars()]

    # ═══════════════════════════════════════════════════════════════════════════
    # Transaction body
    # ═══════════════════════════════════════════════════════════════════════════

    async def _commit(self, snapshot: CartSnapshot, now: Any) -> Order:
        order_id = new_id()
        items = tuple(
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
            )
            for line in snapshot.lines
        )

        async with self._session() as session:
            async with session.begin():
                # The first statement is a write, so on SQLite the whole unit
                # holds the write lock from here to commit.
                for line in snapshot.lines:
                    match await self._ledger.reserve(
                        session, line.product_id, line.quantity, now=now
                    ):
                        case Ok(_):
                            pass
                        case Error(_):
                            raise _StockShortfall(line)

                session.add(
                    OrderTable(
                        id=order_id,
                        user_id=snapshot.user_id,
                        total=snapshot.total,
                        status=OrderStatus.COMPLETED.value,
                        created_at=now,
                    )
                )
                session.add_all(
                    OrderItemTable(
                        id=new_id(),
                        order_id=order_id,
                        product_id=item.product_id,
                        product_name=item.product_name,
                        position=position,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                    )
                    for position, item in enumerate(items)
                )
                await session.flush()

                await self._clear_snapshot_lines(session, snapshot, now)

        return Order(
            id=order_id,
            user_id=snapshot.user_id,
            total=snapshot.total,
            status=OrderStatus.COMPLETED,
            items=items,
            created_at=now,
        )

    async def _clear_snapshot_lines(
        self, session: AsyncSession, snapshot: CartSnapshot, now: Any
    ) -> None:
        """
        Delete exactly the lines that were ordered, at the ordered quantity.

        Note: A line that vanished or changed quantity since the snapshot
        means the cart moved underneath us; the whole unit is rolled back.
        """
        cursor = cast(
            CursorResult[Any],
            await session.execute(
                delete(CartItemTable)
                .where(
                    or_(
                        *(
                            and_(
                                CartItemTable.id == line.item_id,
                                CartItemTable.quantity == line.quantity,
                            )
                            for line in snapshot.lines
                        )
                    )
                )
                .execution_options(synchronize_session=False)
            ),
        )
        if cursor.rowcount != len(snapshot.lines):
            raise _CartChanged()

        await session.execute(
            update(CartTable)
            .where(CartTable.id == snapshot.cart_id)
            .values(updated_at=now)
        )

    async def _available_after_rollback(self, line: CartLine) -> int:
        try:
            async with self._session() as session:
                available = await self._ledger.available(session, line.product_id)
        except SQLAlchemyError:
            logger.warning("Stock re-read failed", product_id=line.product_id)
            return 0
        return available or 0


def _to_order(row: OrderTable) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        total=row.total,
        status=OrderStatus(row.status),
        items=tuple(
            OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
            )
            for item in row.items
        ),
        created_at=row.created_at,
    )


__all__ = ("OrderCoordinator",)
