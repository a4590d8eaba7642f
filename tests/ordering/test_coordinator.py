import asyncio
from dataclasses import replace

import pytest
from kungfu import Ok
from sqlalchemy.exc import SQLAlchemyError

from storefront.ordering import (
    CartService,
    CartSnapshotReader,
    EmptyCartError,
    InsufficientStockError,
    OrderCoordinator,
    OrderErrorKind,
    OrderStatus,
    TransactionFailedError,
)
from tests.helpers import err, ok

pytestmark = pytest.mark.anyio


class StaleLineReader(CartSnapshotReader):
    """Reports a cart line that no longer exists when the order commits."""

    async def read(self, user_id):
        snapshot = await super().read(user_id)
        first = replace(snapshot.lines[0], item_id="gone")
        return replace(snapshot, lines=(first, *snapshot.lines[1:]))


class AddWhileOrderingReader(CartSnapshotReader):
    """Adds one more unit of the first line right after the snapshot is taken."""

    def __init__(self, session_factory, clock):
        super().__init__(session_factory)
        self.cart = CartService(session_factory, clock=clock)

    async def read(self, user_id):
        snapshot = await super().read(user_id)
        ok(await self.cart.add_item(user_id, snapshot.lines[0].product_id, 1))
        return snapshot


def unreachable_database():
    raise SQLAlchemyError("database is down")


class TestPlaceOrder:
    async def test_converts_cart_into_order(self, database, seed, clock):
        store = await seed.store()
        a = await seed.product(store, "A", price=250, stock=10)
        b = await seed.product(store, "B", price=1999, stock=3)
        await seed.cart("u1", (a, 4), (b, 1))

        order = ok(await OrderCoordinator(database, clock=clock).place_order("u1"))

        assert order.total == 4 * 250 + 1999
        assert order.status is OrderStatus.COMPLETED
        assert [(i.product_name, i.quantity, i.unit_price) for i in order.items] == [
            ("A", 4, 250),
            ("B", 1, 1999),
        ]
        assert await seed.stock(a) == (6, 4)
        assert await seed.stock(b) == (2, 1)
        assert await seed.cart_quantities("u1") == {}

    async def test_missing_cart_is_empty(self, database):
        error = err(await OrderCoordinator(database).place_order("nobody"))

        assert isinstance(error, EmptyCartError)
        assert error.kind is OrderErrorKind.EMPTY_CART
        assert error.message == "Cart is empty"

    async def test_cart_without_items_is_empty(self, database, seed):
        await seed.cart("u1")

        error = err(await OrderCoordinator(database).place_order("u1"))

        assert isinstance(error, EmptyCartError)

    async def test_insufficient_stock_changes_nothing(self, database, seed, clock):
        store = await seed.store()
        plenty = await seed.product(store, "Plenty", stock=10)
        scarce = await seed.product(store, "Scarce", stock=1)
        await seed.cart("u1", (plenty, 2), (scarce, 3))

        error = err(await OrderCoordinator(database, clock=clock).place_order("u1"))

        assert isinstance(error, InsufficientStockError)
        assert (error.product_name, error.available, error.requested) == ("Scarce", 1, 3)
        assert await seed.stock(plenty) == (10, 0)
        assert await seed.stock(scarce) == (1, 0)
        assert await seed.cart_quantities("u1") == {plenty: 2, scarce: 3}
        assert await seed.order_count() == 0

    async def test_failure_after_reservation_rolls_everything_back(self, database, seed, clock):
        store = await seed.store()
        a = await seed.product(store, "A", stock=5)
        b = await seed.product(store, "B", stock=5)
        await seed.cart("u1", (a, 1), (b, 2))
        coordinator = OrderCoordinator(database, reader=StaleLineReader(database), clock=clock)

        error = err(await coordinator.place_order("u1"))

        assert isinstance(error, TransactionFailedError)
        assert error.kind is OrderErrorKind.TRANSACTION_FAILED
        assert await seed.stock(a) == (5, 0)
        assert await seed.stock(b) == (5, 0)
        assert await seed.cart_quantities("u1") == {a: 1, b: 2}
        assert await seed.order_count() == 0

    async def test_order_keeps_snapshot_prices(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, price=500, stock=5)
        await seed.cart("u1", (product, 2))
        coordinator = OrderCoordinator(database, clock=clock)

        placed = ok(await coordinator.place_order("u1"))
        await seed.set_price(product, 9999)
        [listed] = ok(await coordinator.list_orders("u1"))

        assert listed.id == placed.id
        assert listed.total == 1000
        assert listed.items[0].unit_price == 500

    async def test_second_placement_finds_empty_cart(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, stock=5)
        await seed.cart("u1", (product, 1))
        coordinator = OrderCoordinator(database, clock=clock)

        ok(await coordinator.place_order("u1"))

        assert isinstance(err(await coordinator.place_order("u1")), EmptyCartError)
        assert await seed.stock(product) == (4, 1)

    async def test_units_added_after_the_snapshot_are_not_lost(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, stock=10)
        await seed.cart("u1", (product, 2))
        reader = AddWhileOrderingReader(database, clock)

        error = err(await OrderCoordinator(database, reader=reader, clock=clock).place_order("u1"))

        assert isinstance(error, TransactionFailedError)
        assert error.message == "Cart changed while placing the order"
        assert await seed.cart_quantities("u1") == {product: 3}
        assert await seed.stock(product) == (10, 0)
        assert await seed.order_count() == 0


class TestConcurrentPlacement:
    async def test_only_one_of_two_orders_for_the_whole_stock_succeeds(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, "Last ones", stock=3)
        await seed.cart("u1", (product, 3))
        await seed.cart("u2", (product, 3))
        coordinator = OrderCoordinator(database, clock=clock)

        results = await asyncio.gather(
            coordinator.place_order("u1"),
            coordinator.place_order("u2"),
        )

        successes = [r for r in results if _is_ok(r)]
        failures = [err(r) for r in results if not _is_ok(r)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientStockError)
        assert failures[0].available == 0
        assert await seed.stock(product) == (0, 3)
        assert await seed.order_count() == 1

    async def test_stock_never_goes_negative_under_contention(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, stock=5)
        users = [f"u{n}" for n in range(8)]
        for user in users:
            await seed.cart(user, (product, 1))
        coordinator = OrderCoordinator(database, clock=clock)

        results = await asyncio.gather(*(coordinator.place_order(u) for u in users))

        assert sum(1 for r in results if _is_ok(r)) == 5
        assert await seed.stock(product) == (0, 5)


class TestListOrders:
    async def test_newest_first(self, database, seed, clock):
        store = await seed.store()
        product = await seed.product(store, stock=10)
        coordinator = OrderCoordinator(database, clock=clock)

        await seed.cart("u1", (product, 1))
        first = ok(await coordinator.place_order("u1"))
        clock.advance(minutes=5)
        await _refill(seed, database, "u1", product)
        second = ok(await coordinator.place_order("u1"))

        assert [o.id for o in ok(await coordinator.list_orders("u1"))] == [second.id, first.id]
        assert ok(await coordinator.list_orders("u2")) == []

    async def test_storage_failure_is_a_transaction_failure(self):
        error = err(await OrderCoordinator(unreachable_database).list_orders("u1"))

        assert isinstance(error, TransactionFailedError)
        assert error.message == "Orders could not be loaded"


def _is_ok(result) -> bool:
    return isinstance(result, Ok)


async def _refill(seed, database, user_id, product_id):
    ok(await CartService(database, clock=seed.clock).add_item(user_id, product_id, 1))
