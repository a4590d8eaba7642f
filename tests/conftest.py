from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from storefront import db
from storefront._types import new_id
from storefront.db import (
    CartItemTable,
    CartTable,
    ImportJobTable,
    OrderTable,
    ProductTable,
    SessionFactory,
    StoreTable,
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def database(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits."""
    session_factory, engine = await db.create_database(
        f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}"
    )
    yield session_factory
    await engine.dispose()


class FrozenClock:
    def __init__(self, start: datetime = datetime(2024, 5, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@dataclass
class Seed:
    """Direct table writes for arranging test state."""

    session_factory: SessionFactory
    clock: FrozenClock

    async def store(self, owner_id: str = "owner-1", *, active: bool = True) -> str:
        store_id = new_id()
        async with self.session_factory() as session, session.begin():
            session.add(
                StoreTable(id=store_id, owner_id=owner_id, name=f"{owner_id}'s store", is_active=active)
            )
        return store_id

    async def product(
        self,
        store_id: str,
        name: str = "Widget",
        *,
        price: int = 1000,
        stock: int = 10,
        visible: bool = True,
    ) -> str:
        product_id = new_id()
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            session.add(
                ProductTable(
                    id=product_id,
                    store_id=store_id,
                    name=name,
                    price=price,
                    stock=stock,
                    sold_count=0,
                    is_visible=visible,
                    created_at=now,
                    updated_at=now,
                )
            )
        return product_id

    async def cart(self, user_id: str, *lines: tuple[str, int]) -> str:
        cart_id = new_id()
        now = self.clock()
        async with self.session_factory() as session, session.begin():
            session.add(CartTable(id=cart_id, user_id=user_id, created_at=now, updated_at=now))
            await session.flush()
            for offset, (product_id, quantity) in enumerate(lines):
                session.add(
                    CartItemTable(
                        id=new_id(),
                        cart_id=cart_id,
                        product_id=product_id,
                        quantity=quantity,
                        added_at=now + timedelta(seconds=offset),
                    )
                )
        return cart_id

    async def set_price(self, product_id: str, price: int) -> None:
        async with self.session_factory() as session, session.begin():
            product = await session.get(ProductTable, product_id)
            product.price = price

    # ═══════════════════════════════════════════════════════════════════════
    # Reads
    # ═══════════════════════════════════════════════════════════════════════

    async def stock(self, product_id: str) -> tuple[int, int]:
        """(stock, sold_count)"""
        async with self.session_factory() as session:
            product = await session.get(ProductTable, product_id)
            return product.stock, product.sold_count

    async def cart_quantities(self, user_id: str) -> dict[str, int]:
        async with self.session_factory() as session:
            rows = await session.execute(
                select(CartItemTable.product_id, CartItemTable.quantity)
                .join(CartTable, CartTable.id == CartItemTable.cart_id)
                .where(CartTable.user_id == user_id)
            )
            return dict(rows.tuples().all())

    async def order_count(self) -> int:
        async with self.session_factory() as session:
            return (await session.execute(select(func.count()).select_from(OrderTable))).scalar_one()

    async def products_in(self, store_id: str) -> dict[str, ProductTable]:
        async with self.session_factory() as session:
            rows = await session.execute(select(ProductTable).where(ProductTable.store_id == store_id))
            return {p.name: p for p in rows.scalars()}

    async def job(self, job_id: str) -> ImportJobTable:
        async with self.session_factory() as session:
            return await session.get(ImportJobTable, job_id)


@pytest.fixture
def seed(database, clock):
    return Seed(database, clock)
