"""
Services — the object graph, wired once from Settings.

    services = await build_services(Settings.from_env())
    async with services.running():
        ...

Everything that touches the database receives the session factory from here;
nothing opens its own connection.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from storefront._config import Settings
from storefront._types import Clock, utcnow
from storefront.blob import BlobStore, LocalBlobStore
from storefront.db import SessionFactory, create_engine, create_schema
from storefront.importing import ImportJobController, ImportQueue, ImportService
from storefront.ordering import CartService, OrderCoordinator


@dataclass(frozen=True, slots=True)
class Services:
    settings: Settings
    engine: AsyncEngine
    session_factory: SessionFactory
    blobs: BlobStore
    cart: CartService
    orders: OrderCoordinator
    controller: ImportJobController
    queue: ImportQueue
    imports: ImportService

    @asynccontextmanager
    async def running(self) -> AsyncIterator[Services]:
        """Import workers up for the duration of the block."""
        await self.queue.start()
        try:
            yield self
        finally:
            await self.queue.stop()

    async def close(self) -> None:
        if self.queue.running:
            await self.queue.stop()
        await self.engine.dispose()


async def build_services(
    settings: Settings,
    *,
    blobs: BlobStore | None = None,
    clock: Clock = utcnow,
    create_tables: bool = True,
) -> Services:
    engine = create_engine(settings.database_url)
    if create_tables:
        await create_schema(engine)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    blobs = blobs or LocalBlobStore(settings.blob_root, settings.blob_base_url)

    controller = ImportJobController(session_factory, blobs, clock=clock)
    queue = ImportQueue(
        controller,
        workers=settings.import_workers,
        max_attempts=settings.import_max_attempts,
    )
    return Services(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        blobs=blobs,
        cart=CartService(session_factory, clock=clock),
        orders=OrderCoordinator(session_factory, clock=clock),
        controller=controller,
        queue=queue,
        imports=ImportService(
            session_factory,
            blobs,
            queue,
            clock=clock,
            max_upload_bytes=settings.max_upload_bytes,
        ),
    )


__all__ = ("Services", "build_services")
