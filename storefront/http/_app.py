"""
App factory.

    app = create_app(Settings.from_env())

    # uvicorn storefront.http:create_app --factory

With prebuilt services (tests, embedding) the caller owns their lifecycle;
otherwise the app builds them on startup and disposes of them on shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from storefront._config import Settings
from storefront._logging import configure_logging
from storefront._services import Services, build_services
from storefront.http._identity import HeaderIdentityResolver, IdentityResolver
from storefront.http._routes import (
    ApiError,
    api_error_handler,
    cart_router,
    order_router,
    upload_router,
)

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    services: Services | None = None,
    identity: IdentityResolver | None = None,
) -> FastAPI:
    if settings is None:
        settings = services.settings if services is not None else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            started_here = not services.queue.running
            await services.queue.start()
            try:
                yield
            finally:
                if started_here:
                    await services.queue.stop()
            return

        configure_logging(settings.log_level, json=settings.log_json)
        owned = await build_services(settings)
        app.state.services = owned
        await owned.queue.start()
        logger.info("Storefront started", database=settings.database_url)
        try:
            yield
        finally:
            await owned.close()
            logger.info("Storefront stopped")

    app = FastAPI(
        title="Storefront API",
        description="Order placement and bulk CSV product import",
        lifespan=lifespan,
    )
    app.state.identity = identity or HeaderIdentityResolver(settings.identity_header)
    if services is not None:
        app.state.services = services

    app.add_exception_handler(ApiError, api_error_handler)
    app.include_router(order_router)
    app.include_router(cart_router)
    app.include_router(upload_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


__all__ = ("create_app",)
