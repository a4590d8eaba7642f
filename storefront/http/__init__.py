"""
HTTP — FastAPI surface over ordering and importing.

    from storefront.http import create_app

    app = create_app()          # settings from STOREFRONT_* variables

    POST /orders                place an order from the caller's cart
    GET  /orders                the caller's orders, newest first
    GET  /cart                  the caller's cart
    POST /cart/items            add a product to the cart
    DELETE /cart/items/{id}    remove a product from the cart
    POST /upload/csv?filename=  raw CSV body; returns a job id at once
    GET  /upload/jobs/{job_id}  poll an import job
"""

from storefront.http._identity import (
    AuthErrorKind,
    Unauthenticated,
    IdentityResolver,
    HeaderIdentityResolver,
)
from storefront.http._routes import ApiError, STATUS_BY_KIND
from storefront.http._app import create_app

__all__ = (
    "AuthErrorKind",
    "Unauthenticated",
    "IdentityResolver",
    "HeaderIdentityResolver",
    "ApiError",
    "STATUS_BY_KIND",
    "create_app",
)
