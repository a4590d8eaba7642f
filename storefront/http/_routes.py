"""
Routes — orders, cart, CSV upload, job status.

Every domain error becomes a JSON body `{"kind": ..., "message": ...}` with the
status code its kind maps to.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from kungfu import Ok, Error

from storefront._services import Services
from storefront.http._identity import AuthErrorKind, IdentityResolver
from storefront.http._schemas import (
    AddCartItemIn,
    CartLineOut,
    CartOut,
    ErrorOut,
    JobStatusOut,
    OrderOut,
    UploadOut,
)
from storefront.importing import ImportErrorKind, InvalidFileError
from storefront.ordering import OrderErrorKind


# ═══════════════════════════════════════════════════════════════════════════════
# Errors → HTTP
# ═══════════════════════════════════════════════════════════════════════════════

type ErrorKind = OrderErrorKind | ImportErrorKind | AuthErrorKind

STATUS_BY_KIND: dict[ErrorKind, int] = {
    OrderErrorKind.EMPTY_CART: 400,
    OrderErrorKind.INVALID_QUANTITY: 400,
    OrderErrorKind.PRODUCT_NOT_FOUND: 404,
    OrderErrorKind.CART_ITEM_NOT_FOUND: 404,
    OrderErrorKind.INSUFFICIENT_STOCK: 409,
    OrderErrorKind.TRANSACTION_FAILED: 409,
    ImportErrorKind.INVALID_FILE: 400,
    ImportErrorKind.MALFORMED_CSV: 400,
    ImportErrorKind.NO_STORE: 400,
    ImportErrorKind.JOB_NOT_FOUND: 404,
    ImportErrorKind.SOURCE_UNAVAILABLE: 503,
    AuthErrorKind.UNAUTHENTICATED: 401,
}


class ApiError(Exception):
    """Raised by handlers and dependencies; rendered by the app's handler."""

    def __init__(self, status_code: int, body: ErrorOut) -> None:
        super().__init__(body.message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_domain(cls, error: Any) -> "ApiError":
        status = STATUS_BY_KIND.get(error.kind, 500)
        if isinstance(error, InvalidFileError) and error.too_large:
            status = 413
        return cls(status, ErrorOut.from_domain(error))


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body.model_dump())


# ═══════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═══════════════════════════════════════════════════════════════════════════════


def get_services(request: Request) -> Services:
    return request.app.state.services


def current_user(request: Request) -> str:
    resolver: IdentityResolver = request.app.state.identity
    match resolver.resolve(request):
        case Ok(user_id):
            return user_id
        case Error(e):
            raise ApiError.from_domain(e)


ServicesDep = Annotated[Services, Depends(get_services)]
UserDep = Annotated[str, Depends(current_user)]


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderOut)
async def place_order(services: ServicesDep, user_id: UserDep) -> OrderOut:
    match await services.orders.place_order(user_id):
        case Ok(order):
            return OrderOut.from_domain(order)
        case Error(e):
            raise ApiError.from_domain(e)


@order_router.get("", response_model=list[OrderOut])
async def list_orders(services: ServicesDep, user_id: UserDep) -> list[OrderOut]:
    match await services.orders.list_orders(user_id):
        case Ok(orders):
            return [OrderOut.from_domain(o) for o in orders]
        case Error(e):
            raise ApiError.from_domain(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartOut)
async def get_cart(services: ServicesDep, user_id: UserDep) -> CartOut:
    match await services.cart.snapshot(user_id):
        case Ok(snapshot):
            return CartOut.from_domain(snapshot)
        case Error(e):
            raise ApiError.from_domain(e)


@cart_router.post("/items", status_code=201, response_model=CartLineOut)
async def add_cart_item(
    body: AddCartItemIn, services: ServicesDep, user_id: UserDep
) -> CartLineOut:
    match await services.cart.add_item(user_id, body.product_id, body.quantity):
        case Ok(line):
            return CartLineOut.from_domain(line)
        case Error(e):
            raise ApiError.from_domain(e)


@cart_router.delete("/items/{product_id}", status_code=204)
async def remove_cart_item(product_id: str, services: ServicesDep, user_id: UserDep) -> None:
    match await services.cart.remove_item(user_id, product_id):
        case Ok(_):
            return None
        case Error(e):
            raise ApiError.from_domain(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Upload
# ═══════════════════════════════════════════════════════════════════════════════

upload_router = APIRouter(prefix="/upload", tags=["upload"])


async def read_body_limited(request: Request, limit: int) -> bytes:
    """Request body, or 413 as soon as it grows past limit."""
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise ApiError.from_domain(
            InvalidFileError(f"File exceeds {limit} bytes", too_large=True)
        )
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise ApiError.from_domain(
                InvalidFileError(f"File exceeds {limit} bytes", too_large=True)
            )
        chunks.append(chunk)
    return b"".join(chunks)


@upload_router.post("/csv", status_code=202, response_model=UploadOut)
async def upload_csv(
    request: Request,
    services: ServicesDep,
    user_id: UserDep,
    filename: Annotated[str, Query(min_length=1)],
) -> UploadOut:
    data = await read_body_limited(request, services.settings.max_upload_bytes)
    if not data:
        raise ApiError.from_domain(InvalidFileError("No file sent"))

    match await services.imports.upload_and_import(
        user_id, data, filename, request.headers.get("content-type")
    ):
        case Ok(receipt):
            return UploadOut.from_domain(receipt)
        case Error(e):
            raise ApiError.from_domain(e)


@upload_router.get("/jobs/{job_id}", response_model=JobStatusOut)
async def job_status(job_id: str, services: ServicesDep, user_id: UserDep) -> JobStatusOut:
    match await services.imports.get_job_status(job_id, user_id=user_id):
        case Ok(view):
            return JobStatusOut.from_domain(view)
        case Error(e):
            raise ApiError.from_domain(e)


__all__ = (
    "ApiError",
    "api_error_handler",
    "STATUS_BY_KIND",
    "get_services",
    "current_user",
    "order_router",
    "cart_router",
    "upload_router",
)
