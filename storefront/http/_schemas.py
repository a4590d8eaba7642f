"""
Wire schemas — pydantic models built from domain values.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from storefront.importing import JobStatusView, UploadReceipt
from storefront.ordering import CartLine, CartSnapshot, Order, OrderItem


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorOut(BaseModel):
    kind: str
    message: str

    @classmethod
    def from_domain(cls, error: Any) -> ErrorOut:
        return cls(kind=error.kind.name, message=error.message)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


class AddCartItemIn(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = 1


class CartLineOut(BaseModel):
    product_id: str
    product_name: str
    unit_price: int
    quantity: int
    line_total: int
    added_at: datetime

    @classmethod
    def from_domain(cls, line: CartLine) -> CartLineOut:
        return cls(
            product_id=line.product_id,
            product_name=line.product_name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
            added_at=line.added_at,
        )


class CartOut(BaseModel):
    items: list[CartLineOut]
    total: int
    total_items: int

    @classmethod
    def from_domain(cls, snapshot: CartSnapshot | None) -> CartOut:
        if snapshot is None:
            return cls(items=[], total=0, total_items=0)
        return cls(
            items=[CartLineOut.from_domain(line) for line in snapshot.lines],
            total=snapshot.total,
            total_items=snapshot.total_items,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════


class OrderItemOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: int

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            product_id=item.product_id,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )


class OrderOut(BaseModel):
    id: str
    total: int
    status: str
    items: list[OrderItemOut]
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            total=order.total,
            status=order.status.value,
            items=[OrderItemOut.from_domain(i) for i in order.items],
            created_at=order.created_at,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════════════════════


class FileInfoOut(BaseModel):
    url: str
    filename: str
    size: int


class UploadOut(BaseModel):
    success: bool = True
    job_id: str
    message: str = "CSV received and queued for processing"
    file_info: FileInfoOut

    @classmethod
    def from_domain(cls, receipt: UploadReceipt) -> UploadOut:
        return cls(
            job_id=receipt.job_id,
            file_info=FileInfoOut(
                url=receipt.file_url, filename=receipt.filename, size=receipt.size
            ),
        )


class JobStatusOut(BaseModel):
    job_id: str
    status: str
    progress: int
    total_rows: int
    processed_rows: int
    error_rows: int
    error_file_url: str | None

    @classmethod
    def from_domain(cls, view: JobStatusView) -> JobStatusOut:
        return cls(
            job_id=view.job_id,
            status=view.status.value,
            progress=view.progress,
            total_rows=view.total_rows,
            processed_rows=view.processed_rows,
            error_rows=view.error_rows,
            error_file_url=view.error_file_url,
        )


__all__ = (
    "ErrorOut",
    "AddCartItemIn",
    "CartLineOut",
    "CartOut",
    "OrderItemOut",
    "OrderOut",
    "FileInfoOut",
    "UploadOut",
    "JobStatusOut",
)
