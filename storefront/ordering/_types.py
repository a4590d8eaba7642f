"""
Ordering types — cart snapshots, orders, and the errors order placement reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Cart Snapshot — read at checkout time
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CartLine:
    """
    One cart line joined with the product as it was when read.

    Note: unit_price and stock are the snapshot values. The order is priced
    from unit_price and never re-reads the live product price.
    """

    item_id: str
    product_id: str
    product_name: str
    unit_price: int
    stock: int
    quantity: int
    added_at: datetime

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartSnapshot:
    cart_id: str
    user_id: str
    lines: tuple[CartLine, ...]
    updated_at: datetime

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total(self) -> int:
        return sum(line.line_total for line in self.lines)

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════


class OrderStatus(Enum):
    COMPLETED = "COMPLETED"


@dataclass(frozen=True, slots=True)
class OrderItem:
    product_id: str
    product_name: str
    quantity: int
    unit_price: int

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Order:
    """Placed order. Total and unit prices are frozen at creation."""

    id: str
    user_id: str
    total: int
    status: OrderStatus
    items: tuple[OrderItem, ...]
    created_at: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════


class OrderErrorKind(Enum):
    """Kinds of ordering errors."""

    EMPTY_CART = auto()  # No cart, or cart without items
    INSUFFICIENT_STOCK = auto()  # A line asks for more than is in stock
    INVALID_QUANTITY = auto()  # Non-positive quantity
    PRODUCT_NOT_FOUND = auto()  # Missing, hidden, or in an inactive store
    CART_ITEM_NOT_FOUND = auto()  # Product is not in the user's cart
    TRANSACTION_FAILED = auto()  # Unit of work aborted and rolled back


@dataclass(frozen=True, slots=True)
class EmptyCartError:
    user_id: str

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.EMPTY_CART

    @property
    def message(self) -> str:
        return "Cart is empty"


@dataclass(frozen=True, slots=True)
class InsufficientStockError:
    product_id: str
    product_name: str
    available: int
    requested: int

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.INSUFFICIENT_STOCK

    @property
    def message(self) -> str:
        return (
            f'Product "{self.product_name}" does not have enough stock. '
            f"Available: {self.available}, requested: {self.requested}"
        )


@dataclass(frozen=True, slots=True)
class InvalidQuantityError:
    quantity: int

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.INVALID_QUANTITY

    @property
    def message(self) -> str:
        return "Quantity must be greater than zero"


@dataclass(frozen=True, slots=True)
class ProductNotFoundError:
    product_id: str

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.PRODUCT_NOT_FOUND

    @property
    def message(self) -> str:
        return f"Product {self.product_id} not found"


@dataclass(frozen=True, slots=True)
class CartItemNotFoundError:
    product_id: str

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.CART_ITEM_NOT_FOUND

    @property
    def message(self) -> str:
        return "Item not found in cart"


@dataclass(frozen=True, slots=True)
class TransactionFailedError:
    """
    The unit of work was rolled back.

    Note: cause is kept for logging; callers only see message.
    """

    message: str
    cause: Exception | None = None

    @property
    def kind(self) -> OrderErrorKind:
        return OrderErrorKind.TRANSACTION_FAILED


type OrderError = EmptyCartError | InsufficientStockError | TransactionFailedError
type CartError = (
    InvalidQuantityError
    | ProductNotFoundError
    | CartItemNotFoundError
    | InsufficientStockError
    | TransactionFailedError
)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "CartLine",
    "CartSnapshot",
    "OrderStatus",
    "OrderItem",
    "Order",
    "OrderErrorKind",
    "EmptyCartError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "ProductNotFoundError",
    "CartItemNotFoundError",
    "TransactionFailedError",
    "OrderError",
    "CartError",
)
