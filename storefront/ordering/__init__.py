"""
Ordering — cart, inventory ledger, and atomic order placement.

    from storefront import ordering as O

    cart = O.CartService(session_factory)
    await cart.add_item(user_id, product_id, quantity=2)

    coordinator = O.OrderCoordinator(session_factory)
    match await coordinator.place_order(user_id):
        case Ok(order):
            ...
        case Error(O.InsufficientStockError() as e):
            ...
        case Error(e):
            ...
"""

from storefront.ordering._types import (
    CartLine,
    CartSnapshot,
    OrderStatus,
    OrderItem,
    Order,
    OrderErrorKind,
    EmptyCartError,
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    CartItemNotFoundError,
    TransactionFailedError,
    OrderError,
    CartError,
)
from storefront.ordering._ledger import StockShortfall, InventoryLedger
from storefront.ordering._cart import CartSnapshotReader, CartService
from storefront.ordering._coordinator import OrderCoordinator

__all__ = (
    # Types
    "CartLine",
    "CartSnapshot",
    "OrderStatus",
    "OrderItem",
    "Order",
    # Errors
    "OrderErrorKind",
    "EmptyCartError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "ProductNotFoundError",
    "CartItemNotFoundError",
    "TransactionFailedError",
    "OrderError",
    "CartError",
    # Components
    "StockShortfall",
    "InventoryLedger",
    "CartSnapshotReader",
    "CartService",
    "OrderCoordinator",
)
