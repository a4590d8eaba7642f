"""
DB — relational store: tables, engine, session factory.

    from storefront import db

    session_factory, engine = await db.create_database("sqlite+aiosqlite:///./shop.db")

The session factory is passed explicitly to every component that needs the
store; there is no module-level connection.
"""

from storefront.db._tables import (
    Base,
    StoreTable,
    ProductTable,
    CartTable,
    CartItemTable,
    OrderTable,
    OrderItemTable,
    ImportJobTable,
)
from storefront.db._database import (
    SessionFactory,
    create_engine,
    create_schema,
    create_database,
    insert_ignoring_conflicts,
)

__all__ = (
    # Tables
    "Base",
    "StoreTable",
    "ProductTable",
    "CartTable",
    "CartItemTable",
    "OrderTable",
    "OrderItemTable",
    "ImportJobTable",
    # Setup
    "SessionFactory",
    "create_engine",
    "create_schema",
    "create_database",
    "insert_ignoring_conflicts",
)
