"""
Database setup — async engine, session factory, dialect helpers.
"""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from storefront.db._tables import Base


type SessionFactory = async_sessionmaker[AsyncSession]


# ═══════════════════════════════════════════════════════════════════════════════
# Engine / Sessions
# ═══════════════════════════════════════════════════════════════════════════════

def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Create async engine.

    Note: SQLite writers wait on the database lock instead of failing fast,
    so concurrent order placements serialize on the conditional stock update.
    """
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite"):
        connect_args["timeout"] = 30
    return create_async_engine(url, echo=echo, connect_args=connect_args)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def create_database(
    url: str = "sqlite+aiosqlite:///./storefront.db",
) -> tuple[SessionFactory, AsyncEngine]:
    """Create database and return (session_factory, engine)."""
    engine = create_engine(url)
    await create_schema(engine)
    return async_sessionmaker(engine, expire_on_commit=False), engine


# ═══════════════════════════════════════════════════════════════════════════════
# Dialect helpers
# ═══════════════════════════════════════════════════════════════════════════════

def insert_ignoring_conflicts(session: AsyncSession, table: Any) -> Any:
    """
    INSERT ... ON CONFLICT DO NOTHING for the session's dialect.

    Rows colliding with any unique constraint are skipped, not failed.
    """
    bind = session.bind
    dialect = bind.dialect.name if bind is not None else "sqlite"
    match dialect:
        case "postgresql":
            return postgresql.insert(table).on_conflict_do_nothing()
        case "sqlite":
            return sqlite.insert(table).on_conflict_do_nothing()
        case _:
            raise NotImplementedError(f"Conflict-skipping insert not supported on {dialect}")


__all__ = (
    "SessionFactory",
    "create_engine",
    "create_schema",
    "create_database",
    "insert_ignoring_conflicts",
)
