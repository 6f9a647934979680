"""
core/database.py -- Async SQLAlchemy engine factory and shared schema metadata.

Every store (auth/store.py, testimonials/store.py, projects/store.py) declares
its Table objects against the single `metadata` defined here, so one call to
init_schema() creates the whole schema on one engine.

Pattern: SQLAlchemy Core (Table + bound parameters) on an AsyncEngine. Each
store method opens a short-lived connection from the pool, so there is no
in-process shared mutable state beyond the pool itself.

Uniqueness (users.email, projects.slug) is declared as UNIQUE constraints.
Stores translate the resulting IntegrityError into typed ConflictErrors --
the database is the final arbiter when two requests race.

Layer rule: core/ is the kernel. The only upward reference is the deferred
import in init_schema(), which registers the store tables on `metadata`.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import MetaData, event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

metadata = MetaData()


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign keys on every new SQLite connection.

    SQLite PRAGMAs are per-connection, so they must be set each time the pool
    opens a new one.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    """Build an AsyncEngine for db_url.

    SQLite URLs get the per-connection PRAGMA listener; other backends are
    used as configured.
    """
    engine = create_async_engine(db_url, echo=echo)
    if db_url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)
    return engine


async def init_schema(engine: AsyncEngine) -> None:
    """Create all tables registered on `metadata`. Idempotent."""
    # Import the stores so their Table definitions are registered.
    import auth.store  # noqa: F401
    import projects.store  # noqa: F401
    import testimonials.store  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Return value as an aware UTC datetime.

    SQLite's DateTime storage drops tzinfo, so values read back are naive.
    They were written as UTC, so re-attaching UTC is lossless.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
