"""Database configuration and async session management."""

from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings


def engine_options(database_url: str) -> dict:
    """
    Engine keyword arguments for ``database_url``.

    In-memory SQLite shares one connection so every session sees the same
    database; file-backed SQLite waits for the write lock instead of failing
    fast, which the claim and negotiation compare-and-swap writes rely on.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {
            "pool_pre_ping": True,
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_recycle": settings.db_pool_recycle_seconds,
        }

    options = {
        "connect_args": {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        },
    }
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **engine_options(settings.database_url),
)

if engine.dialect.name == "sqlite":
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    Any exception escaping the request rolls the session back, so a failed
    operation never leaves a half-applied transition behind.
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create any missing tables; migrations remain the source of truth."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
