"""
Database configuration and session management.
Uses the SQLAlchemy 2.0 asyncio extension: every round-trip is awaited.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from shared.config.settings import DATABASE_URL, settings


def enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Open every SQLite transaction with BEGIN IMMEDIATE.

    The driver's own deferred BEGIN lets two writers read the same
    max(order_number) and then fail on lock upgrade. IMMEDIATE takes the
    write lock up front, so concurrent transactions queue on the busy timeout.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine for the given URL.

    PostgreSQL gets a sized, pre-pinged pool; SQLite (development and tests)
    gets a generous busy timeout and immediate write transactions.
    """
    if make_url(url).get_backend_name() == "sqlite":
        engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": 30},
        )
        enable_sqlite_immediate_transactions(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
        connect_args={"connect_timeout": 10},
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay readable after commit for response building."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine(DATABASE_URL, echo=settings.database_echo)
SessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/orders")
        async def list_orders(db: AsyncSession = Depends(get_db)):
            ...

    The session is closed (and any open transaction rolled back) after the request.
    """
    async with SessionLocal() as db:
        yield db


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions outside of FastAPI.

    Usage:
        async with get_db_context() as db:
            await seed(db)
    """
    async with SessionLocal() as db:
        yield db


async def safe_commit(db: AsyncSession) -> None:
    """
    Commit with automatic rollback on failure.

    Raises the original exception after rolling back.
    """
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
