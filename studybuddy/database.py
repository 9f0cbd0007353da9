"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.
"""

from typing import Any

from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from studybuddy.config import get_settings

settings = get_settings()


def build_engine(database_url: str, *, echo: bool = False, busy_timeout_ms: int = 30000) -> AsyncEngine:
    """Create an async engine with the options each backend needs."""
    if database_url.startswith("sqlite"):
        # NullPool: every session gets its own connection, so concurrent
        # sessions are real concurrent SQLite writers serialized by file locks.
        engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL mode + foreign keys on every new SQLite connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            cursor.close()

        return engine

    # PostgreSQL settings with connection pooling
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = build_engine(
    settings.database_url,
    echo=settings.debug,
    busy_timeout_ms=settings.sqlite_busy_timeout_ms,
)

# Session factory
async_session_maker = build_session_maker(engine)


def dialect_insert(session: AsyncSession, model: Any):
    """
    Return a dialect-specific INSERT for ``model``.

    Both the PostgreSQL and SQLite constructs support
    ``on_conflict_do_nothing`` / ``on_conflict_do_update``, which the engine
    relies on for insert-if-absent rows and at-most-once badge awards.
    """
    dialect_name = session.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Conflict-aware inserts are not supported on {dialect_name}")


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    # Import Base from kernel models to ensure all models are registered
    from studybuddy.kernel.models import Base

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
