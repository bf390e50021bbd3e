"""Async SQLAlchemy engine and session factory builders.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection
pooling, AsyncSession for per-operation database access. The SQL message
store owns its engine, so tests can point it at a throwaway SQLite file.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine. Server databases get a bounded pool (5 + 15)."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=15,
        pool_pre_ping=True,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory — each store operation gets its own session."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
