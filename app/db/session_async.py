# app/db/session_async.py
"""Async SQLAlchemy session utilities."""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.db.session import Base, configure_sqlite_connections


def build_async_engine(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an AsyncEngine with the same connection rules as the sync one."""
    kwargs.setdefault("pool_pre_ping", True)
    engine = create_async_engine(url, **kwargs)
    configure_sqlite_connections(engine.sync_engine)
    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


async_engine: AsyncEngine = build_async_engine(settings.ASYNC_DATABASE_URL)

AsyncSessionLocal = build_sessionmaker(async_engine)


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create missing tables. Schema migrations are out of scope for this service."""
    import app.models.cart  # noqa: F401

    async with (engine or async_engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
