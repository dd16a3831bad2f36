"""Async engine and session factory helpers.

``create_sessionmaker`` builds an :class:`~sqlalchemy.ext.asyncio.AsyncEngine`
for ``database_url`` and returns it together with a session factory that
does not expire objects on commit, so entities loaded by the store stay
readable after their session closes. In-memory SQLite URLs use a static
pool so every connection sees the same database, which is what tests need.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ..models import Base


def create_sessionmaker(
    database_url: str,
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Return a session factory and engine for ``database_url``."""

    kwargs: dict = {}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs = {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    engine = create_async_engine(database_url, **kwargs)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return factory, engine


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = ["create_sessionmaker", "init_models"]
