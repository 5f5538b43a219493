"""Async engine and session factory for the test run store."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from devicelab.config import settings
from devicelab.db.base import Base


def engine_options(database_url: str) -> dict[str, Any]:
    """Pool options for ``database_url``; sqlite shares one connection across tasks."""
    if database_url.startswith("sqlite"):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_async_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def create_tables() -> None:
    """Create missing tables; safe to call from every process that uses the store."""
    # registers test_runs on Base.metadata
    from devicelab.models.test_run import TestRun  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
