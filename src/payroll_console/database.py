"""Database connection and session management for the audit trail."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payroll_console.config import get_settings
from payroll_console.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


def get_engine(database_url: str | None = None) -> AsyncEngine:
    """Create async database engine."""
    url = database_url or get_settings().database_url
    kwargs: dict = {"echo": False}
    if url.startswith("sqlite"):
        if ":memory:" in url or url.endswith("://"):
            # One shared connection, otherwise each connection gets its own empty DB
            kwargs.update(
                poolclass=StaticPool, connect_args={"check_same_thread": False}
            )
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    return create_async_engine(url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by the audit service."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create audit tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    """Return True if the database answers."""
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    return True
