"""
Async engine and session scopes.

Services commit their own units of work (a failure audit must survive the
rollback of the action it describes). The scopes below only commit what a
caller left pending and roll back on error.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from coachpay.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str = settings.database_url) -> AsyncEngine:
    if settings.db_null_pool:
        return create_async_engine(url, poolclass=NullPool, echo=settings.db_echo)
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        pool_pre_ping=True,
        echo=settings.db_echo,
    )


engine = build_engine()

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def _session_scope(owner: str) -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            logger.warning(f"Rolled back {owner} session")
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI routes."""
    async with _session_scope("request") as session:
        yield session


def get_db_context():
    """
    Session for scheduler jobs and one-off scripts.

    Usage:
        async with get_db_context() as db:
            await run_payout_batch(db, period, SYSTEM_ACTOR, commit=True)
    """
    return _session_scope("job")
