"""Database engines and session management."""

import logging
from typing import AsyncGenerator

from sqlalchemy.pool import NullPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shelfrank.core.config import settings
from shelfrank.infrastructure.database.models import Base

logger = logging.getLogger(__name__)

# Pooled engine for request handlers (one long-lived event loop)
engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Celery tasks run each job under a fresh asyncio.run() loop, and pooled
# connections stay bound to the loop that opened them.
worker_engine = create_async_engine(settings.database_url, echo=False, poolclass=NullPool)
worker_session_maker = async_sessionmaker(
    worker_engine, class_=AsyncSession, expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session."""
    async with async_session_maker() as session:
        yield session


async def init_db() -> None:
    """Create catalog, library, loan and interaction tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def dispose_engines() -> None:
    await engine.dispose()
    await worker_engine.dispose()
