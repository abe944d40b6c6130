"""Database engine and per-request sessions.

Learn: One async engine per process, sized from VITRINE_DB_POOL_SIZE /
VITRINE_DB_MAX_OVERFLOW. ProductRepository is the only consumer: it gets
a session through get_db() and commits or rolls back itself, so sessions
are created with expire_on_commit=False and returned rows stay readable
after the commit.
"""

from typing import AsyncIterator

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from vitrine.config import settings

logger = structlog.get_logger()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: one session per request."""
    async with async_session_factory() as session:
        yield session


async def dispose_engine() -> None:
    """Close every pooled connection (application shutdown)."""
    await engine.dispose()
    logger.info("db.engine_disposed")
