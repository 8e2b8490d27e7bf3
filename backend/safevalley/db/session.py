"""Database engine and session factory for the PostGIS report store."""

import logging
from typing import Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from safevalley.config import settings
from safevalley.models import Base

logger = logging.getLogger(__name__)

# Engine creation does not connect; the first statement does
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """Create the report tables if they don't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ping_database(
    session_factory: async_sessionmaker = async_session_maker,
) -> Tuple[bool, Optional[str]]:
    """Run ``SELECT 1``. Returns (reachable, error message)."""
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True, None
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database ping failed: {e}")
        return False, type(e).__name__
