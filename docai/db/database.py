"""
Database Module

Async SQLAlchemy engine, session factory and declarative Base.

Usage in FastAPI endpoints:
    @router.get("/")
    async def my_endpoint(db: AsyncSession = Depends(get_db)):
        ...
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from docai.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs() -> dict:
    kwargs = {
        "echo": settings.SQLALCHEMY_ECHO,
        "pool_pre_ping": True,
    }
    if settings.DB_POOL_MIN_SIZE is not None:
        kwargs["pool_size"] = settings.DB_POOL_MIN_SIZE
    if settings.DB_POOL_MAX_SIZE is not None and settings.DB_POOL_MIN_SIZE is not None:
        kwargs["max_overflow"] = max(0, settings.DB_POOL_MAX_SIZE - settings.DB_POOL_MIN_SIZE)
    return kwargs


engine = create_async_engine(str(settings.DATABASE_URL), **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that yields a database session per request.

    The session is rolled back if the request fails mid-transaction.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def check_db_connection() -> bool:
    """
    Check if the database is reachable.

    Used for health checks and startup verification.
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
