"""
Database configuration with connection pooling and async support
"""
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from linguaspark.config import settings

engine_kwargs = {
    "echo": settings.database_echo,
    "pool_pre_ping": True,
}

if settings.is_production:
    # async engines default to AsyncAdaptedQueuePool; only its sizing is set here
    engine_kwargs.update({
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_pool_size * 2,
    })
else:
    # NullPool outside production
    engine_kwargs.update({
        "poolclass": NullPool,
    })

engine = create_async_engine(
    settings.database_url,
    **engine_kwargs
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding one session per request"""
    async with async_session() as session:
        yield session


async def check_database() -> bool:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True
