from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict
import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from board.config import settings
from board.db.base import Base

logger = logging.getLogger(__name__)

def engine_options() -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend"""
    if settings.is_sqlite:
        # One shared connection so an in-memory database survives across sessions
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": settings.DATABASE_TIMEOUT_SECONDS,
        "pool_pre_ping": True,
        "connect_args": {"timeout": settings.DATABASE_TIMEOUT_SECONDS},
    }

engine = create_async_engine(settings.database_url, echo=settings.DEBUG, **engine_options())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back on any error"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Rolled back session: {e}")
            raise

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session dependency"""
    async with session_scope() as session:
        yield session

async def init_db():
    """Create every table that does not exist yet"""
    import board.models  # noqa: F401  registers every table on Base.metadata
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")

async def close_db():
    await engine.dispose()
    logger.info("Database engine disposed")
