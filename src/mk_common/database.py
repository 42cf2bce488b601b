"""Async engine and session factory.

Services own their transactions: every write path ends in an explicit
commit() or rollback(), and per-seller / per-effect isolation uses
begin_nested() savepoints inside one session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

# expire_on_commit=False: domain objects are mapped from raw rows and
# outlive the commit that persisted them.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards.

    An uncommitted transaction left by a failed handler is rolled back on close.
    """
    async with async_session_factory() as session:
        yield session
