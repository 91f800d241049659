"""
Database engine and sessions.

WHAT: One async engine for the process, the session factory used by
requests and the SLA sweep, and the FastAPI `get_db` dependency.

WHY: Services commit their own state changes before dispatching side
effects, so sessions are created with autoflush off and attributes kept
after commit. A ticket is still readable when its notifications are
delivered after the commit.
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from arsenal.core.config import settings


engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Work the endpoint left uncommitted is committed when the request
    succeeds and rolled back when it raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
