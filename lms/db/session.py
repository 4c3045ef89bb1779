from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from lms.core.config import settings


def engine_options(database_url: str) -> dict:
    """Pool tuning for server databases. SQLite (local runs, tests) keeps the dialect's own pool."""
    if database_url.startswith("sqlite"):
        return {}
    # Idle connections dropped by PostgreSQL or a proxy are detected and replaced
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(settings.database_url, future=True, **engine_options(settings.database_url))

# ORM objects stay readable after commit; services re-load with populate_existing when they need fresh state
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session; overridden in tests."""
    async with AsyncSessionLocal() as session:
        yield session
