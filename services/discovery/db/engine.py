"""
AsyncEngine factory and standalone session context manager.

NullPool because PgBouncer (Supabase pooler) owns connection pooling; SA
should not maintain its own pool on top.
"""

from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from services.discovery.config import settings


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create async engine for use with PgBouncer transaction-mode pooling."""
    url = (database_url or settings.database_url).replace("postgresql://", "postgresql+asyncpg://", 1)
    return create_async_engine(
        url,
        poolclass=NullPool,
        echo=settings.debug and settings.environment == "development",
    )


@asynccontextmanager
async def standalone_session(database_url: Optional[str] = None):
    """
    For the seeding and research CLIs that run outside FastAPI.
    Handles engine lifecycle to prevent connection leaks with NullPool.
    database_url overrides the configured DATABASE_URL.
    """
    engine = create_engine(database_url)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()
