"""Database engines and session factories."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.infrastructure.database.models import Base


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Pooled engine for request handlers (one long-lived event loop)
engine = create_async_engine(settings.database_url, echo=False, pool_pre_ping=True)
async_session_maker = build_session_maker(engine)

# Celery tasks run each job under a fresh asyncio.run() loop, and pooled
# connections cannot cross loops, so workers connect per session.
worker_engine = create_async_engine(settings.database_url, echo=False, poolclass=NullPool)
worker_session_maker = build_session_maker(worker_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request."""
    async with async_session_maker() as session:
        yield session


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create any missing tables."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
