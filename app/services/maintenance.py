"""Maintenance coroutines executed by Celery workers.

They open their own database session on the worker engine and do not depend
on any request lifecycle.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.entities import RATE_LIMITS
from app.infrastructure.database.repository import RateLimitRepository

logger = logging.getLogger(__name__)


def retention_window():
    """The longest configured window; older records can never be counted."""
    return max(policy.window for policy in RATE_LIMITS.values())


async def purge_expired_rate_limit_records(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> int:
    if session_maker is None:
        from app.infrastructure.database.connection import worker_session_maker

        session_maker = worker_session_maker

    cutoff = clock() - retention_window()
    async with session_maker() as session:
        deleted = await RateLimitRepository(session).purge_older_than(cutoff)
    logger.info("Purged %d rate limit record(s) older than %s", deleted, cutoff.isoformat())
    return deleted
