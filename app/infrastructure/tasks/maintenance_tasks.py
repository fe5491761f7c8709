"""Celery task wrappers for periodic maintenance.

Each task is a thin synchronous wrapper around a coroutine in
``app.services.maintenance``, run with ``asyncio.run()`` inside the worker.
"""

import asyncio
import logging

from app.infrastructure.tasks.celery_app import celery_app
from app.services.maintenance import purge_expired_rate_limit_records

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="maintenance.purge_rate_limit_records", max_retries=3)
def purge_rate_limit_records(self) -> int:
    """Celery task: delete attempt records no policy window can still see."""
    try:
        return asyncio.run(purge_expired_rate_limit_records())
    except Exception as exc:
        logger.warning(
            "purge_rate_limit_records failed (attempt %d/%d): %s",
            self.request.retries + 1,
            self.max_retries + 1,
            exc,
        )
        raise self.retry(exc=exc, countdown=300)
