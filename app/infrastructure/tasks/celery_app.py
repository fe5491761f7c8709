"""Celery application. Broker and result backend are both Redis.

Workers run outside the API process.  Beat drives the periodic maintenance
jobs; the only one today purges expired rate limit records.
"""

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "bookswap",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["app.infrastructure.tasks.maintenance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    result_expires=3600,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "purge-rate-limit-records": {
            "task": "maintenance.purge_rate_limit_records",
            "schedule": 3600.0,
        },
    },
)
