"""Celery application — broker and result backend both backed by Redis.

Workers run as a separate process from the API server. Beat schedules the
daily purge of interactions that have left the retention window.
"""

from celery import Celery
from celery.schedules import crontab

from shelfrank.core.config import settings

celery_app = Celery(
    "shelfrank",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["shelfrank.infrastructure.tasks.retention_tasks"],
)

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # State tracking
    task_track_started=True,
    result_expires=86400,           # keep results in Redis for 24 h
    # Reliability
    task_acks_late=True,            # ack only after the task finishes
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    beat_schedule={
        "purge-expired-interactions": {
            "task": "retention.purge_expired_interactions",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
