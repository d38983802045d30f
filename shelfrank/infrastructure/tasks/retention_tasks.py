"""Celery task wrappers for interaction-log retention.

Each task is a thin synchronous wrapper around the async coroutine in
``shelfrank.services.background_tasks``, run with ``asyncio.run()``.
"""

import asyncio
import logging

from shelfrank.infrastructure.tasks.celery_app import celery_app
from shelfrank.services.background_tasks import purge_expired_interactions_task

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="retention.purge_expired_interactions", max_retries=3)
def purge_expired_interactions(self) -> int:
    """Celery task: delete interactions older than the retention window."""
    try:
        return asyncio.run(purge_expired_interactions_task())
    except Exception as exc:
        logger.warning(
            "purge_expired_interactions failed (attempt %d/%d): %s",
            self.request.retries + 1,
            self.max_retries + 1,
            exc,
        )
        raise self.retry(exc=exc, countdown=300)
