"""Async implementations of background work.

Each coroutine opens its own DB session through the worker engine, so it
runs independently of any request lifecycle. The Celery wrappers in
``shelfrank.infrastructure.tasks.retention_tasks`` call them with
``asyncio.run()``.
"""

import logging
from datetime import datetime
from typing import Optional

from shelfrank.core.config import settings
from shelfrank.infrastructure.database.connection import worker_session_maker
from shelfrank.infrastructure.database.repository import CatalogRepository, InteractionRepository
from shelfrank.services.interaction_service import InteractionService

logger = logging.getLogger(__name__)


async def purge_expired_interactions_task(now: Optional[datetime] = None) -> int:
    """Remove interactions past the retention window; return the count."""
    logger.info("BG-TASK: purging interactions older than %d days", settings.retention_days)
    async with worker_session_maker() as session:
        service = InteractionService(
            interaction_repository=InteractionRepository(session),
            catalog_repository=CatalogRepository(session),
            retention_days=settings.retention_days,
        )
        removed = await service.purge_expired(now)
    logger.info("BG-TASK: purge removed %d interactions", removed)
    return removed
