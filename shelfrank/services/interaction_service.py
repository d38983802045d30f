"""Interaction tracking — writes the append-only event log the engine reads.

Book-scoped events carry a snapshot of the book as it was at event time,
so historical profiles never depend on later catalog edits.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from shelfrank.domain.entities import (
    EVENT_TYPES,
    BookInteraction,
    BookSnapshot,
    Interaction,
    SearchInteraction,
)
from shelfrank.domain.exceptions import BookNotFoundError, InvalidRecommendationRequest
from shelfrank.domain.repositories import ICatalogRepository, IInteractionRepository
from shelfrank.domain.services import IInteractionService

logger = logging.getLogger(__name__)

# Popularity bump applied to the catalog record when the event is recorded
POPULARITY_INCREMENTS = {
    "view": 1.0,
}


class InteractionService(IInteractionService):

    def __init__(
        self,
        interaction_repository: IInteractionRepository,
        catalog_repository: ICatalogRepository,
        retention_days: int = 90,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.interaction_repository = interaction_repository
        self.catalog_repository = catalog_repository
        self.retention_days = retention_days
        self._clock = clock

    async def track(
        self,
        user_id: str,
        event_type: str,
        *,
        book_id: Optional[UUID] = None,
        search_query: Optional[str] = None,
        search_filters: Optional[dict] = None,
        result_count: Optional[int] = None,
    ) -> Interaction:
        """Validate and record one interaction.

        ``search`` needs a non-blank query; every other event type needs a
        ``book_id`` that exists in the catalog.
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRecommendationRequest("user_id is required")
        if event_type not in EVENT_TYPES:
            raise InvalidRecommendationRequest(
                f"Invalid event type {event_type!r}. Must be one of: {', '.join(EVENT_TYPES)}"
            )

        now = self._clock()
        expires_at = now + timedelta(days=self.retention_days)

        if event_type == "search":
            query = (search_query or "").strip()
            if not query:
                raise InvalidRecommendationRequest("search_query is required for search events")
            interaction: Interaction = SearchInteraction(
                user_id=user_id,
                timestamp=now,
                expires_at=expires_at,
                search_query=query,
                search_filters=search_filters or {},
                result_count=result_count,
            )
        else:
            if book_id is None:
                raise InvalidRecommendationRequest(f"book_id is required for {event_type} events")
            book = await self.catalog_repository.get_by_id(book_id)
            if book is None:
                raise BookNotFoundError(book_id)
            interaction = BookInteraction(
                user_id=user_id,
                event_type=event_type,
                timestamp=now,
                expires_at=expires_at,
                book_id=book.id,
                book=BookSnapshot.of(book),
            )

        recorded = await self.interaction_repository.record(interaction)

        increment = POPULARITY_INCREMENTS.get(event_type)
        if increment and book_id is not None:
            await self.catalog_repository.increment_popularity(book_id, increment)

        logger.info("Recorded %s interaction for user %s", event_type, user_id)
        return recorded

    async def summarize(self, user_id: str, days: int = 90) -> dict[str, int]:
        """Event counts per type over the last ``days`` days."""
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRecommendationRequest("user_id is required")
        if not 1 <= days <= self.retention_days:
            raise InvalidRecommendationRequest(
                f"days must be between 1 and {self.retention_days}"
            )
        since = self._clock() - timedelta(days=days)
        counts = await self.interaction_repository.count_by_type(user_id, since)
        return {event_type: counts.get(event_type, 0) for event_type in EVENT_TYPES}

    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Drop everything older than the retention window."""
        cutoff = (now or self._clock()) - timedelta(days=self.retention_days)
        removed = await self.interaction_repository.purge_expired(cutoff)
        logger.info("Purged %d interactions older than %s", removed, cutoff.isoformat())
        return removed
