"""Domain-level application service interfaces (ports).

Concrete implementations live in ``shelfrank/services/`` and are wired
together by the composition root in ``shelfrank/core/dependencies.py``.
Route handlers depend on these interfaces only, so every service can be
replaced with a test double via FastAPI's ``app.dependency_overrides``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from shelfrank.domain.entities import Interaction, RecommendationResult


class IRecommendationService(ABC):

    @abstractmethod
    async def get_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        context: str = "browse",
        exclude_ids: Optional[Iterable[UUID]] = None,
    ) -> RecommendationResult:
        """Personalized recommendations for a user.

        Never empty while at least one ``available`` book exists outside
        ``exclude_ids``; ``is_fallback`` tells whether personalization was
        applied.
        """
        pass

    @abstractmethod
    async def get_similar_books(
        self,
        book_id: UUID,
        limit: int = 10,
        exclude_ids: Optional[Iterable[UUID]] = None,
        user_id: Optional[str] = None,
        context: str = "browse",
    ) -> RecommendationResult:
        """Books resembling ``book_id`` (shared categories, tags, author).

        When ``user_id`` is given, books on that user's shelves are left out.
        """
        pass


class IInteractionService(ABC):

    @abstractmethod
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
        pass

    @abstractmethod
    async def summarize(self, user_id: str, days: int = 90) -> dict[str, int]:
        pass

    @abstractmethod
    async def purge_expired(self, now: Optional[datetime] = None) -> int:
        pass
