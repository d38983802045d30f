"""Recommendation engine for ShelfRank.

Three stages run per request, with no state kept between calls:

  1. Profile Builder   -- interaction log -> weighted UserProfile
  2. Candidate Scorer  -- profile x candidate pool -> scored candidates
  3. Selector          -- ranking, diversity cap, truncation, fallback

The fallback to plain popularity is the only place data is substituted,
and it is always flagged through ``RecommendationResult.is_fallback``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
from uuid import UUID

from shelfrank.domain.entities import CONTEXTS, RecommendationResult, UserProfile
from shelfrank.domain.exceptions import InvalidRecommendationRequest
from shelfrank.domain.repositories import (
    ICatalogRepository,
    IInteractionRepository,
    IPersonalLibraryRepository,
)
from shelfrank.domain.services import IRecommendationService
from shelfrank.services.profile_builder import TOP_N, ProfileBuilder
from shelfrank.services.scoring import CandidateScorer
from shelfrank.services.selector import Selector

logger = logging.getLogger(__name__)


class RecommendationEngine(IRecommendationService):
    """Personalized ranking with a guaranteed non-empty popularity fallback."""

    def __init__(
        self,
        interaction_repository: IInteractionRepository,
        catalog_repository: ICatalogRepository,
        library_repository: IPersonalLibraryRepository | None = None,
        profile_builder: ProfileBuilder | None = None,
        scorer: CandidateScorer | None = None,
        selector: Selector | None = None,
        retention_days: int = 90,
        pool_size: int = 50,
        max_limit: int = 50,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.interaction_repository = interaction_repository
        self.catalog_repository = catalog_repository
        self.library_repository = library_repository
        self.profile_builder = profile_builder or ProfileBuilder()
        self.scorer = scorer or CandidateScorer()
        self.selector = selector or Selector()
        self.retention_days = retention_days
        self.pool_size = pool_size
        self.max_limit = max_limit
        self._clock = clock

    # --- Personalized recommendations ---
    async def get_recommendations(
        self,
        user_id: str,
        limit: int = 10,
        context: str = "browse",
        exclude_ids: Optional[Iterable[UUID]] = None,
    ) -> RecommendationResult:
        self._validate_user(user_id)
        self._validate_limit(limit)
        self._validate_context(context)
        excluded = self._coerce_ids(exclude_ids)

        now = self._clock()
        since = now - timedelta(days=self.retention_days)

        # Both reads depend only on the user, so they go out together
        interactions, shelved = await asyncio.gather(
            self.interaction_repository.query(user_id, since),
            self._shelved_ids(user_id),
        )
        excluded |= shelved

        profile = self.profile_builder.build(user_id, interactions, now)
        logger.info(
            "Recommendations for %s (context=%s, limit=%d): %d interactions, engagement=%s",
            user_id,
            context,
            limit,
            profile.total_interactions,
            profile.engagement_level,
        )

        if not profile.has_signal:
            return await self._fallback(profile, limit, excluded)

        pool = await self.catalog_repository.find_available(
            profile.criteria(), excluded, self.pool_size
        )
        return await self._rank_pool(profile, pool, limit, excluded)

    # --- Book-to-book recommendations ---
    async def get_similar_books(
        self,
        book_id: UUID,
        limit: int = 10,
        exclude_ids: Optional[Iterable[UUID]] = None,
        user_id: Optional[str] = None,
        context: str = "browse",
    ) -> RecommendationResult:
        if user_id is not None:
            self._validate_user(user_id)
        self._validate_limit(limit)
        self._validate_context(context)
        excluded = self._coerce_ids(exclude_ids)
        source_id = self._coerce_ids([book_id]).pop()
        excluded.add(source_id)

        if user_id is not None:
            excluded |= await self._shelved_ids(user_id)

        source = await self.catalog_repository.get_by_id(source_id)
        profile = UserProfile(user_id=f"book:{source_id}")
        if source is None:
            logger.info("Similar books: source %s not found, using popular books", source_id)
            return await self._fallback(profile, limit, excluded)

        # The source book stands in for a reading history
        profile.top_categories = list(dict.fromkeys(source.categories or ()))[:TOP_N]
        profile.top_tags = list(dict.fromkeys(source.tags or ()))[:TOP_N]
        profile.top_authors = [source.author] if source.author else []
        if not profile.has_signal:
            return await self._fallback(profile, limit, excluded, based_on=source.title)

        pool = await self.catalog_repository.find_available(
            profile.criteria(), excluded, self.pool_size
        )
        return await self._rank_pool(profile, pool, limit, excluded, based_on=source.title)

    # -- Helpers --
    async def _rank_pool(
        self,
        profile: UserProfile,
        pool: list,
        limit: int,
        excluded: set[UUID],
        based_on: str | None = None,
    ) -> RecommendationResult:
        if not pool:
            logger.info("No candidates matched the profile of %s", profile.user_id)
            return await self._fallback(profile, limit, excluded, based_on=based_on)

        # Popular fillers for the diversity cap and for short pools
        fillers = await self.catalog_repository.top_popular(
            limit, excluded | {book.id for book in pool}
        )
        scored = self.scorer.score_all(profile, [*pool, *fillers], excluded)
        if not any(candidate.breakdown.personalized for candidate in scored):
            return await self._fallback(profile, limit, excluded, based_on=based_on)

        selected = self.selector.select(scored, limit)
        logger.info(
            "Selected %d of %d scored candidates for %s",
            len(selected),
            len(scored),
            profile.user_id,
        )
        return RecommendationResult(
            recommendations=selected,
            profile=profile,
            is_fallback=False,
            based_on=based_on,
        )

    async def _fallback(
        self,
        profile: UserProfile,
        limit: int,
        excluded: set[UUID],
        based_on: str | None = None,
    ) -> RecommendationResult:
        books = await self.catalog_repository.top_popular(limit, excluded)
        recommendations = self.selector.fallback(books, limit, excluded)
        if not recommendations:
            logger.info("Catalog has no available books outside the exclusions")
        else:
            logger.info(
                "Popularity fallback for %s: %d books", profile.user_id, len(recommendations)
            )
        return RecommendationResult(
            recommendations=recommendations,
            profile=profile,
            is_fallback=True,
            based_on=based_on,
        )

    async def _shelved_ids(self, user_id: str) -> set[UUID]:
        if self.library_repository is None:
            return set()
        return set(await self.library_repository.get_shelved_book_ids(user_id))

    @staticmethod
    def _validate_user(user_id: str) -> None:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRecommendationRequest("user_id is required")

    def _validate_limit(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise InvalidRecommendationRequest("limit must be an integer")
        if not 1 <= limit <= self.max_limit:
            raise InvalidRecommendationRequest(
                f"limit must be between 1 and {self.max_limit}"
            )

    @staticmethod
    def _validate_context(context: str) -> None:
        if context not in CONTEXTS:
            raise InvalidRecommendationRequest(
                f"context must be one of: {', '.join(CONTEXTS)}"
            )

    @staticmethod
    def _coerce_ids(ids: Optional[Iterable[UUID]]) -> set[UUID]:
        coerced: set[UUID] = set()
        for value in ids or ():
            if isinstance(value, UUID):
                coerced.add(value)
                continue
            try:
                coerced.add(UUID(str(value)))
            except ValueError as exc:
                raise InvalidRecommendationRequest(f"Invalid book id: {value!r}") from exc
        return coerced
