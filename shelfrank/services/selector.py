"""Selector — final ordering, diversity cap, truncation and fallback."""

import logging
import math
from typing import Iterable
from uuid import UUID

from shelfrank.domain.entities import Book, ScoreBreakdown, ScoredCandidate
from shelfrank.services.scoring import GENERIC_REASON, clamp_score, popularity_points

logger = logging.getLogger(__name__)


def diversity_cap(limit: int) -> int:
    """Longest run of one primary category allowed in a list of ``limit``."""
    return max(1, math.ceil(limit / 2))


def ranking_key(candidate: ScoredCandidate):
    return (
        -candidate.relevance_score,
        -(candidate.book.popularity_score or 0.0),
        str(candidate.book.id),
    )


class Selector:

    def rank(self, candidates: Iterable[ScoredCandidate]) -> list[ScoredCandidate]:
        return sorted(candidates, key=ranking_key)

    def select(
        self, candidates: Iterable[ScoredCandidate], limit: int = 10
    ) -> list[ScoredCandidate]:
        ranked = self.rank(candidates)
        diverse = self.apply_diversity_cap(ranked, diversity_cap(limit), limit)
        return self._rank_consistent(diverse[:limit])

    def fallback(
        self,
        books: Iterable[Book],
        limit: int,
        exclude_ids: Iterable[UUID] = (),
    ) -> list[ScoredCandidate]:
        """Popularity-only list, each entry carrying the generic reason."""
        excluded = set(exclude_ids)
        seen: set[UUID] = set()
        picked: list[Book] = []
        for book in books:
            if book.id in excluded or book.id in seen or not book.is_available:
                continue
            seen.add(book.id)
            picked.append(book)
        picked.sort(key=lambda b: (-(b.popularity_score or 0.0), str(b.id)))

        fallback = []
        for book in picked[:limit]:
            points = popularity_points(book)
            fallback.append(
                ScoredCandidate(
                    book=book,
                    relevance_score=clamp_score(points),
                    match_reasons=[GENERIC_REASON],
                    breakdown=ScoreBreakdown(popularity=points),
                )
            )
        return fallback

    @staticmethod
    def apply_diversity_cap(
        ranked: list[ScoredCandidate], cap: int, limit: int | None = None
    ) -> list[ScoredCandidate]:
        """De-cluster runs of one primary category, in a single pass.

        When the next candidate would make the current run longer than
        ``cap``, the best remaining candidate of another primary category is
        placed first. Without such an alternative the run simply continues.
        """
        pending = list(ranked)
        placed: list[ScoredCandidate] = []
        run_category = None
        run_length = 0
        while pending and (limit is None or len(placed) < limit):
            index = 0
            if run_length >= cap and pending[0].book.primary_category == run_category:
                index = next(
                    (
                        i
                        for i, candidate in enumerate(pending)
                        if candidate.book.primary_category != run_category
                    ),
                    0,
                )
                if index:
                    logger.debug(
                        "Diversity cap: promoting %s over a run of %d '%s'",
                        pending[index].book.id,
                        run_length,
                        run_category,
                    )
            chosen = pending.pop(index)
            category = chosen.book.primary_category
            if category == run_category:
                run_length += 1
            else:
                run_category, run_length = category, 1
            placed.append(chosen)
        return placed

    @staticmethod
    def _rank_consistent(selected: list[ScoredCandidate]) -> list[ScoredCandidate]:
        # A demoted entry reports the score of the slot it landed in
        previous = None
        for candidate in selected:
            if previous is not None and candidate.relevance_score > previous:
                candidate.relevance_score = previous
            previous = candidate.relevance_score
        return selected
