"""Candidate Scorer — relevance of each candidate book for a profile.

Points per signal (summed, then clamped to 0..100):

  category     30 per book category that is in the profile's top categories
  tag          20 per book tag that is in the profile's top tags
  author       15 flat when the author is in the profile's top authors
  recency       2 per recent interaction sharing a category or tag (max 10)
  popularity   popularity_score * 0.25

Raw totals under the weak-match floor are scaled down by the weak-match
penalty instead of being dropped, so the selector can still use them.
"""

import logging
from typing import Iterable
from uuid import UUID

from shelfrank.domain.entities import Book, ScoreBreakdown, ScoredCandidate, UserProfile

logger = logging.getLogger(__name__)

CATEGORY_POINTS = 30
TAG_POINTS = 20
AUTHOR_POINTS = 15
RECENCY_POINTS = 2
RECENCY_CAP = 10
POPULARITY_FACTOR = 0.25

WEAK_MATCH_FLOOR = 15
WEAK_MATCH_PENALTY = 0.5

MAX_REASONS = 2
GENERIC_REASON = "Popular with readers"
RECENCY_REASON = "Matches your recent activity"

MIN_SCORE = 0
MAX_SCORE = 100


def clamp_score(raw: float) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(round(raw))))


def popularity_points(book: Book) -> float:
    return max(book.popularity_score or 0.0, 0.0) * POPULARITY_FACTOR


class CandidateScorer:
    """Scores available, non-excluded books against a ``UserProfile``."""

    def __init__(
        self,
        weak_match_penalty: float = WEAK_MATCH_PENALTY,
        weak_match_floor: float = WEAK_MATCH_FLOOR,
        recency_cap: float = RECENCY_CAP,
    ):
        self.weak_match_penalty = weak_match_penalty
        self.weak_match_floor = weak_match_floor
        self.recency_cap = recency_cap

    def score_all(
        self,
        profile: UserProfile,
        books: Iterable[Book],
        exclude_ids: Iterable[UUID] = (),
    ) -> list[ScoredCandidate]:
        excluded = set(exclude_ids)
        seen: set[UUID] = set()
        scored: list[ScoredCandidate] = []
        for book in books:
            if book.id in excluded or book.id in seen or not book.is_available:
                continue
            seen.add(book.id)
            scored.append(self.score(profile, book))
        logger.debug("Scored %d candidates for %s", len(scored), profile.user_id)
        return scored

    def score(self, profile: UserProfile, book: Book) -> ScoredCandidate:
        book_categories = set(book.categories or ())
        book_tags = set(book.tags or ())

        # Profile rank order, so the first match is the user's strongest interest
        matched_categories = [c for c in profile.top_categories if c in book_categories]
        matched_tags = [t for t in profile.top_tags if t in book_tags]
        author_match = bool(book.author) and book.author in profile.top_authors

        breakdown = ScoreBreakdown(
            category=CATEGORY_POINTS * len(matched_categories),
            tag=TAG_POINTS * len(matched_tags),
            author=AUTHOR_POINTS if author_match else 0,
            recency=self._recency_boost(profile, book_categories, book_tags),
            popularity=popularity_points(book),
        )

        raw = breakdown.raw_total
        if raw < self.weak_match_floor:
            raw *= self.weak_match_penalty

        reasons = self._reasons(breakdown, matched_categories, matched_tags, book.author)
        return ScoredCandidate(
            book=book,
            relevance_score=clamp_score(raw),
            match_reasons=reasons,
            breakdown=breakdown,
        )

    def _recency_boost(
        self, profile: UserProfile, categories: set[str], tags: set[str]
    ) -> float:
        touching = sum(
            1
            for touch in profile.recent_touches
            if touch.categories & categories or touch.tags & tags
        )
        return min(touching * RECENCY_POINTS, self.recency_cap)

    @staticmethod
    def _reasons(
        breakdown: ScoreBreakdown,
        matched_categories: list[str],
        matched_tags: list[str],
        author: str,
    ) -> list[str]:
        # (points, priority, phrase); equal points resolve by priority
        components = []
        if breakdown.category:
            components.append((breakdown.category, 0, f"Same category: {matched_categories[0]}"))
        if breakdown.tag:
            components.append((breakdown.tag, 1, f"Similar topic: {matched_tags[0]}"))
        if breakdown.author:
            components.append((breakdown.author, 2, f"Author you've viewed: {author}"))
        if breakdown.recency:
            components.append((breakdown.recency, 3, RECENCY_REASON))

        if not components:
            return [GENERIC_REASON]
        components.sort(key=lambda c: (-c[0], c[1]))
        picked = components[:MAX_REASONS]
        # An author match always names the author, even when outscored
        author_component = next((c for c in components if c[1] == 2), None)
        if author_component is not None and author_component not in picked:
            picked = [*components[: MAX_REASONS - 1], author_component]
        return [phrase for _, _, phrase in picked]
