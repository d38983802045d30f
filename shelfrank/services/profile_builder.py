"""Profile Builder — folds a user's interaction log into a ``UserProfile``.

Each signal-bearing event adds ``base_weight * 0.5 ** (age_days / 30)`` to
every category and tag of its book snapshot and to the snapshot's author.
The three tallies are then cut to their top entries in one sort step.

``bookmark_remove`` cancels the most recent earlier ``bookmark_add`` for
the same book that is not already cancelled. Searches and returns carry
no preference signal but still count towards engagement.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID

import numpy as np

from shelfrank.domain.entities import (
    BookInteraction,
    Interaction,
    RecentTouch,
    UserProfile,
)
from shelfrank.domain.exceptions import InvalidRecommendationRequest

logger = logging.getLogger(__name__)

# Base signal per event type; event types not listed carry no signal
EVENT_WEIGHTS = {
    "view": 1.0,
    "bookmark_add": 3.0,
    "borrow": 5.0,
}

DECAY_HALF_LIFE_DAYS = 30.0
RECENCY_WINDOW_DAYS = 14
TOP_N = 5

# (minimum interaction count, level), checked top-down
ENGAGEMENT_THRESHOLDS = (
    (40, "heavy"),
    (10, "moderate"),
    (1, "light"),
    (0, "new"),
)


def recency_decay(age_days, half_life_days: float = DECAY_HALF_LIFE_DAYS):
    """Exponential decay for a scalar age or an array of ages (in days).

    Future timestamps are treated as age zero.
    """
    ages = np.clip(np.asarray(age_days, dtype=float), 0.0, None)
    return np.power(0.5, ages / half_life_days)


def engagement_level(interaction_count: int) -> str:
    for minimum, level in ENGAGEMENT_THRESHOLDS:
        if interaction_count >= minimum:
            return level
    return "new"


@dataclass
class AffinityTally:
    """Weighted frequency counter with a deterministic top-N.

    Ranking: accumulated weight desc, then most recent sighting, then key.
    """

    weights: dict[str, float] = field(default_factory=dict)
    last_seen: dict[str, datetime] = field(default_factory=dict)

    def add(self, key: Optional[str], weight: float, seen_at: datetime) -> None:
        if not key or weight <= 0:
            return
        self.weights[key] = self.weights.get(key, 0.0) + weight
        previous = self.last_seen.get(key)
        if previous is None or seen_at > previous:
            self.last_seen[key] = seen_at

    def top(self, n: int = TOP_N) -> list[str]:
        ranked = sorted(
            self.weights,
            key=lambda k: (-round(self.weights[k], 9), -self.last_seen[k].timestamp(), k),
        )
        return ranked[:n]

    def __len__(self) -> int:
        return len(self.weights)


class ProfileBuilder:
    """Builds the per-request preference profile."""

    def __init__(
        self,
        interaction_cap: int = 200,
        half_life_days: float = DECAY_HALF_LIFE_DAYS,
        recency_window_days: int = RECENCY_WINDOW_DAYS,
        top_n: int = TOP_N,
    ):
        self.interaction_cap = interaction_cap
        self.half_life_days = half_life_days
        self.recency_window_days = recency_window_days
        self.top_n = top_n

    def build(
        self,
        user_id: str,
        interactions: Iterable[Interaction],
        now: Optional[datetime] = None,
    ) -> UserProfile:
        if not isinstance(user_id, str) or not user_id.strip():
            raise InvalidRecommendationRequest("user_id is required")

        now = now or datetime.utcnow()
        history = sorted(
            interactions, key=lambda ix: (ix.timestamp, str(ix.id)), reverse=True
        )
        total = len(history)
        if not history:
            return UserProfile(user_id=user_id)

        recent = history[: self.interaction_cap]
        signals = self._signal_events(reversed(recent))
        recency_cutoff = now - timedelta(days=self.recency_window_days)

        categories = AffinityTally()
        tags = AffinityTally()
        authors = AffinityTally()
        touches: list[RecentTouch] = []
        distinct_categories: set[str] = set()
        category_tagged = 0

        if signals:
            ages = np.array(
                [(now - ix.timestamp).total_seconds() / 86400.0 for ix in signals]
            )
            base = np.array([EVENT_WEIGHTS[ix.event_type] for ix in signals])
            weights = (base * recency_decay(ages, self.half_life_days)).tolist()
        else:
            weights = []

        for ix, weight in zip(signals, weights):
            snapshot = ix.book
            for category in snapshot.categories:
                categories.add(category, weight, ix.timestamp)
            for tag in snapshot.tags:
                tags.add(tag, weight, ix.timestamp)
            authors.add(snapshot.author, weight, ix.timestamp)

            if snapshot.categories:
                category_tagged += 1
                distinct_categories.update(snapshot.categories)
            if ix.timestamp >= recency_cutoff:
                touches.append(
                    RecentTouch(
                        categories=frozenset(snapshot.categories),
                        tags=frozenset(snapshot.tags),
                    )
                )

        diversity = 0
        if category_tagged:
            diversity = min(100, round(100 * len(distinct_categories) / category_tagged))

        profile = UserProfile(
            user_id=user_id,
            top_categories=categories.top(self.top_n),
            top_tags=tags.top(self.top_n),
            top_authors=authors.top(self.top_n),
            engagement_level=engagement_level(total),
            diversity_score=diversity,
            total_interactions=total,
            recent_interactions=sum(1 for ix in recent if ix.timestamp >= recency_cutoff),
            unique_books=len(
                {ix.book_id for ix in recent if isinstance(ix, BookInteraction)}
            ),
            recent_touches=touches,
        )
        logger.debug(
            "Profile for %s: %d interactions, %d signals, categories=%s, engagement=%s",
            user_id,
            total,
            len(signals),
            profile.top_categories,
            profile.engagement_level,
        )
        return profile

    @staticmethod
    def _signal_events(chronological: Iterable[Interaction]) -> list[BookInteraction]:
        """Signal-bearing book events, oldest first, minus cancelled bookmarks."""
        kept: list[Optional[BookInteraction]] = []
        open_bookmarks: dict[UUID, list[int]] = {}
        for ix in chronological:
            if not isinstance(ix, BookInteraction):
                continue
            if ix.event_type == "bookmark_remove":
                pending = open_bookmarks.get(ix.book_id)
                if pending:
                    kept[pending.pop()] = None
                continue
            if ix.event_type not in EVENT_WEIGHTS:
                continue
            if ix.event_type == "bookmark_add":
                open_bookmarks.setdefault(ix.book_id, []).append(len(kept))
            kept.append(ix)
        return [ix for ix in kept if ix is not None]
