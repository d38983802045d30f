"""Domain entities for ShelfRank."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

RETENTION_DAYS = 90

EVENT_TYPES = ("view", "search", "bookmark_add", "bookmark_remove", "borrow", "return")
BOOK_STATUSES = ("available", "checked-out", "reserved", "maintenance", "lost")
CONTEXTS = ("browse", "search", "library")
ENGAGEMENT_LEVELS = ("new", "light", "moderate", "heavy")


@dataclass
class Book:
    id: UUID
    title: str
    author: str
    slug: str = ""
    isbn: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    format: Optional[str] = None
    categories: list[str] = field(default_factory=lambda: ["General"])
    tags: list[str] = field(default_factory=list)
    status: str = "available"
    popularity_score: float = 0.0
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else "General"

    @property
    def is_available(self) -> bool:
        return self.status == "available"


@dataclass(frozen=True)
class BookSnapshot:
    """Book metadata as it was when the interaction happened."""

    title: str = ""
    author: Optional[str] = None
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    publisher: Optional[str] = None
    format: Optional[str] = None
    year: Optional[int] = None

    @classmethod
    def of(cls, book: Book) -> "BookSnapshot":
        return cls(
            title=book.title,
            author=book.author,
            categories=tuple(book.categories or ()),
            tags=tuple(book.tags or ()),
            publisher=book.publisher,
            format=book.format,
            year=book.year,
        )


@dataclass(kw_only=True)
class Interaction:
    """Append-only user event.

    Concrete events are either a ``BookInteraction`` (view, bookmark,
    borrow, return) or a ``SearchInteraction``; ``event_type`` is the tag.
    """

    user_id: str
    event_type: str
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=datetime.utcnow)
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.expires_at is None:
            self.expires_at = self.timestamp + timedelta(days=RETENTION_DAYS)


@dataclass(kw_only=True)
class BookInteraction(Interaction):
    book_id: UUID
    book: BookSnapshot = field(default_factory=BookSnapshot)


@dataclass(kw_only=True)
class SearchInteraction(Interaction):
    event_type: str = "search"
    search_query: str
    search_filters: Optional[dict] = None
    result_count: Optional[int] = None


@dataclass(frozen=True)
class MatchCriteria:
    """OR-criteria used to pull candidate books from the catalog."""

    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    authors: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.categories or self.tags or self.authors)


@dataclass(frozen=True)
class RecentTouch:
    """Categories and tags of one qualifying interaction in the recency window."""

    categories: frozenset[str]
    tags: frozenset[str]


@dataclass
class UserProfile:
    """Preference profile derived from a user's interaction log.

    Recomputed for every request and never persisted.
    """

    user_id: str
    top_categories: list[str] = field(default_factory=list)
    top_tags: list[str] = field(default_factory=list)
    top_authors: list[str] = field(default_factory=list)
    engagement_level: str = "new"
    diversity_score: int = 0
    total_interactions: int = 0
    recent_interactions: int = 0
    unique_books: int = 0
    recent_touches: list[RecentTouch] = field(default_factory=list, repr=False)

    @property
    def has_signal(self) -> bool:
        return bool(self.top_categories or self.top_tags or self.top_authors)

    def criteria(self) -> MatchCriteria:
        return MatchCriteria(
            categories=tuple(self.top_categories),
            tags=tuple(self.top_tags),
            authors=tuple(self.top_authors),
        )


@dataclass
class ScoreBreakdown:
    category: float = 0.0
    tag: float = 0.0
    author: float = 0.0
    recency: float = 0.0
    popularity: float = 0.0

    @property
    def raw_total(self) -> float:
        return self.category + self.tag + self.author + self.recency + self.popularity

    @property
    def personalized(self) -> bool:
        return (self.category + self.tag + self.author + self.recency) > 0


@dataclass
class ScoredCandidate:
    book: Book
    relevance_score: int = 0
    match_reasons: list[str] = field(default_factory=list)
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)


@dataclass
class RecommendationResult:
    recommendations: list[ScoredCandidate]
    profile: UserProfile
    is_fallback: bool = False
    based_on: Optional[str] = None
