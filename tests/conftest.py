"""Shared fixtures: in-memory stores, a book factory and a frozen clock."""

from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID, uuid4

import pytest

from shelfrank.domain.entities import (
    Book,
    BookInteraction,
    BookSnapshot,
    Interaction,
    MatchCriteria,
    SearchInteraction,
)
from shelfrank.domain.exceptions import StoreUnavailableError
from shelfrank.domain.repositories import (
    ICatalogRepository,
    IInteractionRepository,
    IPersonalLibraryRepository,
)
from shelfrank.services.interaction_service import InteractionService
from shelfrank.services.recommendation import RecommendationEngine

NOW = datetime(2026, 10, 1, 12, 0, 0)


def make_book(
    title: str,
    categories: Iterable[str] = ("General",),
    tags: Iterable[str] = (),
    author: str = "",
    popularity: float = 0.0,
    status: str = "available",
    **kwargs,
) -> Book:
    return Book(
        id=kwargs.pop("id", uuid4()),
        title=title,
        author=author,
        slug=title.lower().replace(" ", "-"),
        categories=list(categories),
        tags=list(tags),
        status=status,
        popularity_score=popularity,
        **kwargs,
    )


def book_event(
    book: Book,
    event_type: str = "view",
    days_ago: float = 1.0,
    user_id: str = "reader-1",
) -> BookInteraction:
    return BookInteraction(
        user_id=user_id,
        event_type=event_type,
        timestamp=NOW - timedelta(days=days_ago),
        book_id=book.id,
        book=BookSnapshot.of(book),
    )


def search_event(query: str, days_ago: float = 1.0, user_id: str = "reader-1") -> SearchInteraction:
    return SearchInteraction(
        user_id=user_id,
        timestamp=NOW - timedelta(days=days_ago),
        search_query=query,
    )


class InMemoryCatalog(ICatalogRepository):

    def __init__(self, books: Iterable[Book] = ()):
        self.books: dict[UUID, Book] = {book.id: book for book in books}
        self.calls = 0

    def add(self, *books: Book) -> None:
        for book in books:
            self.books[book.id] = book

    async def get_by_id(self, book_id: UUID) -> Optional[Book]:
        self.calls += 1
        return self.books.get(book_id)

    async def find_available(
        self, criteria: MatchCriteria, exclude_ids: Iterable[UUID], pool_size: int
    ) -> list[Book]:
        self.calls += 1

        def matches(book: Book) -> bool:
            return bool(
                set(book.categories) & set(criteria.categories)
                or set(book.tags) & set(criteria.tags)
                or book.author in criteria.authors
            )

        return [b for b in self._available(exclude_ids) if matches(b)][:pool_size]

    async def top_popular(self, limit: int, exclude_ids: Iterable[UUID]) -> list[Book]:
        self.calls += 1
        return self._available(exclude_ids)[:limit]

    async def increment_popularity(self, book_id: UUID, amount: float = 1.0) -> None:
        self.books[book_id].popularity_score += amount

    def _available(self, exclude_ids: Iterable[UUID]) -> list[Book]:
        excluded = set(exclude_ids)
        books = [
            b for b in self.books.values() if b.status == "available" and b.id not in excluded
        ]
        return sorted(books, key=lambda b: (-b.popularity_score, str(b.id)))


class InMemoryInteractions(IInteractionRepository):

    def __init__(self, interactions: Iterable[Interaction] = ()):
        self.interactions: list[Interaction] = list(interactions)
        self.calls = 0

    async def record(self, interaction: Interaction) -> Interaction:
        self.interactions.append(interaction)
        return interaction

    async def query(self, user_id: str, since: datetime) -> list[Interaction]:
        self.calls += 1
        return [
            ix for ix in self.interactions if ix.user_id == user_id and ix.timestamp >= since
        ]

    async def count_by_type(self, user_id: str, since: datetime) -> dict[str, int]:
        counts: dict[str, int] = {}
        for ix in await self.query(user_id, since):
            counts[ix.event_type] = counts.get(ix.event_type, 0) + 1
        return counts

    async def purge_expired(self, before: datetime) -> int:
        kept = [ix for ix in self.interactions if ix.timestamp >= before]
        removed = len(self.interactions) - len(kept)
        self.interactions = kept
        return removed


class InMemoryLibrary(IPersonalLibraryRepository):

    def __init__(self, shelves: Optional[dict[str, set[UUID]]] = None):
        self.shelves = shelves or {}

    async def get_shelved_book_ids(self, user_id: str) -> set[UUID]:
        return set(self.shelves.get(user_id, set()))


class UnavailableCatalog(InMemoryCatalog):
    async def find_available(self, criteria, exclude_ids, pool_size):
        raise StoreUnavailableError("catalog", "connection refused")

    async def top_popular(self, limit, exclude_ids):
        raise StoreUnavailableError("catalog", "connection refused")


@pytest.fixture
def catalog():
    """Empty in-memory catalog; tests add the books they need."""
    return InMemoryCatalog()


@pytest.fixture
def interactions():
    return InMemoryInteractions()


@pytest.fixture
def library():
    return InMemoryLibrary()


@pytest.fixture
def engine(catalog, interactions, library):
    """Recommendation engine over the in-memory stores, frozen at NOW."""
    return RecommendationEngine(
        interaction_repository=interactions,
        catalog_repository=catalog,
        library_repository=library,
        clock=lambda: NOW,
    )


@pytest.fixture
def interaction_service(catalog, interactions):
    return InteractionService(
        interaction_repository=interactions,
        catalog_repository=catalog,
        clock=lambda: NOW,
    )
