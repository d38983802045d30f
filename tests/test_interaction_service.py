"""Tests for interaction tracking, summaries and retention."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import NOW, book_event, make_book
from shelfrank.domain.entities import EVENT_TYPES, BookInteraction, SearchInteraction
from shelfrank.domain.exceptions import BookNotFoundError, InvalidRecommendationRequest


@pytest.fixture
def dune(catalog):
    book = make_book("Dune", ["Science Fiction"], ["desert"], author="Frank Herbert", popularity=10)
    catalog.add(book)
    return book


def test_view_is_recorded_with_snapshot(interaction_service, interactions, dune):
    recorded = asyncio.run(interaction_service.track("reader-1", "view", book_id=dune.id))

    assert isinstance(recorded, BookInteraction)
    assert recorded.book.title == "Dune"
    assert recorded.book.categories == ("Science Fiction",)
    assert recorded.timestamp == NOW
    assert recorded.expires_at == NOW + timedelta(days=90)
    assert interactions.interactions == [recorded]


def test_view_bumps_popularity(interaction_service, catalog, dune):
    asyncio.run(interaction_service.track("reader-1", "view", book_id=dune.id))

    assert catalog.books[dune.id].popularity_score == 11


def test_borrow_leaves_popularity_alone(interaction_service, catalog, dune):
    asyncio.run(interaction_service.track("reader-1", "borrow", book_id=dune.id))

    assert catalog.books[dune.id].popularity_score == 10


def test_snapshot_survives_catalog_edits(interaction_service, interactions, catalog, dune):
    asyncio.run(interaction_service.track("reader-1", "bookmark_add", book_id=dune.id))
    catalog.books[dune.id].categories = ["Classics"]

    stored = interactions.interactions[0]

    assert stored.book.categories == ("Science Fiction",)


def test_search_is_recorded(interaction_service):
    recorded = asyncio.run(
        interaction_service.track(
            "reader-1", "search", search_query="  ursula le guin ", result_count=4
        )
    )

    assert isinstance(recorded, SearchInteraction)
    assert recorded.search_query == "ursula le guin"
    assert recorded.result_count == 4


def test_blank_search_is_rejected(interaction_service):
    with pytest.raises(InvalidRecommendationRequest):
        asyncio.run(interaction_service.track("reader-1", "search", search_query="   "))


def test_book_event_requires_book_id(interaction_service):
    with pytest.raises(InvalidRecommendationRequest):
        asyncio.run(interaction_service.track("reader-1", "borrow"))


def test_unknown_event_type_is_rejected(interaction_service, dune):
    with pytest.raises(InvalidRecommendationRequest):
        asyncio.run(interaction_service.track("reader-1", "like", book_id=dune.id))


def test_unknown_book_raises_not_found(interaction_service):
    with pytest.raises(BookNotFoundError):
        asyncio.run(interaction_service.track("reader-1", "view", book_id=uuid4()))


def test_summary_counts_every_event_type(interaction_service, interactions, dune):
    interactions.interactions.extend(
        [
            book_event(dune, "view", days_ago=1),
            book_event(dune, "view", days_ago=2),
            book_event(dune, "borrow", days_ago=3),
            book_event(dune, "view", days_ago=40),
            book_event(dune, "view", days_ago=1, user_id="someone-else"),
        ]
    )

    summary = asyncio.run(interaction_service.summarize("reader-1", days=30))

    assert set(summary) == set(EVENT_TYPES)
    assert summary["view"] == 2
    assert summary["borrow"] == 1
    assert summary["search"] == 0


def test_summary_window_is_bounded_by_retention(interaction_service):
    with pytest.raises(InvalidRecommendationRequest):
        asyncio.run(interaction_service.summarize("reader-1", days=365))


def test_purge_removes_interactions_past_retention(interaction_service, interactions, dune):
    interactions.interactions.extend(
        [
            book_event(dune, days_ago=10),
            book_event(dune, days_ago=89),
            book_event(dune, days_ago=91),
            book_event(dune, days_ago=200),
        ]
    )

    removed = asyncio.run(interaction_service.purge_expired())

    assert removed == 2
    assert len(interactions.interactions) == 2
