"""HTTP tests with the services wired to in-memory stores."""

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import NOW, InMemoryInteractions, UnavailableCatalog, make_book
from shelfrank.core.config import Settings, get_settings
from shelfrank.core.dependencies import get_interaction_service, get_recommendation_service
from shelfrank.core.redis_client import get_redis, recommendation_cache_key
from shelfrank.main import app
from shelfrank.services.recommendation import RecommendationEngine

HEADERS = {"X-User-Id": "reader-1"}


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for the recommendation cache."""

    def __init__(self, broken: bool = False):
        self.store: dict[str, str] = {}
        self.broken = broken

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value

    async def delete(self, *keys):
        self._check()
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def _check(self):
        if self.broken:
            raise RedisConnectionError("redis is down")


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(engine, interaction_service, fake_redis):
    """TestClient with services and Redis swapped for in-memory versions."""
    app.dependency_overrides[get_recommendation_service] = lambda: engine
    app.dependency_overrides[get_interaction_service] = lambda: interaction_service
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_settings] = lambda: Settings(cache_enabled=True)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def shelf(catalog):
    books = [
        make_book(f"Popular {i}", [f"Category {i % 3}"], popularity=float(50 - i))
        for i in range(12)
    ]
    catalog.add(*books)
    return books


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_missing_user_header_is_unauthorized(client):
    assert client.get("/recommendations").status_code == 401


def test_cold_start_recommendations(client, shelf):
    response = client.get("/recommendations", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["heading"] == "Popular Books You Might Enjoy"
    assert body["is_fallback"] is True
    assert body["from_cache"] is False
    assert body["total"] == 10
    assert body["recommendations"][0]["book"]["title"] == "Popular 0"


def test_second_request_is_served_from_cache(client, shelf):
    first = client.get("/recommendations", headers=HEADERS, params={"limit": 5})
    second = client.get("/recommendations", headers=HEADERS, params={"limit": 5})

    assert first.json()["from_cache"] is False
    assert second.json()["from_cache"] is True
    assert second.json()["recommendations"] == first.json()["recommendations"]


def test_cache_entry_for_other_limit_is_a_miss(client, shelf):
    client.get("/recommendations", headers=HEADERS, params={"limit": 5})
    response = client.get("/recommendations", headers=HEADERS, params={"limit": 6})

    assert response.json()["from_cache"] is False
    assert response.json()["total"] == 6


def test_refresh_skips_cache(client, shelf):
    client.get("/recommendations", headers=HEADERS)
    response = client.get("/recommendations", headers=HEADERS, params={"refresh": True})

    assert response.json()["from_cache"] is False


def test_redis_outage_is_bypassed(client, shelf, fake_redis):
    fake_redis.broken = True

    response = client.get("/recommendations", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["total"] == 10


@pytest.mark.parametrize(
    "params", [{"limit": 0}, {"limit": 51}, {"context": "homepage"}, {"exclude": "nope"}]
)
def test_invalid_parameters_are_bad_requests(client, shelf, params):
    response = client.get("/recommendations", headers=HEADERS, params=params)

    assert response.status_code == 400


def test_exclude_parameter(client, shelf):
    response = client.get(
        "/recommendations",
        headers=HEADERS,
        params={"exclude": [str(shelf[0].id), str(shelf[1].id)], "limit": 3},
    )

    titles = [r["book"]["title"] for r in response.json()["recommendations"]]
    assert titles == ["Popular 2", "Popular 3", "Popular 4"]


def test_personalized_after_tracking(client, shelf, fake_redis):
    client.get("/recommendations", headers=HEADERS)
    assert recommendation_cache_key("reader-1", "browse") in fake_redis.store

    tracked = client.post(
        "/interactions",
        headers=HEADERS,
        json={"event_type": "borrow", "book_id": str(shelf[5].id)},
    )
    response = client.get("/recommendations", headers=HEADERS)

    assert tracked.status_code == 201
    assert response.json()["from_cache"] is False
    assert response.json()["is_fallback"] is False
    assert response.json()["heading"] == "Similar Books You Might Like"
    assert response.json()["profile"]["top_categories"] == ["Category 2"]


def test_similar_books_endpoint(client, shelf):
    response = client.get(
        "/recommendations", headers=HEADERS, params={"book_id": str(shelf[0].id)}
    )

    body = response.json()
    assert body["based_on"] == "Popular 0"
    assert str(shelf[0].id) not in {r["book"]["id"] for r in body["recommendations"]}


def test_similar_books_validates_context(client, shelf):
    response = client.get(
        "/recommendations",
        headers=HEADERS,
        params={"book_id": str(shelf[0].id), "context": "homepage"},
    )

    assert response.status_code == 400


def test_similar_books_skip_the_callers_shelf(client, shelf, library):
    library.shelves["reader-1"] = {shelf[1].id, shelf[2].id}

    response = client.get(
        "/recommendations", headers=HEADERS, params={"book_id": str(shelf[0].id)}
    )

    returned = {r["book"]["id"] for r in response.json()["recommendations"]}
    assert returned.isdisjoint({str(shelf[1].id), str(shelf[2].id)})


def test_tracking_unknown_book_is_not_found(client):
    response = client.post(
        "/interactions",
        headers=HEADERS,
        json={"event_type": "view", "book_id": "00000000-0000-0000-0000-000000000000"},
    )

    assert response.status_code == 404


def test_tracking_bad_event_is_bad_request(client, shelf):
    response = client.post(
        "/interactions",
        headers=HEADERS,
        json={"event_type": "like", "book_id": str(shelf[0].id)},
    )

    assert response.status_code == 400


def test_search_tracking_and_summary(client):
    tracked = client.post(
        "/interactions",
        headers=HEADERS,
        json={"event_type": "search", "search_query": "octavia butler", "result_count": 3},
    )
    summary = client.get("/interactions/summary", headers=HEADERS)

    assert tracked.status_code == 201
    assert tracked.json()["search_query"] == "octavia butler"
    assert tracked.json()["expires_at"].startswith("2026-12-30")
    assert summary.json()["counts"]["search"] == 1
    assert summary.json()["total"] == 1


def test_store_outage_is_service_unavailable(client):
    app.dependency_overrides[get_recommendation_service] = lambda: RecommendationEngine(
        interaction_repository=InMemoryInteractions(),
        catalog_repository=UnavailableCatalog(),
        clock=lambda: NOW,
    )

    response = client.get("/recommendations", headers=HEADERS)

    assert response.status_code == 503
