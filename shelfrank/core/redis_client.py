"""Async Redis client — shared across the application.

Used for the short-lived read-through cache of recommendation responses,
keyed by ``(user_id, context)``. An entry only answers a request whose
signature (limit, exclusions, source book) matches the one it was
stored under.
"""

import json
import logging
from typing import AsyncGenerator, Iterable, Optional
from uuid import UUID

import redis.asyncio as aioredis

from shelfrank.core.config import settings
from shelfrank.domain.entities import CONTEXTS

logger = logging.getLogger(__name__)

RECOMMENDATION_PREFIX = "recommendations:"


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """FastAPI dependency: yield a connected Redis client, close on teardown."""
    client: aioredis.Redis = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    try:
        yield client
    finally:
        await client.aclose()


def recommendation_cache_key(user_id: str, context: str) -> str:
    return f"{RECOMMENDATION_PREFIX}{user_id}:{context}"


def request_signature(
    limit: int, exclude_ids: Iterable[UUID] = (), book_id: Optional[UUID] = None
) -> str:
    excluded = ",".join(sorted(str(i) for i in exclude_ids))
    return f"{limit}|{excluded}|{book_id or ''}"


async def get_cached_recommendations(
    client: aioredis.Redis, user_id: str, context: str, signature: str
) -> Optional[dict]:
    """Return the cached response body, or None on a miss or signature mismatch."""
    raw = await client.get(recommendation_cache_key(user_id, context))
    if raw is None:
        return None
    try:
        entry = json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable cache entry for %s/%s", user_id, context)
        return None
    if entry.get("signature") != signature:
        return None
    return entry.get("payload")


async def cache_recommendations(
    client: aioredis.Redis,
    user_id: str,
    context: str,
    signature: str,
    payload: dict,
    ttl_seconds: int,
) -> None:
    entry = json.dumps({"signature": signature, "payload": payload})
    await client.setex(recommendation_cache_key(user_id, context), ttl_seconds, entry)


async def invalidate_recommendations(client: aioredis.Redis, user_id: str) -> None:
    """Drop the user's cached responses for every context."""
    await client.delete(*(recommendation_cache_key(user_id, c) for c in CONTEXTS))
