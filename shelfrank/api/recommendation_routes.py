"""Recommendation API routes."""

import logging
from typing import Annotated, Optional
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.exceptions import RedisError

from shelfrank.api.schemas import (
    RecommendationResponse,
    RecommendedBookResponse,
    UserProfileResponse,
)
from shelfrank.core.config import Settings, get_settings
from shelfrank.core.dependencies import get_current_user_id, get_recommendation_service
from shelfrank.core.redis_client import (
    cache_recommendations,
    get_cached_recommendations,
    get_redis,
    request_signature,
)
from shelfrank.domain.entities import RecommendationResult
from shelfrank.domain.exceptions import InvalidRecommendationRequest
from shelfrank.domain.services import IRecommendationService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["recommendations"])

PERSONALIZED_HEADING = "Similar Books You Might Like"
FALLBACK_HEADING = "Popular Books You Might Enjoy"


def to_response(result: RecommendationResult) -> RecommendationResponse:
    recommendations = [
        RecommendedBookResponse.model_validate(candidate)
        for candidate in result.recommendations
    ]
    return RecommendationResponse(
        heading=FALLBACK_HEADING if result.is_fallback else PERSONALIZED_HEADING,
        recommendations=recommendations,
        profile=UserProfileResponse.model_validate(result.profile),
        is_fallback=result.is_fallback,
        based_on=result.based_on,
        total=len(recommendations),
    )


@router.get("/recommendations", response_model=RecommendationResponse)
async def get_recommendations(
    user_id: Annotated[str, Depends(get_current_user_id)],
    recommendation_service: Annotated[IRecommendationService, Depends(get_recommendation_service)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
    config: Annotated[Settings, Depends(get_settings)],
    limit: Optional[int] = None,
    context: str = "browse",
    exclude: Annotated[list[str], Query()] = [],
    book_id: Optional[UUID] = None,
    refresh: bool = False,
) -> RecommendationResponse:
    """Personalized suggestions for the caller, or books similar to ``book_id``.

    Responses are cached per (user, context) for a few seconds; ``refresh``
    skips the cached copy. When no personal signal is usable the list falls
    back to the most popular available books and ``is_fallback`` is set.
    """
    if limit is None:
        limit = config.default_limit
    signature = request_signature(limit, exclude, book_id)

    use_cache = config.cache_enabled
    if use_cache and not refresh:
        try:
            cached = await get_cached_recommendations(redis_client, user_id, context, signature)
        except RedisError as exc:
            logger.warning("Recommendation cache read failed for %s: %s", user_id, exc)
            use_cache = False
            cached = None
        if cached is not None:
            logger.info("Serving cached recommendations for %s (%s)", user_id, context)
            return RecommendationResponse(**{**cached, "from_cache": True})

    try:
        if book_id is not None:
            result = await recommendation_service.get_similar_books(
                book_id, limit, exclude, user_id=user_id, context=context
            )
        else:
            result = await recommendation_service.get_recommendations(
                user_id, limit, context, exclude
            )
    except InvalidRecommendationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    response = to_response(result)
    if use_cache:
        try:
            await cache_recommendations(
                redis_client,
                user_id,
                context,
                signature,
                response.model_dump(mode="json"),
                config.cache_ttl_seconds,
            )
        except RedisError as exc:
            logger.warning("Recommendation cache write failed for %s: %s", user_id, exc)
    return response
