"""Interaction tracking API routes."""

import logging
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError

from shelfrank.api.schemas import (
    InteractionCreate,
    InteractionResponse,
    InteractionSummaryResponse,
)
from shelfrank.core.dependencies import get_current_user_id, get_interaction_service
from shelfrank.core.redis_client import get_redis, invalidate_recommendations
from shelfrank.domain.exceptions import BookNotFoundError, InvalidRecommendationRequest
from shelfrank.domain.services import IInteractionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/interactions", tags=["interactions"])


@router.post("", response_model=InteractionResponse, status_code=status.HTTP_201_CREATED)
async def track_interaction(
    body: InteractionCreate,
    user_id: Annotated[str, Depends(get_current_user_id)],
    interaction_service: Annotated[IInteractionService, Depends(get_interaction_service)],
    redis_client: Annotated[aioredis.Redis, Depends(get_redis)],
) -> InteractionResponse:
    """Record a view, search, bookmark, borrow or return."""
    try:
        interaction = await interaction_service.track(
            user_id,
            body.event_type,
            book_id=body.book_id,
            search_query=body.search_query,
            search_filters=body.search_filters,
            result_count=body.result_count,
        )
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidRecommendationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        await invalidate_recommendations(redis_client, user_id)
    except RedisError as exc:
        logger.warning("Failed to invalidate cached recommendations for %s: %s", user_id, exc)

    return InteractionResponse.model_validate(interaction)


@router.get("/summary", response_model=InteractionSummaryResponse)
async def get_interaction_summary(
    user_id: Annotated[str, Depends(get_current_user_id)],
    interaction_service: Annotated[IInteractionService, Depends(get_interaction_service)],
    days: int = 90,
) -> InteractionSummaryResponse:
    try:
        counts = await interaction_service.summarize(user_id, days)
    except InvalidRecommendationRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return InteractionSummaryResponse(
        user_id=user_id,
        days=days,
        counts=counts,
        total=sum(counts.values()),
    )
