"""Dependency injection container."""

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shelfrank.core.config import Settings, get_settings
from shelfrank.domain.repositories import (
    ICatalogRepository,
    IInteractionRepository,
    IPersonalLibraryRepository,
)
from shelfrank.domain.services import IInteractionService, IRecommendationService
from shelfrank.infrastructure.database.connection import get_db
from shelfrank.infrastructure.database.repository import (
    CatalogRepository,
    InteractionRepository,
    PersonalLibraryRepository,
)
from shelfrank.services.interaction_service import InteractionService
from shelfrank.services.profile_builder import ProfileBuilder
from shelfrank.services.recommendation import RecommendationEngine


# ---------------------------------------------------------------------------
# Repository providers
# ---------------------------------------------------------------------------
async def get_catalog_repository(session: AsyncSession = Depends(get_db)) -> ICatalogRepository:
    return CatalogRepository(session)


async def get_interaction_repository(
    session: AsyncSession = Depends(get_db),
) -> IInteractionRepository:
    return InteractionRepository(session)


async def get_library_repository(
    # The engine reads the library concurrently with the interaction log,
    # and an AsyncSession cannot serve two queries at once.
    session: AsyncSession = Depends(get_db, use_cache=False),
) -> IPersonalLibraryRepository:
    return PersonalLibraryRepository(session)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------
async def get_recommendation_service(
    interaction_repo: IInteractionRepository = Depends(get_interaction_repository),
    catalog_repo: ICatalogRepository = Depends(get_catalog_repository),
    library_repo: IPersonalLibraryRepository = Depends(get_library_repository),
    config: Settings = Depends(get_settings),
) -> IRecommendationService:
    return RecommendationEngine(
        interaction_repository=interaction_repo,
        catalog_repository=catalog_repo,
        library_repository=library_repo,
        profile_builder=ProfileBuilder(interaction_cap=config.profile_interaction_cap),
        retention_days=config.retention_days,
        pool_size=config.candidate_pool_size,
        max_limit=config.max_limit,
    )


async def get_interaction_service(
    interaction_repo: IInteractionRepository = Depends(get_interaction_repository),
    catalog_repo: ICatalogRepository = Depends(get_catalog_repository),
    config: Settings = Depends(get_settings),
) -> IInteractionService:
    return InteractionService(
        interaction_repository=interaction_repo,
        catalog_repository=catalog_repo,
        retention_days=config.retention_days,
    )


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
async def get_current_user_id(
    x_user_id: str | None = Header(default=None),
) -> str:
    """Opaque caller id from the ``X-User-Id`` header set by the gateway."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()
