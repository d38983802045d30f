"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Books
# ---------------------------------------------------------------------------
class BookResponse(BaseModel):
    id: UUID
    slug: str
    isbn: Optional[str] = None
    title: str
    author: str
    publisher: Optional[str] = None
    year: Optional[int] = None
    format: Optional[str] = None
    categories: list[str]
    tags: list[str]
    status: str
    popularity_score: float

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------
class ScoreBreakdownResponse(BaseModel):
    category: float
    tag: float
    author: float
    recency: float
    popularity: float

    model_config = ConfigDict(from_attributes=True)


class RecommendedBookResponse(BaseModel):
    book: BookResponse
    relevance_score: int = Field(..., ge=0, le=100)
    match_reasons: list[str]
    breakdown: ScoreBreakdownResponse

    model_config = ConfigDict(from_attributes=True)


class UserProfileResponse(BaseModel):
    """Derived preference profile; recomputed per request."""

    user_id: str
    top_categories: list[str]
    top_tags: list[str]
    top_authors: list[str]
    engagement_level: str
    diversity_score: int = Field(..., ge=0, le=100)
    total_interactions: int
    recent_interactions: int
    unique_books: int

    model_config = ConfigDict(from_attributes=True)


class RecommendationResponse(BaseModel):
    heading: str
    recommendations: list[RecommendedBookResponse]
    profile: UserProfileResponse
    is_fallback: bool
    based_on: Optional[str] = None
    from_cache: bool = False
    total: int


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------
class InteractionCreate(BaseModel):
    event_type: str = Field(..., max_length=30)
    book_id: Optional[UUID] = None
    search_query: Optional[str] = Field(None, max_length=500)
    search_filters: Optional[dict] = None
    result_count: Optional[int] = Field(None, ge=0)


class InteractionResponse(BaseModel):
    id: UUID
    user_id: str
    event_type: str
    timestamp: datetime
    expires_at: datetime
    book_id: Optional[UUID] = None
    search_query: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InteractionSummaryResponse(BaseModel):
    user_id: str
    days: int
    counts: dict[str, int]
    total: int
