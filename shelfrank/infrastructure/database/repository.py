"""Repository implementations."""

import functools
import logging
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select, union, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

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
from shelfrank.infrastructure.database.models import (
    ACTIVE_LOAN_STATUSES,
    BookModel,
    InteractionModel,
    LoanModel,
    PersonalLibraryModel,
)

logger = logging.getLogger(__name__)


def store_operation(store: str):
    """Surface driver and query failures as ``StoreUnavailableError``."""

    def decorator(func_):
        @functools.wraps(func_)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func_(self, *args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("%s store failure in %s: %s", store, func_.__name__, exc)
                await self.session.rollback()
                raise StoreUnavailableError(store, str(exc)) from exc

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Catalog Repository
# ---------------------------------------------------------------------------
class CatalogRepository(ICatalogRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @store_operation("catalog")
    async def get_by_id(self, book_id: UUID) -> Optional[Book]:
        result = await self.session.execute(select(BookModel).where(BookModel.id == book_id))
        db_book = result.scalar_one_or_none()
        return self._to_entity(db_book) if db_book else None

    @store_operation("catalog")
    async def find_available(
        self,
        criteria: MatchCriteria,
        exclude_ids: Iterable[UUID],
        pool_size: int,
    ) -> list[Book]:
        if criteria.is_empty:
            return []
        matches = []
        if criteria.categories:
            matches.append(BookModel.categories.overlap(list(criteria.categories)))
        if criteria.tags:
            matches.append(BookModel.tags.overlap(list(criteria.tags)))
        if criteria.authors:
            matches.append(BookModel.author.in_(criteria.authors))

        stmt = self._available(exclude_ids).where(or_(*matches)).limit(pool_size)
        result = await self.session.execute(stmt)
        return [self._to_entity(book) for book in result.scalars().all()]

    @store_operation("catalog")
    async def top_popular(self, limit: int, exclude_ids: Iterable[UUID]) -> list[Book]:
        result = await self.session.execute(self._available(exclude_ids).limit(limit))
        return [self._to_entity(book) for book in result.scalars().all()]

    @store_operation("catalog")
    async def increment_popularity(self, book_id: UUID, amount: float = 1.0) -> None:
        await self.session.execute(
            update(BookModel)
            .where(BookModel.id == book_id)
            .values(popularity_score=BookModel.popularity_score + amount)
        )
        await self.session.commit()

    @staticmethod
    def _available(exclude_ids: Iterable[UUID]):
        stmt = select(BookModel).where(BookModel.status == "available")
        excluded = list(exclude_ids)
        if excluded:
            stmt = stmt.where(BookModel.id.notin_(excluded))
        return stmt.order_by(BookModel.popularity_score.desc(), BookModel.id)

    @staticmethod
    def _to_entity(model: BookModel) -> Book:
        return Book(
            id=model.id,
            title=model.title,
            author=model.author,
            slug=model.slug,
            isbn=model.isbn,
            publisher=model.publisher,
            year=model.year,
            format=model.format,
            categories=list(model.categories or []) or ["General"],
            tags=list(model.tags or []),
            status=model.status,
            popularity_score=model.popularity_score or 0.0,
            created_at=model.created_at,
        )


# ---------------------------------------------------------------------------
# Interaction Repository
# ---------------------------------------------------------------------------
class InteractionRepository(IInteractionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @store_operation("interaction")
    async def record(self, interaction: Interaction) -> Interaction:
        db_interaction = InteractionModel(
            id=interaction.id,
            user_id=interaction.user_id,
            event_type=interaction.event_type,
            timestamp=interaction.timestamp,
            expires_at=interaction.expires_at,
        )
        if isinstance(interaction, BookInteraction):
            snapshot = interaction.book
            db_interaction.book_id = interaction.book_id
            db_interaction.book_title = snapshot.title
            db_interaction.book_author = snapshot.author
            db_interaction.book_categories = list(snapshot.categories)
            db_interaction.book_tags = list(snapshot.tags)
            db_interaction.book_publisher = snapshot.publisher
            db_interaction.book_format = snapshot.format
            db_interaction.book_year = snapshot.year
        elif isinstance(interaction, SearchInteraction):
            db_interaction.search_query = interaction.search_query
            db_interaction.search_filters = interaction.search_filters
            db_interaction.result_count = interaction.result_count

        self.session.add(db_interaction)
        await self.session.commit()
        await self.session.refresh(db_interaction)
        return self._to_entity(db_interaction)

    @store_operation("interaction")
    async def query(self, user_id: str, since: datetime) -> list[Interaction]:
        result = await self.session.execute(
            select(InteractionModel)
            .where(
                InteractionModel.user_id == user_id,
                InteractionModel.timestamp >= since,
            )
            .order_by(InteractionModel.timestamp.desc())
        )
        return [self._to_entity(r) for r in result.scalars().all()]

    @store_operation("interaction")
    async def count_by_type(self, user_id: str, since: datetime) -> dict[str, int]:
        result = await self.session.execute(
            select(InteractionModel.event_type, func.count(InteractionModel.id))
            .where(
                InteractionModel.user_id == user_id,
                InteractionModel.timestamp >= since,
            )
            .group_by(InteractionModel.event_type)
        )
        return {row[0]: row[1] for row in result.all()}

    @store_operation("interaction")
    async def purge_expired(self, before: datetime) -> int:
        result = await self.session.execute(
            delete(InteractionModel).where(InteractionModel.timestamp < before)
        )
        await self.session.commit()
        return result.rowcount or 0

    @staticmethod
    def _to_entity(model: InteractionModel) -> Interaction:
        if model.event_type == "search":
            return SearchInteraction(
                id=model.id,
                user_id=model.user_id,
                timestamp=model.timestamp,
                expires_at=model.expires_at,
                search_query=model.search_query or "",
                search_filters=model.search_filters,
                result_count=model.result_count,
            )
        return BookInteraction(
            id=model.id,
            user_id=model.user_id,
            event_type=model.event_type,
            timestamp=model.timestamp,
            expires_at=model.expires_at,
            book_id=model.book_id,
            book=BookSnapshot(
                title=model.book_title or "",
                author=model.book_author,
                categories=tuple(model.book_categories or ()),
                tags=tuple(model.book_tags or ()),
                publisher=model.book_publisher,
                format=model.book_format,
                year=model.book_year,
            ),
        )


# ---------------------------------------------------------------------------
# Personal Library Repository
# ---------------------------------------------------------------------------
class PersonalLibraryRepository(IPersonalLibraryRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @store_operation("library")
    async def get_shelved_book_ids(self, user_id: str) -> set[UUID]:
        owned = select(PersonalLibraryModel.book_id).where(
            PersonalLibraryModel.user_id == user_id,
            PersonalLibraryModel.book_id.is_not(None),
        )
        # Owned copies added by ISBN only, matched to catalog books
        owned_by_isbn = select(BookModel.id).where(
            BookModel.isbn.in_(
                select(PersonalLibraryModel.isbn).where(
                    PersonalLibraryModel.user_id == user_id,
                    PersonalLibraryModel.isbn.is_not(None),
                )
            )
        )
        on_loan = select(LoanModel.book_id).where(
            LoanModel.borrower_id == user_id,
            LoanModel.status.in_(ACTIVE_LOAN_STATUSES),
        )
        result = await self.session.execute(union(owned, owned_by_isbn, on_loan))
        return {row[0] for row in result.all()}
