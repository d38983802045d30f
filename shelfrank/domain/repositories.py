"""Repository interfaces (ports) for dependency inversion."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from shelfrank.domain.entities import Book, Interaction, MatchCriteria


class IInteractionRepository(ABC):

    @abstractmethod
    async def record(self, interaction: Interaction) -> Interaction:
        """Append an interaction to the log."""
        pass

    @abstractmethod
    async def query(self, user_id: str, since: datetime) -> list[Interaction]:
        """Return the user's interactions with ``timestamp >= since``.

        Ordering is not guaranteed.
        """
        pass

    @abstractmethod
    async def count_by_type(self, user_id: str, since: datetime) -> dict[str, int]:
        pass

    @abstractmethod
    async def purge_expired(self, before: datetime) -> int:
        """Delete interactions older than ``before``; return how many went."""
        pass


class ICatalogRepository(ABC):

    @abstractmethod
    async def get_by_id(self, book_id: UUID) -> Optional[Book]:
        pass

    @abstractmethod
    async def find_available(
        self,
        criteria: MatchCriteria,
        exclude_ids: Iterable[UUID],
        pool_size: int,
    ) -> list[Book]:
        """Available books matching any category, tag or author in ``criteria``."""
        pass

    @abstractmethod
    async def top_popular(self, limit: int, exclude_ids: Iterable[UUID]) -> list[Book]:
        """Available books by ``popularity_score`` descending."""
        pass

    @abstractmethod
    async def increment_popularity(self, book_id: UUID, amount: float = 1.0) -> None:
        pass


class IPersonalLibraryRepository(ABC):

    @abstractmethod
    async def get_shelved_book_ids(self, user_id: str) -> set[UUID]:
        """Catalog ids the user already owns or currently holds on loan."""
        pass
