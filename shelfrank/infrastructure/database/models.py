"""SQLAlchemy database models."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSON, UUID
from sqlalchemy.orm import DeclarativeBase, relationship

# Loan statuses that keep a book out of the borrower's recommendations
ACTIVE_LOAN_STATUSES = ("borrowed", "pending-approval")


class Base(DeclarativeBase):
    pass


class BookModel(Base):
    __tablename__ = "books"
    __table_args__ = (
        Index("ix_books_status_popularity", "status", "popularity_score"),
        Index("ix_books_categories", "categories", postgresql_using="gin"),
        Index("ix_books_tags", "tags", postgresql_using="gin"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    slug = Column(String(255), nullable=False, unique=True)
    isbn = Column(String(20), nullable=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False, index=True)
    publisher = Column(String(255), nullable=True)
    year = Column(Integer, nullable=True)
    format = Column(String(50), nullable=True)
    categories = Column(ARRAY(String), default=lambda: ["General"], nullable=False)
    tags = Column(ARRAY(String), default=list, nullable=False)
    status = Column(String(20), default="available", server_default="available", nullable=False)
    popularity_score = Column(Float, default=0.0, server_default="0", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    loans = relationship("LoanModel", back_populates="book", lazy="selectin")


class InteractionModel(Base):
    """Append-only interaction log.

    Book-scoped rows carry a snapshot of the book's metadata at event time;
    search rows carry the query instead and leave ``book_id`` empty.
    """

    __tablename__ = "user_interactions"
    __table_args__ = (
        Index("ix_interactions_user_time", "user_id", "timestamp"),
        Index("ix_interactions_user_type", "user_id", "event_type"),
        Index("ix_interactions_expires", "expires_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False)
    event_type = Column(String(30), nullable=False)  # view|search|bookmark_add|bookmark_remove|borrow|return
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    # Book snapshot
    book_id = Column(UUID(as_uuid=True), nullable=True)
    book_title = Column(String(255), nullable=True)
    book_author = Column(String(255), nullable=True)
    book_categories = Column(ARRAY(String), nullable=True)
    book_tags = Column(ARRAY(String), nullable=True)
    book_publisher = Column(String(255), nullable=True)
    book_format = Column(String(50), nullable=True)
    book_year = Column(Integer, nullable=True)

    # Search
    search_query = Column(String(500), nullable=True)
    search_filters = Column(JSON, nullable=True)
    result_count = Column(Integer, nullable=True)


class PersonalLibraryModel(Base):
    """Books a user owns. ``book_id`` is set when the copy is in the catalog."""

    __tablename__ = "personal_libraries"
    __table_args__ = (UniqueConstraint("user_id", "isbn", name="uq_user_isbn"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), nullable=False, index=True)
    book_id = Column(UUID(as_uuid=True), ForeignKey("books.id"), nullable=True)
    isbn = Column(String(20), nullable=True)
    title = Column(String(255), nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class LoanModel(Base):
    __tablename__ = "loans"
    __table_args__ = (Index("ix_loans_borrower_status", "borrower_id", "status"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    borrower_id = Column(String(255), nullable=False)
    book_id = Column(UUID(as_uuid=True), ForeignKey("books.id"), nullable=False, index=True)
    status = Column(String(30), default="pending-approval", nullable=False)  # pending-approval|borrowed|returned|rejected
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    due_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)

    book = relationship("BookModel", back_populates="loans")
