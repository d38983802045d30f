"""Domain exceptions shared by services, adapters and the API layer."""


class InvalidRecommendationRequest(ValueError):
    """Rejected input (user id, limit, context, event payload).

    Raised before any store is touched.
    """


class BookNotFoundError(LookupError):
    def __init__(self, book_id):
        super().__init__(f"Book not found: {book_id}")
        self.book_id = book_id


class StoreUnavailableError(RuntimeError):
    """A backing store (catalog, interaction log, library) failed."""

    def __init__(self, store: str, detail: str = ""):
        message = f"{store} store unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.store = store
