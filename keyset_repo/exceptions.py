"""Exception hierarchy for keyset_repo"""

from typing import Any


class KeysetRepoError(Exception):
    """Base exception for all keyset_repo errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


# Repository errors


class RepositoryError(KeysetRepoError):
    """Base class for errors raised by repositories and the database layer."""


class UnknownColumnError(RepositoryError):
    """Raised when a column name is not part of the entity schema."""

    def __init__(self, column: str, table_name: str | None = None) -> None:
        msg = f"Unknown column '{column}'"
        if table_name:
            msg += f" for table '{table_name}'"
        super().__init__(msg)
        self.column = column
        self.table_name = table_name


class InvalidIdError(RepositoryError, ValueError):
    """Raised when an id can't identify a record (zero or negative)."""

    def __init__(self, entity_id: Any) -> None:
        super().__init__(f"Invalid id {entity_id!r}: it must be a positive integer")
        self.entity_id = entity_id


class MissingConditionsError(RepositoryError, ValueError):
    """Raised when a bulk write would run without a WHERE clause."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Cannot {operation} without WHERE conditions")
        self.operation = operation


class NoActiveTransactionError(RepositoryError):
    """Raised when a query runs outside of a transaction context."""

    def __init__(self) -> None:
        super().__init__(
            "No active transaction found. Repository methods must be called "
            "within a transaction context."
        )


class PoolNotFoundError(RepositoryError, ValueError):
    """Raised when a named database pool was never registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Database pool '{name}' not found")
        self.name = name


# Pagination errors


class PaginationError(KeysetRepoError):
    """Base class for keyset paginator errors."""


class MissingOrderKeyError(PaginationError):
    """Raised when the ordering does not name the unique key column."""

    def __init__(self, key: str) -> None:
        super().__init__(f"No '{key}' order specified in the ordering")
        self.key = key


class InvalidDirectionError(PaginationError, ValueError):
    """Raised when a page direction is not one of previous, current or next."""

    def __init__(self, direction: Any) -> None:
        super().__init__(
            f"Invalid direction {direction!r}: expected one of previous, current or next"
        )
        self.direction = direction


class NoNextPageError(PaginationError):
    """Raised when next() is called on the last page."""

    def __init__(self, page_index: int, total_pages: int) -> None:
        super().__init__("This is the last page, there is no next page")
        self.page_index = page_index
        self.total_pages = total_pages


class NoPreviousPageError(PaginationError):
    """Raised when previous() is called on the first page."""

    def __init__(self) -> None:
        super().__init__("This is the first page, there is no previous page")


class PageOutOfRangeError(PaginationError):
    """Raised when a restored page index lies past the last page."""

    def __init__(self, page_index: int, total_pages: int) -> None:
        super().__init__(
            f"Page index {page_index} is out of range, there are {total_pages} pages"
        )
        self.page_index = page_index
        self.total_pages = total_pages


class BoundaryNotSetError(PaginationError):
    """Raised when next()/previous() run before any page was fetched."""

    def __init__(self, direction: str) -> None:
        super().__init__(
            f"Cannot fetch the {direction} page before a boundary is established; "
            "fetch the current page first"
        )
        self.direction = direction


class CountQueryFailedError(PaginationError):
    """Raised when the storage count query fails. The storage error is kept as `cause`."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Calculate page count error: {cause}", original_error=cause)
        self.cause = cause


class RangeQueryFailedError(PaginationError):
    """Raised when the storage range query fails. The storage error is kept as `cause`."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Fetch page error: {cause}", original_error=cause)
        self.cause = cause
