"""
Keyset (cursor) pagination.

Instead of OFFSET, each page is located relative to the unique key of the
rows on the page fetched before it:

    paginator = post_repo.paginator(
        where=Filter.of("user_id = $1", 7), order_by={"id": "desc"}, per_page=10
    )
    page = await paginator.current()   # first page, establishes the boundary
    page = await paginator.next()      # rows after the last key seen
    page = await paginator.previous()  # rows before the first key seen

Every fetch recomputes the item count with the caller's filter and issues a
single range query. A paginator holds per-session state and must not be
shared between concurrent tasks.
"""

import math
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from keyset_repo._logging import logger
from keyset_repo.entities import SortOrder, is_descending
from keyset_repo.exceptions import (
    BoundaryNotSetError,
    CountQueryFailedError,
    InvalidDirectionError,
    MissingOrderKeyError,
    NoNextPageError,
    NoPreviousPageError,
    PageOutOfRangeError,
    RangeQueryFailedError,
)
from keyset_repo.filters import EMPTY_FILTER, Filter

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

DEFAULT_PER_PAGE = 10

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Direction(str, Enum):
    PREVIOUS = "previous"
    CURRENT = "current"
    NEXT = "next"


class PageSource(Protocol[T_co]):
    """Storage the paginator reads from. Repository implements it."""

    async def count_where(self, where: Filter) -> int: ...

    async def find_where(
        self, where: Filter, order_by: Mapping[str, Any], limit: int
    ) -> list[T_co]: ...


class PageState(BaseModel):
    """Informational snapshot of a paginator"""

    page_index: int
    per_page: int
    total_items: int | None
    total_pages: int | None
    first_key: Any = None
    last_key: Any = None
    has_previous: bool
    has_next: bool


def count_pages(total_items: int, per_page: int) -> int:
    """ceil(total_items / per_page); zero items means zero pages."""
    return int(math.ceil(float(total_items) / float(per_page)))


def reverse_ordering(order_by: Mapping[str, Any]) -> dict[str, SortOrder]:
    return {
        column: SortOrder.ASC if is_descending(direction) else SortOrder.DESC
        for column, direction in order_by.items()
    }


class KeysetPaginator(Generic[T]):
    """Keyset paginator over a PageSource.

    Args:
        source: storage implementing count_where/find_where
        where: caller filter, ANDed with the key range of each page
        order_by: column -> direction; must contain the key column
        per_page: page size, 0 or None means 10
        key: unique key column used as the page boundary
    """

    def __init__(
        self,
        source: PageSource[T],
        where: Filter | None = None,
        order_by: Mapping[str, Any] | None = None,
        per_page: int | None = DEFAULT_PER_PAGE,
        key: str = "id",
    ):
        ordering = dict(order_by or {})
        if key not in ordering:
            raise MissingOrderKeyError(key)
        if not _IDENTIFIER.match(key):
            raise ValueError(f"Invalid key column name: {key!r}")
        if per_page is not None and per_page < 0:
            raise ValueError("Per page count must be 0 or greater")

        self._source = source
        self._where = where or EMPTY_FILTER
        self._order_by = ordering
        self._key = key
        self._per_page = per_page or DEFAULT_PER_PAGE
        self._descending = is_descending(ordering[key])

        self._page_index = 0
        self._first_key: Any = None
        self._last_key: Any = None
        self._total_items: int | None = None
        self._total_pages: int | None = None

    @classmethod
    def resume(
        cls,
        source: PageSource[T],
        *,
        page_index: int,
        first_key: Any,
        last_key: Any,
        **kwargs: Any,
    ) -> "KeysetPaginator[T]":
        """Rebuild a paginator from the state a previous request observed."""
        paginator = cls(source, **kwargs)
        if page_index < 0:
            raise ValueError("Page index must be 0 or greater")
        if (first_key is None) != (last_key is None):
            raise ValueError("first_key and last_key must be given together")
        if page_index > 0 and first_key is None:
            raise ValueError("A page past the first one needs its boundary keys")
        paginator._page_index = page_index
        paginator._first_key = first_key
        paginator._last_key = last_key
        return paginator

    # Read-only state

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def per_page(self) -> int:
        return self._per_page

    @property
    def total_items(self) -> int | None:
        return self._total_items

    @property
    def total_pages(self) -> int | None:
        return self._total_pages

    @property
    def first_key(self) -> Any:
        return self._first_key

    @property
    def last_key(self) -> Any:
        return self._last_key

    @property
    def key(self) -> str:
        return self._key

    @property
    def where(self) -> Filter:
        return self._where

    @property
    def order_by(self) -> dict[str, Any]:
        return dict(self._order_by)

    @property
    def descending(self) -> bool:
        return self._descending

    @property
    def has_previous(self) -> bool:
        return self._page_index > 0

    @property
    def has_next(self) -> bool:
        return self._total_pages is not None and self._page_index < self._total_pages - 1

    def snapshot(self) -> PageState:
        return PageState(
            page_index=self._page_index,
            per_page=self._per_page,
            total_items=self._total_items,
            total_pages=self._total_pages,
            first_key=self._first_key,
            last_key=self._last_key,
            has_previous=self.has_previous,
            has_next=self.has_next,
        )

    # Navigation

    async def get_page(self, direction: Direction | str) -> list[T]:
        """Fetch the previous, current or next page."""
        try:
            direction = Direction(direction)
        except (TypeError, ValueError):
            raise InvalidDirectionError(direction) from None

        if direction is Direction.PREVIOUS:
            return await self.previous()
        if direction is Direction.NEXT:
            return await self.next()
        return await self.current()

    async def current(self) -> list[T]:
        """Fetch (or re-fetch) the page between the current boundary keys.

        Without a boundary this is the first page.
        """
        await self._refresh_count()
        self._check_index()
        rows = await self._fetch(self.range_filter(Direction.CURRENT), self._order_by)
        self._remember(rows)
        self._log_page(Direction.CURRENT, rows)
        return rows

    async def next(self) -> list[T]:
        await self._refresh_count()
        if self._page_index >= self._total_pages - 1:  # type: ignore[operator]
            raise NoNextPageError(self._page_index, self._total_pages or 0)
        if self._last_key is None:
            raise BoundaryNotSetError(Direction.NEXT.value)

        rows = await self._fetch(self.range_filter(Direction.NEXT), self._order_by)
        self._remember(rows)
        self._page_index += 1
        self._log_page(Direction.NEXT, rows)
        return rows

    async def previous(self) -> list[T]:
        if self._page_index == 0:
            raise NoPreviousPageError()
        await self._refresh_count()
        self._check_index()
        if self._first_key is None:
            raise BoundaryNotSetError(Direction.PREVIOUS.value)

        # Walk backwards from the boundary so the adjacent page is selected,
        # then hand the rows back in the configured order.
        rows = await self._fetch(
            self.range_filter(Direction.PREVIOUS), reverse_ordering(self._order_by)
        )
        rows.reverse()
        self._remember(rows)
        self._page_index -= 1
        self._log_page(Direction.PREVIOUS, rows)
        return rows

    # Query building

    def range_filter(self, direction: Direction) -> Filter:
        """Caller filter ANDed with the key range for a page in the given direction."""
        return self._where.and_(self._key_range(direction))

    def _key_range(self, direction: Direction) -> Filter:
        key = self._key
        if direction is Direction.NEXT:
            operator = "<" if self._descending else ">"
            return Filter.of(f"{key} {operator} $1", self._last_key)
        if direction is Direction.PREVIOUS:
            operator = ">" if self._descending else "<"
            return Filter.of(f"{key} {operator} $1", self._first_key)

        if self._first_key is None:
            return EMPTY_FILTER
        if self._descending:
            return Filter.of(f"{key} <= $1 AND {key} >= $2", self._first_key, self._last_key)
        return Filter.of(f"{key} >= $1 AND {key} <= $2", self._first_key, self._last_key)

    def _check_index(self) -> None:
        # A resumed index may point past the pages the fresh count allows
        last_index = max((self._total_pages or 0) - 1, 0)
        if self._page_index > last_index:
            raise PageOutOfRangeError(self._page_index, self._total_pages or 0)

    async def _refresh_count(self) -> None:
        try:
            total_items = await self._source.count_where(self._where)
        except Exception as e:
            logger.warning("Page count query failed", extra={"error": str(e)})
            raise CountQueryFailedError(e) from e
        self._total_items = int(total_items)
        self._total_pages = count_pages(self._total_items, self._per_page)

    async def _fetch(self, where: Filter, order_by: Mapping[str, Any]) -> list[T]:
        try:
            rows = await self._source.find_where(where, order_by, self._per_page)
        except Exception as e:
            logger.warning("Page range query failed", extra={"error": str(e)})
            raise RangeQueryFailedError(e) from e
        return list(rows)

    def _key_of(self, row: Any) -> Any:
        if isinstance(row, Mapping):
            return row[self._key]
        return getattr(row, self._key)

    def _remember(self, rows: list[T]) -> None:
        if rows:
            self._first_key = self._key_of(rows[0])
            self._last_key = self._key_of(rows[-1])

    def _log_page(self, direction: Direction, rows: list[T]) -> None:
        logger.info(
            "Fetched page",
            extra={
                "direction": direction.value,
                "page_index": self._page_index,
                "total_pages": self._total_pages,
                "rows": len(rows),
            },
        )
