"""Paginators over a ``Query``.

``OffsetPaginator`` pages with LIMIT/OFFSET and knows its page count.
``OrderedPaginator`` pages by the last seen key values (keyset
pagination), which stays fast deep into a large table given an index on
the keys::

    pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=50)
    page = await pager.get_page()
    more = await pager.get_page(*page.cursor)

Always give an ``OffsetPaginator`` query an ORDER BY, or pages may overlap.

Iterating with ``each_page`` or ``each_item`` reads page by page. If rows
are inserted, deleted or reordered while iterating, rows may be skipped or
seen twice. Order by a stable key (such as the primary key) to limit this.
"""

import math
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from lazuli._internal.invoke import invoke
from lazuli.data.database import Database
from lazuli.data.query import Query

type PrepareResults = Callable[[list[Any]], Any]
type Order = Literal["asc", "desc"]


class Paginator[T]:
    """Base for paginators. Subclasses provide ``get_page`` and ``each_page``."""

    def __init__(
        self,
        db: Database,
        query: Query[T],
        *,
        per_page: int = 10,
        prepare_results: PrepareResults | None = None,
    ) -> None:
        if per_page < 1:
            msg = f"per_page must be positive, got {per_page}"
            raise ValueError(msg)
        self.db = db
        self.query = query
        self.per_page = per_page
        self.prepare_results = prepare_results

    async def _prepare(self, items: list[T]) -> list[T]:
        if self.prepare_results is None or not items:
            return items
        prepared = await invoke(self.prepare_results, items)
        return items if prepared is None else list(prepared)

    async def each_item(self) -> AsyncIterator[T]:
        """Every row, fetched a page at a time."""
        async for items in self.each_page():
            for item in items:
                yield item

    def each_page(self) -> AsyncIterator[list[T]]:
        raise NotImplementedError


class OffsetPaginator[T](Paginator[T]):
    """Numbered pages through LIMIT and OFFSET.

    Pages are 1-indexed. Page numbers below 1 fetch the first page.
    """

    async def get_page(self, page: int = 1) -> list[T]:
        page = max(1, int(page))
        query = self.query.take(self.per_page).skip((page - 1) * self.per_page)
        return await self._prepare(await query.fetch(self.db))

    async def get_all(self) -> list[T]:
        """Every row in a single query, paging ignored."""
        return await self._prepare(await self.query.take(None).skip(None).fetch(self.db))

    async def total_items(self) -> int:
        return await self.query.count(self.db)

    async def num_pages(self) -> int:
        return math.ceil(await self.total_items() / self.per_page)

    async def has_items(self) -> bool:
        return await self.query.exists(self.db)

    async def each_page(self, starting_page: int = 1) -> AsyncIterator[list[T]]:
        """Yield pages from *starting_page* until one comes back empty."""
        page = max(1, starting_page)
        while True:
            items = await self.get_page(page)
            if not items:
                return
            yield items
            page += 1


@dataclass(frozen=True, slots=True)
class CursorPage[T]:
    """A page of an ``OrderedPaginator``.

    ``cursor`` holds the key values of the last item, to pass to the next
    ``get_page``/``after``/``before`` call. It is ``None`` when the page is
    empty.
    """

    items: list[T]
    cursor: tuple[Any, ...] | None

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)


def _key_value(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item[key]
    return getattr(item, key)


class OrderedPaginator[T](Paginator[T]):
    """Keyset pagination on one or more ordering columns.

    Args:
        keys: Column name, or a sequence of names for a composite key.
        order: Direction used by ``get_page``; ``after`` is always
            ascending and ``before`` always descending.
    """

    def __init__(
        self,
        db: Database,
        query: Query[T],
        keys: str | Sequence[str],
        *,
        order: Order = "asc",
        per_page: int = 10,
        prepare_results: PrepareResults | None = None,
    ) -> None:
        super().__init__(db, query, per_page=per_page, prepare_results=prepare_results)
        self.keys: tuple[str, ...] = (keys,) if isinstance(keys, str) else tuple(keys)
        if not self.keys:
            msg = "OrderedPaginator needs at least one key"
            raise ValueError(msg)
        if order.lower() not in ("asc", "desc"):
            msg = f"order must be 'asc' or 'desc', got {order!r}"
            raise ValueError(msg)
        self.order: Order = order.lower()  # type: ignore[assignment]

    async def get_page(self, *cursor: Any) -> CursorPage[T]:
        return await self.get_ordered(self.order, *cursor)

    async def after(self, *cursor: Any) -> CursorPage[T]:
        return await self.get_ordered("asc", *cursor)

    async def before(self, *cursor: Any) -> CursorPage[T]:
        return await self.get_ordered("desc", *cursor)

    async def get_ordered(self, order: str, *cursor: Any) -> CursorPage[T]:
        """The page after *cursor* in direction *order*.

        Without a cursor this is the first page.
        """
        direction = order.upper()
        if direction not in ("ASC", "DESC"):
            msg = f"order must be 'asc' or 'desc', got {order!r}"
            raise ValueError(msg)

        query = self.query
        if cursor:
            if len(cursor) != len(self.keys):
                msg = f"Expected {len(self.keys)} cursor values, got {len(cursor)}"
                raise ValueError(msg)
            op = ">" if direction == "ASC" else "<"
            if len(self.keys) == 1:
                query = query.where(f"{self.keys[0]} {op} ?", *cursor)
            else:
                columns = ", ".join(self.keys)
                marks = ", ".join("?" for _ in cursor)
                query = query.where(f"({columns}) {op} ({marks})", *cursor)

        query = query.order_by(", ".join(f"{key} {direction}" for key in self.keys))
        items = await self._prepare(await query.take(self.per_page).skip(None).fetch(self.db))
        if not items:
            return CursorPage(items, None)
        last = items[-1]
        return CursorPage(items, tuple(_key_value(last, key) for key in self.keys))

    async def each_page(self) -> AsyncIterator[list[T]]:
        """Yield pages in ``order`` until one comes back empty."""
        cursor: tuple[Any, ...] = ()
        while True:
            page = await self.get_page(*cursor)
            if not page.items:
                return
            yield page.items
            cursor = page.cursor or ()
