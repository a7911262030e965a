"""Immutable SELECT builder.

Each method returns a new frozen ``Query``; ``.sql`` and ``.params`` show
exactly what will run. Paginators take a ``Query`` and add their own
ordering, limit and offset to it::

    posts = Query(Post, "posts").where("user_id = ?", user_id).order_by("id DESC")

    latest = await posts.take(20).fetch(db)
    pager = OffsetPaginator(db, posts, per_page=20)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lazuli.data.database import Database


@dataclass(frozen=True, slots=True)
class Query[T]:
    """SELECT over *table*, mapping rows to *cls* (a dataclass or ``dict``)."""

    cls: type[T]
    table: str
    wheres: tuple[tuple[str, tuple[Any, ...]], ...] = ()
    order: str | None = None
    limit: int | None = None
    offset: int | None = None
    columns: str = "*"

    # -- Building --

    def where(self, clause: str, /, *params: Any) -> Query[T]:
        """Add a WHERE clause. Clauses are ANDed."""
        return replace(self, wheres=(*self.wheres, (clause, params)))

    def where_if(self, condition: object, clause: str, /, *params: Any) -> Query[T]:
        """``where`` when *condition* is truthy, else the query unchanged."""
        if not condition:
            return self
        return self.where(clause, *params)

    def order_by(self, clause: str | None) -> Query[T]:
        """Set (or with ``None``, clear) ORDER BY."""
        return replace(self, order=clause)

    def take(self, n: int | None) -> Query[T]:
        return replace(self, limit=n)

    def skip(self, n: int | None) -> Query[T]:
        return replace(self, offset=n)

    def select(self, columns: str) -> Query[T]:
        return replace(self, columns=columns)

    # -- Compilation --

    @property
    def where_sql(self) -> str:
        """The WHERE part, or an empty string."""
        if not self.wheres:
            return ""
        if len(self.wheres) == 1:
            return f"WHERE {self.wheres[0][0]}"
        return "WHERE " + " AND ".join(f"({clause})" for clause, _ in self.wheres)

    @property
    def sql(self) -> str:
        parts = [f"SELECT {self.columns} FROM {self.table}"]
        if self.wheres:
            parts.append(self.where_sql)
        if self.order:
            parts.append(f"ORDER BY {self.order}")
        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")
        if self.offset is not None:
            if self.limit is None:
                # SQLite only accepts OFFSET after a LIMIT
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {self.offset}")
        return " ".join(parts)

    @property
    def params(self) -> tuple[Any, ...]:
        return tuple(p for _, params in self.wheres for p in params)

    # -- Execution --

    async def fetch(self, db: Database) -> list[T]:
        return await db.fetch(self.cls, self.sql, *self.params)

    async def fetch_one(self, db: Database) -> T | None:
        return await db.fetch_one(self.cls, self.sql, *self.params)

    async def count(self, db: Database) -> int:
        """COUNT(*) over the WHERE clauses only; ordering and paging are ignored."""
        sql = " ".join(filter(None, [f"SELECT COUNT(*) FROM {self.table}", self.where_sql]))
        return await db.fetch_val(sql, *self.params, as_type=int) or 0

    async def exists(self, db: Database) -> bool:
        """True if at least one row matches (``SELECT 1 ... LIMIT 1``)."""
        sql = " ".join(filter(None, [f"SELECT 1 FROM {self.table}", self.where_sql, "LIMIT 1"]))
        return await db.fetch_val(sql, *self.params) is not None
