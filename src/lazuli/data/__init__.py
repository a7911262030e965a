"""Async SQLite access, query building, pagination and schema builders.

SQL in, dataclasses out. Not an ORM::

    from lazuli.data import Database, OffsetPaginator, Query

    db = Database("sqlite:///app.db")
    pager = OffsetPaginator(db, Query(User, "users").order_by("id"), per_page=20)
    first = await pager.get_page(1)
"""

from lazuli.data.database import Database
from lazuli.data.errors import DataError, QueryError
from lazuli.data.pagination import CursorPage, OffsetPaginator, OrderedPaginator, Paginator
from lazuli.data.query import Query

__all__ = [
    "CursorPage",
    "DataError",
    "Database",
    "OffsetPaginator",
    "OrderedPaginator",
    "Paginator",
    "Query",
    "QueryError",
]
