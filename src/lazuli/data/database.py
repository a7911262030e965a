"""Async SQLite access.

SQL in, dataclasses (or dicts) out. Not an ORM.

Connection URL format::

    sqlite:///path/to/app.db    # file
    sqlite:///:memory:          # in-memory
    app.db                      # a bare path works too

Usage::

    db = Database("sqlite:///app.db")

    @dataclass(frozen=True, slots=True)
    class User:
        id: int
        name: str

    users = await db.fetch(User, "SELECT * FROM users WHERE active = ?", True)
    count = await db.fetch_val("SELECT COUNT(*) FROM users")

Handlers get the database through a provider::

    app.provide(Database, lambda: db)

    @app.get("/users")
    async def users(ctx, db: Database): ...

Concurrency:
    One connection per ``Database``. Statements are serialized with an
    ``anyio.Lock``; inside ``transaction()`` the task holding the lock
    reuses the connection through a ContextVar.
"""

import sys
import threading
import time
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import anyio

from lazuli.data._mapping import map_row, map_rows
from lazuli.data._sqlite import SQLiteConnection
from lazuli.data.errors import DataError, QueryError

# Set inside transaction(); queries in the same task reuse its connection
_current_conn: ContextVar[SQLiteConnection] = ContextVar("lazuli_db_conn")


def parse_sqlite_path(url: str) -> str:
    """File path of a ``sqlite://`` URL. Other strings are taken as paths."""
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            path = url[len(prefix) :]
            if not path:
                msg = f"Invalid SQLite URL: {url!r}"
                raise DataError(msg)
            return path
    if "://" in url:
        msg = f"Unsupported database URL: {url!r}. Use sqlite:///path or a file path."
        raise DataError(msg)
    return url


class Database:
    """Typed async database access over a single SQLite connection.

    Args:
        url: ``sqlite:///path``, ``sqlite:///:memory:`` or a file path.
        echo: Print every statement with its timing to stderr.
    """

    __slots__ = ("_async_lock", "_conn", "_lock", "echo", "path", "url")

    def __init__(self, url: str, /, *, echo: bool = False) -> None:
        self.url = url
        self.path = parse_sqlite_path(url)
        self.echo = echo
        self._conn: SQLiteConnection | None = None
        self._lock = threading.Lock()
        self._async_lock: anyio.Lock | None = None

    def __repr__(self) -> str:
        return f"Database({self.url!r})"

    # -- Connection management --

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[SQLiteConnection]:
        current = _current_conn.get(None)
        if current is not None:
            yield current
            return

        conn = await self.connect()
        async with self._statement_lock():
            yield conn

    def _statement_lock(self) -> anyio.Lock:
        # Created lazily: there is no event loop in __init__
        if self._async_lock is None:
            self._async_lock = anyio.Lock()
        return self._async_lock

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the statements of the block atomically.

        Commits on clean exit, rolls back on exception. A nested
        ``transaction()`` joins the outer one::

            async with db.transaction():
                await db.execute("INSERT INTO users (name) VALUES (?)", name)
                await db.execute("INSERT INTO audit (what) VALUES (?)", "signup")
        """
        if _current_conn.get(None) is not None:
            yield
            return

        conn = await self.connect()
        async with self._statement_lock():
            token = _current_conn.set(conn)
            try:
                await conn.begin()
                yield
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
            finally:
                _current_conn.reset(token)

    # -- Echo --

    def _log_query(self, sql: str, params: Sequence[Any], elapsed: float) -> None:
        if not self.echo:
            return
        param_str = f"  params={params!r}" if params else ""
        print(f"[lazuli.data] {elapsed * 1000:6.1f}ms  {sql}{param_str}", file=sys.stderr)

    # -- Queries --

    async def fetch[T](self, cls: type[T], sql: str, /, *params: Any) -> list[T]:
        """All rows of *sql* as *cls* instances (a dataclass, or ``dict``)."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                rows = await conn.fetch_all(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)
        return map_rows(cls, rows)

    async def fetch_one[T](self, cls: type[T], sql: str, /, *params: Any) -> T | None:
        """The first row of *sql* as a *cls*, or ``None``."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                row = await conn.fetch_one(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)
        return map_row(cls, row) if row is not None else None

    async def fetch_val(self, sql: str, /, *params: Any, as_type: type | None = None) -> Any:
        """First column of the first row, or ``None``. Handy for ``COUNT(*)``."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                row = await conn.fetch_one(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)
        if row is None:
            return None
        value = next(iter(row.values()))
        if as_type is not None and value is not None:
            return as_type(value)
        return value

    async def execute(self, sql: str, /, *params: Any) -> int:
        """Run an INSERT/UPDATE/DELETE (or DDL) and return the rows affected."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await conn.execute(sql, params)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params, time.perf_counter() - t0)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]], /) -> int:
        """Run *sql* once per parameter set. Returns the total rows affected."""
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                return await conn.execute_many(sql, params_seq)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, params_seq, time.perf_counter() - t0)

    async def execute_script(self, sql: str, /) -> None:
        """Run several ``;``-separated statements, e.g. a schema::

            await db.execute_script(";".join([
                create_table("users", [("id", types.integer), ("name", types.text)]),
                create_index("users", "name"),
            ]))
        """
        t0 = time.perf_counter()
        async with self._connection() as conn:
            try:
                await conn.execute_script(sql)
            except Exception as exc:
                raise QueryError(str(exc)) from exc
            finally:
                self._log_query(sql, (), time.perf_counter() - t0)

    # -- Lifecycle --

    async def connect(self) -> SQLiteConnection:
        """Open the connection if needed and return it.

        Called on first query. Call it at startup to fail fast.
        """
        if self._conn is not None:
            return self._conn
        conn = await SQLiteConnection.open(self.path)
        with self._lock:
            if self._conn is None:
                self._conn = conn
                return conn
        # Another task opened it first
        await conn.close()
        return self._conn

    async def disconnect(self) -> None:
        """Close the connection. Safe to call twice."""
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.disconnect()
