"""SQLite connection driven from async code.

Every blocking ``sqlite3`` call runs in an anyio worker thread. The
connection is opened with ``check_same_thread=False`` because consecutive
calls may land on different pool threads; the owning ``Database``
serializes access with an ``anyio.Lock``.
"""

import sqlite3
from collections.abc import Callable, Sequence
from typing import Any

import anyio.to_thread

type Row = dict[str, Any]


def _rows(cursor: sqlite3.Cursor, rows: list[Any]) -> list[Row]:
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    return [dict(zip(columns, row, strict=True)) for row in rows]


class SQLiteConnection:
    """One ``sqlite3.Connection`` with an async call surface.

    Statements run in autocommit mode. ``begin``/``commit``/``rollback``
    switch to an explicit transaction and back.
    """

    __slots__ = ("_conn",)

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    async def open(cls, path: str) -> SQLiteConnection:
        conn = await cls._run(
            lambda: sqlite3.connect(path, autocommit=True, check_same_thread=False)
        )
        self = cls(conn)
        await self.execute("PRAGMA foreign_keys=ON")
        if path != ":memory:":
            await self.execute("PRAGMA journal_mode=WAL")
        return self

    @staticmethod
    async def _run(func: Callable[[], Any]) -> Any:
        return await anyio.to_thread.run_sync(func)

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        def work() -> list[Row]:
            cursor = self._conn.execute(sql, params)
            return _rows(cursor, cursor.fetchall())

        return await self._run(work)

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Row | None:
        def work() -> Row | None:
            cursor = self._conn.execute(sql, params)
            row = cursor.fetchone()
            return _rows(cursor, [row])[0] if row is not None else None

        return await self._run(work)

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one statement and return the affected row count."""
        return await self._run(lambda: self._conn.execute(sql, params).rowcount)

    async def execute_many(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> int:
        return await self._run(lambda: self._conn.executemany(sql, params_seq).rowcount)

    async def execute_script(self, sql: str) -> None:
        """Run several statements. Commits any open transaction first."""
        await self._run(lambda: self._conn.executescript(sql))

    async def begin(self) -> None:
        self._conn.autocommit = False

    async def commit(self) -> None:
        await self._run(self._conn.commit)
        self._conn.autocommit = True

    async def rollback(self) -> None:
        await self._run(self._conn.rollback)
        self._conn.autocommit = True

    async def close(self) -> None:
        await self._run(self._conn.close)
