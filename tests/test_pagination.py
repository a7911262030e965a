"""Tests for lazuli.data.pagination: offset and keyset paginators."""

from dataclasses import dataclass

import pytest

from lazuli.data import CursorPage, Database, OffsetPaginator, OrderedPaginator, Query


@dataclass(frozen=True, slots=True)
class Event:
    id: int
    day: int
    title: str


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'events.db'}")
    await database.execute(
        "CREATE TABLE events (id INTEGER PRIMARY KEY, day INTEGER NOT NULL, title TEXT NOT NULL)"
    )
    await database.execute_many(
        "INSERT INTO events (id, day, title) VALUES (?, ?, ?)",
        [(i, (i + 1) // 2, f"event {i}") for i in range(1, 8)],
    )
    yield database
    await database.disconnect()


def _events() -> Query[Event]:
    return Query(Event, "events").order_by("id")


class TestOffsetPaginator:
    async def test_get_page(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=3)
        assert [e.id for e in await pager.get_page(1)] == [1, 2, 3]
        assert [e.id for e in await pager.get_page(3)] == [7]
        assert await pager.get_page(4) == []

    async def test_page_below_one_is_first(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=3)
        assert [e.id for e in await pager.get_page(0)] == [1, 2, 3]

    async def test_counts(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=3)
        assert await pager.total_items() == 7
        assert await pager.num_pages() == 3
        assert await pager.has_items()

    async def test_empty(self, db) -> None:
        pager = OffsetPaginator(db, _events().where("day > ?", 100))
        assert await pager.num_pages() == 0
        assert not await pager.has_items()
        assert [page async for page in pager.each_page()] == []

    async def test_get_all_ignores_paging(self, db) -> None:
        pager = OffsetPaginator(db, _events().take(2), per_page=2)
        assert len(await pager.get_all()) == 7

    async def test_each_page(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=3)
        pages = [[e.id for e in page] async for page in pager.each_page()]
        assert pages == [[1, 2, 3], [4, 5, 6], [7]]

    async def test_each_page_from_start(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=3)
        pages = [page async for page in pager.each_page(starting_page=2)]
        assert len(pages) == 2

    async def test_each_item(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=2)
        assert [e.id async for e in pager.each_item()] == list(range(1, 8))

    async def test_prepare_results(self, db) -> None:
        seen: list[int] = []

        async def annotate(items):
            seen.append(len(items))
            return [item.title.upper() for item in items]

        pager = OffsetPaginator(db, _events(), per_page=4, prepare_results=annotate)
        assert await pager.get_page(2) == ["EVENT 5", "EVENT 6", "EVENT 7"]
        assert seen == [3]

    async def test_prepare_results_returning_none_keeps_items(self, db) -> None:
        pager = OffsetPaginator(db, _events(), per_page=2, prepare_results=lambda items: None)
        assert len(await pager.get_page()) == 2

    def test_per_page_must_be_positive(self) -> None:
        db = Database("sqlite:///:memory:")
        with pytest.raises(ValueError):
            OffsetPaginator(db, _events(), per_page=0)


class TestOrderedPaginator:
    async def test_first_page_and_cursor(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=3)
        page = await pager.get_page()
        assert isinstance(page, CursorPage)
        assert [e.id for e in page] == [1, 2, 3]
        assert page.cursor == (3,)
        assert len(page) == 3

    async def test_next_page_from_cursor(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=3)
        first = await pager.get_page()
        second = await pager.get_page(*first.cursor)
        assert [e.id for e in second] == [4, 5, 6]

    async def test_empty_page_has_no_cursor(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=3)
        page = await pager.get_page(7)
        assert not page
        assert page.cursor is None

    async def test_descending(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", order="desc", per_page=2)
        first = await pager.get_page()
        second = await pager.get_page(*first.cursor)
        assert [e.id for e in first] == [7, 6]
        assert [e.id for e in second] == [5, 4]

    async def test_after_and_before(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", order="desc", per_page=2)
        assert [e.id for e in await pager.after(2)] == [3, 4]
        assert [e.id for e in await pager.before(5)] == [4, 3]

    async def test_composite_key(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), ("day", "id"), per_page=3)
        first = await pager.get_page()
        assert [e.id for e in first] == [1, 2, 3]
        assert first.cursor == (2, 3)
        second = await pager.get_page(*first.cursor)
        assert [e.id for e in second] == [4, 5, 6]

    async def test_keeps_query_filters(self, db) -> None:
        query = Query(Event, "events").where("day >= ?", 3)
        pager = OrderedPaginator(db, query, "id", per_page=10)
        assert [e.id for e in await pager.get_page()] == [5, 6, 7]

    async def test_replaces_query_order(self, db) -> None:
        query = Query(Event, "events").order_by("title DESC")
        pager = OrderedPaginator(db, query, "id", per_page=2)
        assert [e.id for e in await pager.get_page()] == [1, 2]

    async def test_each_page(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=3)
        pages = [[e.id for e in page] async for page in pager.each_page()]
        assert pages == [[1, 2, 3], [4, 5, 6], [7]]

    async def test_each_page_sees_appended_rows_once(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), "id", per_page=3)
        seen: list[int] = []
        next_id = 8

        async for page in pager.each_page():
            seen.extend(e.id for e in page)
            if next_id <= 10:
                await db.execute(
                    "INSERT INTO events (id, day, title) VALUES (?, ?, ?)",
                    next_id,
                    9,
                    f"late {next_id}",
                )
                next_id += 1

        assert sorted(seen) == list(range(1, 11))
        assert len(seen) == len(set(seen))

    async def test_dict_rows(self, db) -> None:
        pager = OrderedPaginator(db, Query(dict, "events").select("id, title"), "id", per_page=2)
        page = await pager.get_page()
        assert page.cursor == (2,)

    async def test_wrong_cursor_length(self, db) -> None:
        pager = OrderedPaginator(db, Query(Event, "events"), ("day", "id"))
        with pytest.raises(ValueError, match="cursor values"):
            await pager.get_page(1)

    def test_invalid_order(self) -> None:
        db = Database("sqlite:///:memory:")
        with pytest.raises(ValueError, match="order"):
            OrderedPaginator(db, Query(Event, "events"), "id", order="sideways")
