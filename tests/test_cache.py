"""Tests for lazuli.cache: the page store and the cached() wrapper."""

import time

import pytest

from lazuli.app import App
from lazuli.cache import HIT_HEADER, CachedPage, PageCache, cached, page_key
from lazuli.config import AppConfig
from lazuli.testing import TestClient


def _page(body: str = "x", expires_at: float | None = None) -> CachedPage:
    return CachedPage(200, "text/html; charset=utf-8", body, expires_at)


class TestPageKey:
    def test_bare_path(self) -> None:
        assert page_key("/feed") == "/feed"
        assert page_key("/feed", {}) == "/feed"

    def test_params_sorted(self) -> None:
        assert page_key("/feed", {"b": 2, "a": "x y"}) == "/feed?a=x+y&b=2"
        assert page_key("/feed", {"a": "x y", "b": 2}) == page_key("/feed", {"b": 2, "a": "x y"})


class TestPageCache:
    def test_set_and_get(self) -> None:
        cache = PageCache()
        cache.set("/a", _page("A"))
        assert cache.get("/a").body == "A"
        assert "/a" in cache
        assert len(cache) == 1

    def test_missing(self) -> None:
        assert PageCache().get("/nope") is None

    def test_expired_page_is_dropped(self) -> None:
        cache = PageCache()
        cache.set("/old", _page(expires_at=time.monotonic() - 1))
        assert cache.get("/old") is None
        assert len(cache) == 0

    def test_expired_check(self) -> None:
        assert _page(expires_at=10.0).expired(10.0)
        assert not _page(expires_at=10.0).expired(9.9)
        assert not _page().expired(1e12)

    def test_lru_eviction(self) -> None:
        cache = PageCache(max_entries=2)
        cache.set("/a", _page())
        cache.set("/b", _page())
        cache.get("/a")
        cache.set("/c", _page())

        assert "/a" in cache
        assert "/b" not in cache
        assert "/c" in cache

    def test_invalid_max_entries(self) -> None:
        with pytest.raises(ValueError):
            PageCache(max_entries=0)

    def test_delete_by_key_and_pair(self) -> None:
        cache = PageCache()
        cache.set("/a", _page())
        cache.set(page_key("/b", {"page": 2}), _page())
        cache.delete("/a", ("/b", {"page": 2}), "/never-stored")
        assert len(cache) == 0

    def test_delete_path_removes_every_query(self) -> None:
        cache = PageCache()
        cache.set("/feed", _page())
        cache.set("/feed?page=2", _page())
        cache.set("/feeds", _page())
        cache.delete_path("/feed")
        assert "/feeds" in cache
        assert len(cache) == 1

    def test_delete_all(self) -> None:
        cache = PageCache()
        cache.set("/a", _page())
        cache.delete_all()
        assert len(cache) == 0

    def test_to_response_marks_hit(self) -> None:
        response = _page("body").to_response()
        assert response.header(HIT_HEADER) == "1"
        assert response.text == "body"


class TestCachedWrapper:
    def _app(self, cache: PageCache, **options) -> tuple[App, list[int]]:
        calls: list[int] = []
        app = App(AppConfig(layout=False))

        @app.match("feed", "/feed")
        @cached(cache=cache, **options)
        def feed(ctx):
            calls.append(1)
            return f"feed {len(calls)}"

        return app, calls

    async def test_second_get_is_a_hit(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache)

        async with TestClient(app) as client:
            first = await client.get("/feed")
            second = await client.get("/feed")

        assert first.text == second.text == "feed 1"
        assert first.header(HIT_HEADER) is None
        assert second.header(HIT_HEADER) == "1"
        assert len(calls) == 1

    async def test_query_order_shares_entry(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache)

        async with TestClient(app) as client:
            await client.get("/feed?a=1&b=2")
            response = await client.get("/feed?b=2&a=1")

        assert response.header(HIT_HEADER) == "1"
        assert "/feed?a=1&b=2" in cache
        assert len(calls) == 1

    async def test_different_query_is_a_miss(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache)

        async with TestClient(app) as client:
            await client.get("/feed?page=1")
            await client.get("/feed?page=2")

        assert len(calls) == 2

    async def test_post_bypasses_cache(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache)

        async with TestClient(app) as client:
            await client.post("/feed")
            await client.post("/feed")

        assert len(calls) == 2
        assert len(cache) == 0

    async def test_when_predicate(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache, when=lambda ctx: "nocache" not in ctx.params)

        async with TestClient(app) as client:
            await client.get("/feed?nocache=1")
            await client.get("/feed?nocache=1")

        assert len(calls) == 2

    async def test_custom_key(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache, cache_key=lambda path, params: path)

        async with TestClient(app) as client:
            await client.get("/feed?page=1")
            await client.get("/feed?page=2")

        assert len(calls) == 1
        assert "/feed" in cache

    async def test_expiry_sets_deadline(self) -> None:
        cache = PageCache()
        app, _ = self._app(cache, exptime=60)

        async with TestClient(app) as client:
            await client.get("/feed")

        page = cache.get("/feed")
        assert page is not None
        assert page.expires_at is not None
        assert page.expires_at > time.monotonic()

    async def test_errors_are_not_stored(self) -> None:
        cache = PageCache()
        app = App(AppConfig(layout=False))

        @app.get("/missing")
        @cached(cache=cache)
        def missing(ctx):
            return "not here", 404

        async with TestClient(app) as client:
            response = await client.get("/missing")

        assert response.status == 404
        assert len(cache) == 0

    async def test_delete_path_forces_refresh(self) -> None:
        cache = PageCache()
        app, calls = self._app(cache)

        async with TestClient(app) as client:
            await client.get("/feed")
            cache.delete_path("/feed")
            response = await client.get("/feed")

        assert response.text == "feed 2"
        assert len(calls) == 2
