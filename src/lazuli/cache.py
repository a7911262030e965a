"""In-memory page cache for GET handlers.

The cache is an explicit object handed to the ``cached`` wrapper, so an app
can keep several (or none) and tests can inspect them::

    pages = PageCache(max_entries=500)

    @app.get("feed", "/feed")
    @cached(cache=pages, exptime=60)
    async def feed(ctx):
        ...

    pages.delete_path("/feed")     # after the feed changes

A hit answers with the stored status, content type and body, plus an
``x-memory-cache-hit: 1`` header. Only successful GET responses are stored.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from lazuli.context import RequestContext
from lazuli.http.response import Response
from lazuli.server.handler import call_action
from lazuli.server.render import render_context

logger = logging.getLogger("lazuli.cache")

HIT_HEADER = "x-memory-cache-hit"

type CacheKeyFunc = Callable[[str, Mapping[str, Any]], str]


def page_key(path: str, params: Mapping[str, Any] | None = None) -> str:
    """Key for *path* and *params*, independent of parameter order."""
    if not params:
        return path
    return f"{path}?{urlencode(sorted((str(k), str(v)) for k, v in params.items()))}"


@dataclass(frozen=True, slots=True)
class CachedPage:
    """A stored response."""

    status: int
    content_type: str
    body: str | bytes
    expires_at: float | None = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_response(self) -> Response:
        return Response(
            body=self.body,
            status=self.status,
            content_type=self.content_type,
            headers=((HIT_HEADER, "1"),),
        )


class PageCache:
    """Thread-safe store of rendered pages keyed by path and query.

    Args:
        max_entries: Upper bound on stored pages. The least recently used
            page is evicted first. ``None`` means unbounded.
    """

    __slots__ = ("_lock", "_pages", "max_entries")

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self.max_entries = max_entries
        self._pages: OrderedDict[str, CachedPage] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pages)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def get(self, key: str) -> CachedPage | None:
        """The live page stored under *key*, or ``None``."""
        now = time.monotonic()
        with self._lock:
            page = self._pages.get(key)
            if page is None:
                return None
            if page.expired(now):
                del self._pages[key]
                return None
            self._pages.move_to_end(key)
            return page

    def set(self, key: str, page: CachedPage) -> None:
        with self._lock:
            self._pages[key] = page
            self._pages.move_to_end(key)
            if self.max_entries is not None:
                while len(self._pages) > self.max_entries:
                    self._pages.popitem(last=False)

    def delete(self, *keys: str | tuple[str, Mapping[str, Any]]) -> None:
        """Remove pages by key or by ``(path, params)`` pair."""
        with self._lock:
            for key in keys:
                if isinstance(key, tuple):
                    key = page_key(*key)
                self._pages.pop(key, None)

    def delete_path(self, path: str) -> None:
        """Remove every page stored for *path*, whatever its query."""
        with self._lock:
            for key in [k for k in self._pages if k == path or k.startswith(f"{path}?")]:
                del self._pages[key]

    def delete_all(self) -> None:
        with self._lock:
            self._pages.clear()


def _request_key(ctx: RequestContext) -> str:
    request = ctx.request
    query = request.query.canonical
    return f"{request.path}?{query}" if query else request.path


def cached(
    fn: Callable[..., Any] | None = None,
    *,
    cache: PageCache,
    exptime: float = 0,
    cache_key: CacheKeyFunc | None = None,
    when: Callable[[RequestContext], bool] | None = None,
) -> Any:
    """Serve a GET handler's output from *cache*.

    Args:
        cache: Where pages are stored.
        exptime: Seconds a page stays fresh. ``0`` keeps it until deleted.
        cache_key: ``(path, params) -> str`` replacing the default key of
            path plus sorted query string.
        when: Predicate on the context; the cache is bypassed when it
            returns false.
    """
    if fn is None:
        return functools.partial(
            cached, cache=cache, exptime=exptime, cache_key=cache_key, when=when
        )

    @functools.wraps(fn)
    async def caching(ctx: RequestContext) -> Any:
        request = ctx.request
        if request.method != "GET" or (when is not None and not when(ctx)):
            return await call_action(fn, ctx)

        if cache_key is not None:
            key = cache_key(request.path, request.query.to_dict())
        else:
            key = _request_key(ctx)

        page = cache.get(key)
        if page is not None:
            logger.debug("Cache hit %s", key)
            return page.to_response()

        logger.debug("Cache miss %s", key)
        ctx.write(await call_action(fn, ctx))
        response = render_context(ctx)
        if response.status == 200:
            expires_at = time.monotonic() + exptime if exptime > 0 else None
            cache.set(key, CachedPage(response.status, response.content_type, response.body, expires_at))
        return response

    return caching
