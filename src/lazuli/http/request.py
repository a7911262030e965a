"""Immutable HTTP request.

Frozen metadata with async body access. Everything mutable about a request
in flight (params, errors, output) lives on the ``RequestContext`` instead.
"""

from __future__ import annotations

import json as json_module
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from lazuli._internal.asgi import Receive
from lazuli.http.cookies import parse_cookies
from lazuli.http.headers import Headers
from lazuli.http.query import QueryParams

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata is frozen at creation. The body is read once, on demand, through
    ``body()``, ``text()``, ``json()`` or ``form()`` and cached.
    """

    method: str
    path: str
    headers: Headers
    query: QueryParams
    http_version: str
    scheme: str
    server: tuple[str, int] | None
    client: tuple[str, int] | None
    cookies: Mapping[str, str]

    _receive: Receive

    # The field is frozen, the dict it points to is not.
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    @property
    def is_json(self) -> bool:
        return (self.content_type or "").split(";")[0].strip().lower() == "application/json"

    @property
    def is_form(self) -> bool:
        return (self.content_type or "").split(";")[0].strip().lower() == FORM_CONTENT_TYPE

    @property
    def host(self) -> str:
        """``Host`` header, or ``server`` from the scope, with non-default ports."""
        header = self.headers.get("host")
        if header:
            return header
        if self.server is None:
            return "localhost"
        name, port = self.server
        if _DEFAULT_PORTS.get(self.scheme) == port:
            return name
        return f"{name}:{port}"

    @property
    def url(self) -> str:
        """Path plus query string."""
        qs = self.query.raw
        if qs:
            return f"{self.path}?{qs}"
        return self.path

    # -- Async body access --

    async def body(self) -> bytes:
        """The whole request body, read from ``receive`` on the first call."""
        if "_body" not in self._cache:
            buffer = bytearray()
            more = True
            while more:
                message = await self._receive()
                if message["type"] == "http.disconnect":
                    break
                buffer += message.get("body", b"")
                more = message.get("more_body", False)
            self._cache["_body"] = bytes(buffer)
        return self._cache["_body"]

    async def text(self) -> str:
        """Read the body as UTF-8 text."""
        raw = await self.body()
        return raw.decode("utf-8")

    async def json(self) -> Any:
        """Parse the body as JSON.

        Raises ``ValueError`` for malformed input.
        """
        raw = await self.body()
        return json_module.loads(raw)

    async def form(self) -> QueryParams:
        """Parse an urlencoded body (cached after the first call)."""
        if "_form" in self._cache:
            return self._cache["_form"]
        result = QueryParams(await self.body())
        self._cache["_form"] = result
        return result

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        headers = Headers(tuple(scope.get("headers", ())))
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"].upper(),
            path=scope["path"],
            headers=headers,
            query=QueryParams(scope.get("query_string", b"")),
            http_version=scope.get("http_version", "1.1"),
            scheme=scope.get("scheme", "http"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            cookies=parse_cookies(headers.get("cookie", "")),
            _receive=receive,
        )
