"""Tests for lazuli.http primitives: headers, query params, cookies, request, response."""

import pytest

from lazuli.http.cookies import SetCookie, parse_cookies
from lazuli.http.headers import Headers
from lazuli.http.query import QueryParams
from lazuli.http.request import Request
from lazuli.http.response import Response


def _request(scope_extra: dict, messages: list[dict] | None = None) -> Request:
    pending = list(messages or [{"type": "http.request", "body": b"", "more_body": False}])

    async def receive() -> dict:
        return pending.pop(0)

    scope = {"type": "http", "method": "post", "path": "/", "headers": [], **scope_extra}
    return Request.from_asgi(scope, receive)


class TestHeaders:
    def test_case_insensitive(self) -> None:
        headers = Headers(((b"Content-Type", b"text/plain"),))
        assert headers["content-type"] == "text/plain"
        assert "CONTENT-TYPE" in headers
        assert headers.get("accept") is None

    def test_repeated_values(self) -> None:
        headers = Headers(((b"accept", b"a"), (b"Accept", b"b"), (b"host", b"x")))
        assert headers["accept"] == "a"
        assert headers.get_list("accept") == ["a", "b"]
        assert list(headers) == ["accept", "host"]
        assert len(headers) == 2

    def test_missing(self) -> None:
        with pytest.raises(KeyError):
            Headers()["host"]


class TestQueryParams:
    def test_first_value_and_list(self) -> None:
        params = QueryParams(b"tag=a&tag=b&page=2")
        assert params["tag"] == "a"
        assert params.get_list("tag") == ["a", "b"]
        assert params.get_list("nope") == []
        assert params.to_dict() == {"tag": "a", "page": "2"}

    def test_blank_values_kept(self) -> None:
        assert QueryParams("flag=&x=1")["flag"] == ""

    def test_canonical_sorts_names(self) -> None:
        assert QueryParams("b=2&a=x+y").canonical == "a=x+y&b=2"
        assert QueryParams("b=2&a=1").raw == "b=2&a=1"


class TestCookies:
    def test_parse(self) -> None:
        assert parse_cookies("a=1; b = two%20words; junk; =x") == {"a": "1", "b": "two words"}
        assert parse_cookies("") == {}

    def test_serialize(self) -> None:
        cookie = SetCookie("sid", "abc", max_age=0, domain="example.com", secure=True, samesite=None)
        assert cookie.to_header_value() == "sid=abc; Max-Age=0; Path=/; Domain=example.com; Secure; HttpOnly"


class TestRequest:
    def test_metadata(self) -> None:
        request = _request(
            {
                "query_string": b"q=1",
                "headers": [(b"content-type", b"application/json; charset=utf-8")],
                "server": ("example.com", 8080),
            }
        )
        assert request.method == "POST"
        assert request.url == "/?q=1"
        assert request.host == "example.com:8080"
        assert request.is_json
        assert not request.is_form

    def test_host_header_wins(self) -> None:
        request = _request({"headers": [(b"host", b"site.test")], "server": ("0.0.0.0", 80)})
        assert request.host == "site.test"

    def test_default_port_hidden(self) -> None:
        assert _request({"server": ("example.com", 80)}).host == "example.com"
        assert _request({}).host == "localhost"

    async def test_body_joins_chunks_once(self) -> None:
        request = _request(
            {},
            [
                {"type": "http.request", "body": b'{"a": ', "more_body": True},
                {"type": "http.request", "body": b"1}", "more_body": False},
            ],
        )
        assert await request.json() == {"a": 1}
        assert await request.body() == b'{"a": 1}'

    async def test_disconnect_ends_body(self) -> None:
        request = _request({}, [{"type": "http.disconnect"}])
        assert await request.body() == b""

    async def test_form(self) -> None:
        request = _request(
            {"headers": [(b"content-type", b"application/x-www-form-urlencoded")]},
            [{"type": "http.request", "body": b"name=ada&tag=a&tag=b"}],
        )
        assert request.is_form
        form = await request.form()
        assert form["name"] == "ada"
        assert form.get_list("tag") == ["a", "b"]


class TestResponse:
    def test_transformations_return_copies(self) -> None:
        base = Response("hi")
        changed = base.with_status(201).with_header("X-A", "1").with_cookie(SetCookie("a", "b"))
        assert base.status == 200
        assert base.headers == ()
        assert changed.status == 201
        assert changed.header("x-a") == "1"
        assert len(changed.cookies) == 1

    def test_body_conversions(self) -> None:
        assert Response("é").body_bytes == "é".encode()
        assert Response(b"abc").text == "abc"
        assert Response().header("missing", "dflt") == "dflt"
