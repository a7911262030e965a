"""Tests for lazuli.testing.mock_request."""

import pytest

from lazuli.app import App
from lazuli.config import AppConfig
from lazuli.testing import mock_request


@pytest.fixture
def app() -> App:
    app = App(AppConfig(layout=False))

    @app.match("echo", "/echo")
    def echo(ctx):
        return f"{ctx.request.method} {ctx.params.get('name', '-')}"

    @app.get("/data")
    def data(ctx):
        return {"items": [1, 2]}

    @app.get("/teapot")
    def teapot(ctx):
        return "short and stout", 418, {"X-Kind": "teapot"}

    return app


class TestMockRequest:
    async def test_get(self, app) -> None:
        status, body, headers = await mock_request(app, "/echo?name=ada")
        assert status == 200
        assert body == "GET ada"
        assert headers["content-type"].startswith("text/html")

    async def test_post_form_implies_post(self, app) -> None:
        _, body, _ = await mock_request(app, "/echo", post={"name": "bo"})
        assert body == "POST bo"

    async def test_raw_data_implies_post(self, app) -> None:
        _, body, _ = await mock_request(app, "/echo", data="raw")
        assert body == "POST -"

    async def test_explicit_method(self, app) -> None:
        _, body, _ = await mock_request(app, "/echo", method="PUT")
        assert body == "PUT -"

    async def test_expect_json(self, app) -> None:
        status, body, headers = await mock_request(app, "/data", expect="json")
        assert body == {"items": [1, 2]}
        assert headers["content-type"].startswith("application/json")

    async def test_status_and_headers(self, app) -> None:
        status, body, headers = await mock_request(app, "/teapot")
        assert status == 418
        assert headers["x-kind"] == "teapot"

    async def test_unknown_expect(self, app) -> None:
        with pytest.raises(ValueError, match="expect"):
            await mock_request(app, "/echo", expect="xml")
