"""Tests for lazuli.actions: error capture, verb dispatch, JSON params and named actions."""

import json

import pytest

from lazuli.actions import (
    assert_error,
    capture_errors,
    capture_errors_json,
    json_params,
    respond_to,
    yield_error,
)
from lazuli.app import App
from lazuli.config import AppConfig
from lazuli.errors import ConfigurationError, ValidationError
from lazuli.http.directive import Directive
from lazuli.testing import TestClient


@pytest.fixture
def action_package(tmp_path, monkeypatch):
    """A throwaway ``actions`` package importable for one test."""
    name = f"lazuli_test_actions_{tmp_path.name.replace('-', '_')}"
    package = tmp_path / name
    package.mkdir()
    (package / "__init__.py").write_text("")
    monkeypatch.syspath_prepend(str(tmp_path))
    return name, package


class TestYieldError:
    def test_yield_error_raises(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            yield_error("nope")
        assert exc_info.value.messages == ["nope"]

    def test_assert_error_passes_value_through(self) -> None:
        assert assert_error("ada", "name required") == "ada"

    def test_assert_error_raises_on_falsy(self) -> None:
        with pytest.raises(ValidationError, match="name required"):
            assert_error("", "name required")

    def test_validation_error_many_messages(self) -> None:
        exc = ValidationError(["one", "two"])
        assert exc.messages == ["one", "two"]
        assert str(exc) == "one; two"


class TestCaptureErrors:
    async def test_success_passes_through(self) -> None:
        app = App(AppConfig(layout=False))

        @app.get("/")
        @capture_errors
        def index(ctx):
            return "fine"

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.text == "fine"

    async def test_default_rerenders_route_view(self) -> None:
        from lazuli.html import Widget

        class Form(Widget):
            def content(self):
                with self.tag("ul"):
                    for error in self.ctx.errors:
                        self.li(error)

        app = App(AppConfig(layout=False))

        @app.post("signup", "/signup")
        @capture_errors
        def signup(ctx):
            ctx.errors.append("ignored")
            assert_error(ctx.params.get("name"), "name is required")
            return "created"

        app.views._cache["signup"] = Form

        async with TestClient(app) as client:
            failed = await client.post("/signup", form={})
            created = await client.post("/signup", form={"name": "ada"})

        assert failed.text == "<ul><li>name is required</li></ul>"
        assert created.text == "created"

    async def test_on_error_handler(self) -> None:
        app = App(AppConfig(layout=False))

        def show_errors(ctx):
            return Directive(content="errors: " + ", ".join(ctx.errors), status=400)

        @app.post("/x")
        @capture_errors(on_error=show_errors)
        def action(ctx):
            raise ValidationError(["a", "b"])

        async with TestClient(app) as client:
            response = await client.post("/x")

        assert response.status == 400
        assert response.text == "errors: a, b"

    async def test_other_exceptions_still_fatal(self) -> None:
        app = App()

        @app.get("/x")
        @capture_errors
        def action(ctx):
            raise RuntimeError("not a validation error")

        async with TestClient(app) as client:
            response = await client.get("/x")

        assert response.status == 500

    async def test_capture_errors_json(self) -> None:
        app = App()

        @app.post("/api/things")
        @capture_errors_json
        def create(ctx):
            yield_error("title is required")

        async with TestClient(app) as client:
            response = await client.post("/api/things")

        assert response.content_type == "application/json"
        assert json.loads(response.text) == {"errors": ["title is required"]}


class TestRespondTo:
    def _app(self, before=None) -> App:
        app = App(AppConfig(layout=False))
        app.match(
            "login",
            "/login",
            respond_to(
                GET=lambda ctx: "form",
                POST=lambda ctx: f"welcome {ctx.params['name']}",
                before=before,
            ),
        )
        return app

    async def test_dispatches_on_verb(self) -> None:
        app = self._app()
        async with TestClient(app) as client:
            shown = await client.get("/login")
            posted = await client.post("/login", form={"name": "ada"})

        assert shown.text == "form"
        assert posted.text == "welcome ada"

    async def test_head_has_empty_body(self) -> None:
        app = self._app()
        async with TestClient(app) as client:
            response = await client.request("HEAD", "/login")

        assert response.status == 200
        assert response.text == ""

    async def test_unknown_verb_is_405(self) -> None:
        app = self._app()
        async with TestClient(app) as client:
            response = await client.delete("/login")

        assert response.status == 405
        assert response.header("allow") == "GET, HEAD, POST"

    async def test_before_runs_first(self) -> None:
        def load(ctx):
            ctx.params["name"] = ctx.params.get("name", "guest").upper()

        app = self._app(before=load)
        async with TestClient(app) as client:
            response = await client.post("/login", form={"name": "ada"})

        assert response.text == "welcome ADA"

    async def test_before_output_skips_verb_handler(self) -> None:
        app = self._app(before=lambda ctx: Directive(redirect_to="/"))
        async with TestClient(app) as client:
            response = await client.post("/login", form={"name": "ada"})

        assert response.status == 302
        assert response.header("location") == "/"


class TestJsonParams:
    async def test_merges_object_body(self) -> None:
        app = App()

        @app.post("/api/:id")
        @json_params
        def update(ctx):
            return {"params": ctx.params, "json": ctx.json}

        async with TestClient(app) as client:
            response = await client.post("/api/3?x=1", json={"name": "ada", "id": "9"})

        body = json.loads(response.text)
        assert body["params"] == {"x": "1", "id": "9", "name": "ada"}
        assert body["json"] == {"name": "ada", "id": "9"}

    async def test_invalid_json_is_ignored(self) -> None:
        app = App(AppConfig(layout=False))

        @app.post("/api")
        @json_params
        def update(ctx):
            return f"json={ctx.json!r}"

        async with TestClient(app) as client:
            response = await client.post(
                "/api", body=b"{not json", headers={"content-type": "application/json"}
            )

        assert response.text == "json=None"

    async def test_non_json_request_untouched(self) -> None:
        app = App(AppConfig(layout=False))

        @app.post("/api")
        @json_params
        def update(ctx):
            return ctx.params.get("name", "none")

        async with TestClient(app) as client:
            response = await client.post("/api", form={"name": "form"})

        assert response.text == "form"


class TestNamedActions:
    async def test_true_loads_action_module(self, action_package) -> None:
        name, package = action_package
        (package / "hello_world.py").write_text(
            "def action(ctx):\n    return 'hello from ' + ctx.route_name\n"
        )

        app = App(AppConfig(layout=False, actions_prefix=name))
        app.get("hello_world", "/hello", True)

        async with TestClient(app) as client:
            response = await client.get("/hello")

        assert response.text == "hello from hello_world"
        assert callable(app.find_action("hello_world", resolve=True))

    async def test_string_names_action_module(self, action_package) -> None:
        name, package = action_package
        (package / "greet.py").write_text("def action(ctx):\n    return 'greetings'\n")

        app = App(AppConfig(layout=False, actions_prefix=name))
        app.get("home", "/", "greet")

        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.text == "greetings"

    def test_missing_action_module(self, action_package) -> None:
        name, _ = action_package
        app = App(AppConfig(actions_prefix=name))
        app.get("absent", "/absent", True)

        with pytest.raises(ConfigurationError, match="No action module"):
            app.find_action("absent", resolve=True)

    def test_module_without_action(self, action_package) -> None:
        name, package = action_package
        (package / "empty.py").write_text("x = 1\n")
        app = App(AppConfig(actions_prefix=name))
        app.get("empty", "/empty", True)

        with pytest.raises(ConfigurationError, match="does not define"):
            app.find_action("empty", resolve=True)

    def test_broken_import_propagates(self, action_package) -> None:
        name, package = action_package
        (package / "broken.py").write_text("import lazuli_module_that_does_not_exist\n")
        app = App(AppConfig(actions_prefix=name))
        app.get("broken", "/broken", True)

        with pytest.raises(ModuleNotFoundError):
            app.find_action("broken", resolve=True)
