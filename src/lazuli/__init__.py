"""Lazuli: a small web framework of routes, actions and widgets.

Basic usage::

    from lazuli import App, Directive

    app = App()

    @app.get("index", "/")
    def index(ctx):
        return "Hello, World!"          # wrapped in the default layout

    @app.get("user", "/users/:id")
    async def user(ctx, id: int):
        ctx.user = await load_user(id)
        return Directive(render="user")  # views.user:User widget

    app.run()

Expected failures are raised with ``yield_error`` inside a route wrapped
in ``capture_errors``; everything else lands on the error page.
"""

# Declare free-threading support (PEP 703)
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "ConfigurationError",
    "Directive",
    "HTTPError",
    "LazuliError",
    "MethodNotAllowed",
    "NotFound",
    "Redirect",
    "Request",
    "RequestContext",
    "Response",
    "Template",
    "ValidationError",
    "Widget",
    "assert_error",
    "capture_errors",
    "capture_errors_json",
    "get_context",
    "get_request",
    "json_params",
    "respond_to",
    "yield_error",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import lazuli`` fast while providing a clean top-level API.
    """
    if name == "App":
        from lazuli.app import App

        return App

    if name == "AppConfig":
        from lazuli.config import AppConfig

        return AppConfig

    if name == "Request":
        from lazuli.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from lazuli.http import response as _resp

        return getattr(_resp, name)

    if name == "Directive":
        from lazuli.http.directive import Directive

        return Directive

    if name == "Template":
        from lazuli.templating.returns import Template

        return Template

    if name == "Widget":
        from lazuli.html import Widget

        return Widget

    if name in ("RequestContext", "get_context", "get_request"):
        from lazuli import context as _ctx

        return getattr(_ctx, name)

    if name in (
        "assert_error",
        "capture_errors",
        "capture_errors_json",
        "json_params",
        "respond_to",
        "yield_error",
    ):
        from lazuli import actions as _actions

        return getattr(_actions, name)

    if name in (
        "ConfigurationError",
        "HTTPError",
        "LazuliError",
        "MethodNotAllowed",
        "NotFound",
        "ValidationError",
    ):
        from lazuli import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
