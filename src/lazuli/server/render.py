"""Response rendering: turns a finished ``RequestContext`` into a ``Response``.

Precedence, highest first:

1. A ``Response`` written to the context is sent untouched.
2. ``redirect_to``: ``Location`` header, status 302 unless given, no body.
3. ``json``: serialized value, ``application/json``, never wrapped in a layout.
4. ``render``: the view's output, wrapped in the layout.
5. Text written to the context (bare string returns), wrapped in the layout.

The layout is ``Directive.layout`` when given, else ``AppConfig.layout``.
``None`` selects the built-in ``DefaultLayout`` and ``False`` disables it.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from kida.utils.html import Markup

from lazuli.errors import ConfigurationError
from lazuli.html import Widget
from lazuli.http.directive import UNSET
from lazuli.http.response import Response
from lazuli.templating.integration import render_layout, render_template
from lazuli.templating.returns import Template
from lazuli.util.autoload import missing_module

if TYPE_CHECKING:
    from lazuli.context import RequestContext

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
JSON_CONTENT_TYPE = "application/json"


def render_context(ctx: RequestContext) -> Response:
    """Build the response for everything written to *ctx*."""
    if ctx.response is not None:
        return ctx.response

    headers = dict(ctx.option("headers", None) or {})
    status = ctx.option("status")
    content_type = ctx.option("content_type")

    redirect_to = ctx.option("redirect_to")
    if redirect_to is not UNSET:
        return Response(
            body="",
            status=status or 302,
            content_type=content_type or HTML_CONTENT_TYPE,
            headers=(("Location", str(redirect_to)), *headers.items()),
        )

    payload = ctx.option("json")
    if payload is not UNSET:
        return Response(
            body=json.dumps(payload, default=str),
            status=status or 200,
            content_type=content_type or JSON_CONTENT_TYPE,
            headers=tuple(headers.items()),
        )

    inner = ctx.buffer
    view = ctx.option("render")
    if view is not UNSET and view is not False and view is not None:
        inner += render_view(ctx, view)

    layout = ctx.option("layout")
    if layout is UNSET:
        layout = ctx.app.config.layout

    body = inner if layout is False else render_in_layout(ctx, layout, inner)
    return Response(
        body=body,
        status=status or 200,
        content_type=content_type or HTML_CONTENT_TYPE,
        headers=tuple(headers.items()),
    )


def render_view(ctx: RequestContext, view: Any) -> str:
    """Render a view reference to HTML.

    *view* is ``True`` (the route's name), a view name, a kida template name
    ending in ``.html``, a ``Template``, or a ``Widget`` class or instance.
    """
    if view is True:
        if ctx.route_name is None:
            msg = "render=True needs a named route"
            raise ConfigurationError(msg)
        view = ctx.route_name

    match view:
        case str() if view.endswith(".html"):
            return render_template(ctx.app.kida_env, Template(view), ctx.vars)
        case str():
            return _render_widget(ctx, load_view(ctx, view))
        case Template():
            return render_template(ctx.app.kida_env, view, ctx.vars)
        case Widget():
            return view.render_to_string(ctx)
        case type() if issubclass(view, Widget):
            return _render_widget(ctx, view)
        case _:
            msg = f"Cannot render {view!r}"
            raise TypeError(msg)


def load_view(ctx: RequestContext, name: str) -> type[Widget]:
    """Look up a widget class by view name.

    Raises ``ConfigurationError`` when the view module is missing or does
    not define a widget.
    """
    views = ctx.app.views
    try:
        view = views[name]
    except ModuleNotFoundError as exc:
        if not missing_module(exc, views.module_name(name)):
            raise
        msg = f"Unknown view {name!r} (no module {views.module_name(name)!r})"
        raise ConfigurationError(msg) from exc
    if not (isinstance(view, type) and issubclass(view, Widget)):
        msg = f"View {name!r} does not define a Widget class"
        raise ConfigurationError(msg)
    return view


def _render_widget(ctx: RequestContext, widget_cls: type[Widget]) -> str:
    return widget_cls().render_to_string(ctx)


def render_in_layout(ctx: RequestContext, layout: Any, inner: str) -> str:
    """Wrap *inner* in *layout* (see module docstring for accepted values)."""
    if layout is None or layout is True:
        from lazuli.views.layout import DefaultLayout

        layout = DefaultLayout

    match layout:
        case str() if layout.endswith(".html"):
            return render_layout(ctx.app.kida_env, layout, inner, ctx.vars)
        case str():
            layout = load_view(ctx, layout)
        case Widget() | type():
            pass
        case _:
            msg = f"Cannot use {layout!r} as a layout"
            raise TypeError(msg)

    ctx.content_for("inner", Markup(inner))
    if isinstance(layout, Widget):
        return layout.render_to_string(ctx)
    return _render_widget(ctx, layout)
