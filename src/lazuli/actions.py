"""Action wrappers and the yield-error channel.

Expected, user-facing failures are raised with ``yield_error`` or
``assert_error`` and collected by a ``capture_errors`` wrapper chosen per
route. They never reach the fatal error boundary::

    @app.post("user_create", "/users")
    @capture_errors
    async def create(ctx):
        name = assert_error(ctx.params.get("name"), "name is required")
        ...

    # On error: ctx.errors == ["name is required"] and the view named
    # "user_create" is rendered.
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Never

from lazuli.context import RequestContext
from lazuli.errors import ConfigurationError, MethodNotAllowed, ValidationError
from lazuli.http.directive import Directive
from lazuli.server.handler import call_action, run_filters
from lazuli.util.autoload import LazyRegistry, missing_module

type Action = Callable[..., Any]


# -- Yield errors --


def yield_error(message: str) -> Never:
    """Raise a validation error for ``capture_errors`` to collect."""
    raise ValidationError(message)


def assert_error[T](value: T, message: str = "assertion failed") -> T:
    """Return *value* if it is truthy, else ``yield_error(message)``."""
    if not value:
        yield_error(message)
    return value


def _render_same_view(ctx: RequestContext) -> Directive:
    return Directive(render=True)


def capture_errors(
    fn: Action | None = None,
    *,
    on_error: Action | None = None,
) -> Any:
    """Catch validation errors raised by *fn*.

    The messages are stored on ``ctx.errors`` and *on_error* is called in
    the handler's place. The default re-renders the route's own view
    (``Directive(render=True)``). Usable bare or with arguments::

        @capture_errors
        def create(ctx): ...

        @capture_errors(on_error=lambda ctx: Directive(json={"ok": False}))
        def update(ctx): ...
    """
    if fn is None:
        return functools.partial(capture_errors, on_error=on_error)

    handle = on_error or _render_same_view

    @functools.wraps(fn)
    async def capturing(ctx: RequestContext) -> Any:
        try:
            return await call_action(fn, ctx)
        except ValidationError as exc:
            ctx.errors = list(exc.messages)
            return await call_action(handle, ctx)

    return capturing


def _errors_as_json(ctx: RequestContext) -> Directive:
    return Directive(json={"errors": ctx.errors})


def capture_errors_json(fn: Action) -> Action:
    """``capture_errors`` answering ``{"errors": [...]}`` as JSON."""
    return capture_errors(fn, on_error=_errors_as_json)


# -- Verb dispatch --


def _head_default(ctx: RequestContext) -> Directive:
    return Directive(layout=False)


def respond_to(
    *,
    before: Action | None = None,
    **verbs: Action,
) -> Action:
    """Dispatch on the request verb::

        app.match("login", "/login", respond_to(
            GET=lambda ctx: Directive(render=True),
            POST=do_login,
            before=load_user,
        ))

    ``before`` runs first; if it writes output the verb handler is skipped.
    ``HEAD`` defaults to an empty body without layout. Other verbs without
    a handler raise ``MethodNotAllowed``.
    """
    table = {verb.upper(): action for verb, action in verbs.items()}
    table.setdefault("HEAD", _head_default)
    allowed = frozenset(table)

    async def responder(ctx: RequestContext) -> Any:
        action = table.get(ctx.request.method)
        if action is None:
            raise MethodNotAllowed(allowed)
        if before is not None and await run_filters((before,), ctx):
            return None
        return await call_action(action, ctx)

    return responder


# -- Request body --


def json_params(fn: Action) -> Action:
    """Merge a JSON object body into ``ctx.params`` before calling *fn*.

    The parsed body is also available as ``ctx.json``; it is ``None`` when
    the body is not valid JSON, and the request carries on.
    """

    @functools.wraps(fn)
    async def with_json(ctx: RequestContext) -> Any:
        if ctx.request.is_json:
            try:
                ctx.json = await ctx.request.json()
            except ValueError:
                ctx.json = None
            if isinstance(ctx.json, dict):
                ctx.params = {**ctx.params, **ctx.json}
        return await call_action(fn, ctx)

    return with_json


# -- Actions loaded by name --


def _pick_action(module: ModuleType, name: str) -> Action:
    action = getattr(module, "action", None)
    if not callable(action):
        msg = f"Action module {module.__name__!r} does not define a callable 'action'"
        raise ConfigurationError(msg)
    return action


def action_registry(prefix: str) -> LazyRegistry:
    """Registry of ``action`` callables in modules under *prefix*."""
    return LazyRegistry(prefix, _pick_action)


@dataclass(frozen=True, slots=True)
class LazyAction:
    """A route handler imported from ``{actions_prefix}.{name}`` on first call."""

    name: str
    registry: LazyRegistry

    def resolve(self) -> Action:
        """Import the action module and return its ``action``.

        Raises ``ConfigurationError`` if the module does not exist.
        """
        try:
            return self.registry[self.name]
        except ModuleNotFoundError as exc:
            module = self.registry.module_name(self.name)
            if not missing_module(exc, module):
                raise
            msg = f"No action module {module!r} for route handler {self.name!r}"
            raise ConfigurationError(msg) from exc

    async def __call__(self, ctx: RequestContext) -> Any:
        return await call_action(self.resolve(), ctx)
