"""ASGI handler: translates ASGI scope/messages to lazuli types.

The only component that touches raw ASGI directly. Converts the scope to
a typed ``Request``, runs it through middleware and ``dispatch``, and sends
the resulting ``Response`` back through ASGI ``send()``.

``dispatch`` drives one request through its states::

    Unrouted -> Routed -> Filtering -> Handling -> Rendered
    Unrouted -> Routed -> Filtering -> Handling -> Faulted -> ErrorRendered
    Unrouted -> Unmatched -> DefaultRouted -> Rendered
"""

from __future__ import annotations

import annotationlib
import inspect
from collections.abc import Callable, Sequence
from contextvars import Token
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from lazuli._internal.asgi import Receive, Scope, Send
from lazuli._internal.invoke import invoke
from lazuli.context import RequestContext, context_var
from lazuli.errors import HTTPError, RouteNotFound, ValidationError
from lazuli.http.request import Request
from lazuli.http.response import Response
from lazuli.middleware.protocol import Next
from lazuli.routing.params import convert_param
from lazuli.routing.router import parse_path
from lazuli.server.errors import handle_fatal_error, handle_http_error, handle_validation_error
from lazuli.server.render import render_context
from lazuli.server.sender import send_response

if TYPE_CHECKING:
    from lazuli.app import App


async def handle_request(scope: Scope, receive: Receive, send: Send, *, app: App) -> None:
    """Process a single HTTP request through the full pipeline."""
    if scope["type"] != "http":
        return

    request = Request.from_asgi(scope, receive)

    async def innermost(req: Request) -> Response:
        return await dispatch(app, req)

    # Wrap middleware around the dispatch
    handler: Next = innermost
    for mw in reversed(app.middleware):
        outer = handler

        async def make_next(req: Request, _mw: Any = mw, _next: Next = outer) -> Response:
            return await _mw(req, _next)

        handler = make_next

    try:
        response = await handler(request)
    except HTTPError as exc:
        response = await handle_http_error(exc, RequestContext(app, request))
    except Exception as exc:
        response = await handle_fatal_error(exc, RequestContext(app, request))

    await send_response(response, send, head=request.method == "HEAD")


async def dispatch(app: App, request: Request) -> Response:
    """Route, filter, handle and render one request.

    Never raises for failures inside the request: routing misses go to the
    default route, ``HTTPError`` to the registered error handlers, an
    uncaptured ``ValidationError`` to a 422 and anything else to the error
    boundary.
    """
    ctx = RequestContext(app, request)
    token: Token[RequestContext] = context_var.set(ctx)
    try:
        try:
            match = app.router.match(request.method, request.path)
        except RouteNotFound:
            await merge_form_params(ctx)
            ctx.write(await app.dispatch_default_route(ctx))
            return finish(ctx)

        ctx = RequestContext(
            app, request, route=match.route, path_params=match.path_params
        )
        context_var.set(ctx)
        await merge_form_params(ctx)

        if await run_filters(app.before_filters, ctx):
            return finish(ctx)

        ctx.write(await call_action(match.route.handler, ctx))
        return finish(ctx)

    except ValidationError as exc:
        return handle_validation_error(exc, ctx)
    except HTTPError as exc:
        return await handle_http_error(exc, _error_context(ctx))
    except Exception as exc:
        return await handle_fatal_error(exc, _error_context(ctx))
    finally:
        context_var.reset(token)


def _error_context(failed: RequestContext) -> RequestContext:
    ctx = RequestContext(failed.app, failed.request, original_request=failed)
    context_var.set(ctx)
    return ctx


def finish(ctx: RequestContext) -> Response:
    """Render *ctx* and attach its outgoing cookies."""
    response = render_context(ctx)
    for cookie in ctx.outgoing_cookies():
        response = response.with_cookie(cookie)
    return response


async def run_filters(filters: Sequence[Callable[..., Any]], ctx: RequestContext) -> bool:
    """Run before filters in order. True if one of them produced output.

    A filter produces output by writing to the context or by returning a
    value other than ``None``; the remaining filters then do not run.
    """
    for before in filters:
        result = await call_action(before, ctx)
        if result is not None:
            ctx.write(result)
        if ctx.has_output:
            return True
    return False


async def merge_form_params(ctx: RequestContext) -> None:
    """Merge an urlencoded body into ``ctx.params``. Path params still win."""
    request = ctx.request
    if request.method in ("GET", "HEAD") or not request.is_form:
        return
    form = await request.form()
    ctx.params = {**ctx.params, **form.to_dict(), **ctx.path_params}


# -- Argument injection --


async def call_action(func: Callable[..., Any], ctx: RequestContext) -> Any:
    """Call a handler or filter with arguments built from its signature."""
    return await invoke(func, **build_kwargs(func, ctx))


def build_kwargs(func: Callable[..., Any], ctx: RequestContext) -> dict[str, Any]:
    """Inspect *func*'s signature and build kwargs from the context.

    Resolution order:
    1. ``ctx`` parameter (by name or ``RequestContext`` annotation)
    2. ``request`` parameter (by name or ``Request`` annotation)
    3. Path parameters (by name, converted to the annotated or route type)
    4. Service providers (by type annotation via ``app.provide()``)
    5. A leading positional parameter matching none of the above gets the
       context, so ``lambda c: ...`` works as a handler.
    """
    sig = _signature(func)
    providers = ctx.app.providers
    kwargs: dict[str, Any] = {}

    for index, (name, param) in enumerate(sig.parameters.items()):
        annotation = param.annotation
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if name == "ctx" or annotation is RequestContext:
            kwargs[name] = ctx
        elif name == "request" or annotation is Request:
            kwargs[name] = ctx.request
        elif name in ctx.path_params:
            kwargs[name] = _convert_path_param(ctx, name, annotation)
        elif annotation is not inspect.Parameter.empty and annotation in providers:
            kwargs[name] = providers[annotation]()
        elif (
            index == 0
            and param.default is inspect.Parameter.empty
            and param.kind is not inspect.Parameter.KEYWORD_ONLY
        ):
            kwargs[name] = ctx

    return kwargs


def _signature(func: Callable[..., Any]) -> inspect.Signature:
    try:
        return inspect.signature(func, eval_str=True, follow_wrapped=False)
    except NameError:
        # Annotations naming TYPE_CHECKING-only imports
        return inspect.signature(
            func, follow_wrapped=False, annotation_format=annotationlib.Format.FORWARDREF
        )


def _convert_path_param(ctx: RequestContext, name: str, annotation: Any) -> Any:
    value = ctx.path_params[name]
    if annotation is not inspect.Parameter.empty and annotation is not str:
        try:
            return annotation(value)
        except (ValueError, TypeError):
            return value
    if annotation is str or ctx.route is None:
        return value
    param_type = _param_types(ctx.route.path).get(name, "str")
    try:
        return convert_param(value, param_type)
    except ValueError:
        return value


@lru_cache(maxsize=1024)
def _param_types(path: str) -> dict[str, str]:
    return {seg.param_name: seg.param_type for seg in parse_path(path) if seg.param_name}
