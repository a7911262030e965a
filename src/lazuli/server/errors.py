"""Error handling pipeline for lazuli requests.

Three paths, one per failure class:

- ``HTTPError`` goes to the handler registered with ``@app.error(...)`` for
  its type or status, or becomes a plain error response.
- An uncaptured ``ValidationError`` becomes a 422 listing its messages. It
  never reaches the error boundary.
- Any other exception is fatal: it is logged, a fresh context is created
  and the app's ``handle_error`` renders the error page. If that fails too,
  a plain-text 500 is sent.
"""

from __future__ import annotations

import inspect
import logging
import traceback
from collections.abc import Callable
from typing import Any

from lazuli._internal.invoke import invoke
from lazuli.context import RequestContext
from lazuli.errors import HTTPError, ValidationError
from lazuli.html import render_html
from lazuli.http.response import Response
from lazuli.server.render import render_context

logger = logging.getLogger("lazuli.server")

PLAIN_500 = Response(
    body="Internal Server Error",
    status=500,
    content_type="text/plain; charset=utf-8",
)


async def call_error_handler(
    handler: Callable[..., Any],
    ctx: RequestContext,
    exc: Exception,
) -> Response:
    """Invoke a user-registered error handler and render its result.

    Error handlers may accept zero, one (ctx), or two (ctx, exc) args.
    Supports both sync and async error handlers.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        result = await invoke(handler, ctx, exc)
    elif len(params) == 1:
        result = await invoke(handler, ctx)
    else:
        result = await invoke(handler)

    ctx.write(result)
    return render_context(ctx)


def find_error_handler(
    handlers: dict[int | type, Callable[..., Any]],
    exc: Exception,
    status: int | None = None,
) -> Callable[..., Any] | None:
    """Most specific handler for *exc*: its class hierarchy, then *status*."""
    for klass in type(exc).__mro__:
        handler = handlers.get(klass)
        if handler is not None:
            return handler
    if status is not None:
        return handlers.get(status)
    return None


async def handle_http_error(exc: HTTPError, ctx: RequestContext) -> Response:
    """Map an HTTPError to a Response using registered error handlers."""
    request = ctx.request
    logger.debug("%d %s %s - %s", exc.status, request.method, request.path, exc.detail)

    handler = find_error_handler(ctx.app.error_handlers, exc, exc.status)
    if handler is not None:
        try:
            response = await call_error_handler(handler, ctx, exc)
        except Exception as handler_exc:
            return await handle_fatal_error(
                handler_exc,
                RequestContext(ctx.app, request, original_request=ctx),
            )
        # Keep the error's status unless the handler chose one
        if response.status == 200:
            response = response.with_status(exc.status)
    else:
        response = Response(
            body=exc.detail or f"Error {exc.status}",
            status=exc.status,
            content_type="text/plain; charset=utf-8",
        )

    for name, value in exc.headers:
        response = response.with_header(name, value)
    return response


def handle_validation_error(exc: ValidationError, ctx: RequestContext) -> Response:
    """422 listing the messages of a ``ValidationError`` nothing captured."""
    logger.debug("422 %s %s - %s", ctx.request.method, ctx.request.path, exc)
    ctx.errors = list(exc.messages)

    def errors(h: Any) -> None:
        with h.tag("ul", class_="errors"):
            for message in exc.messages:
                h.li(message)

    return Response(body=render_html(errors), status=422)


async def handle_fatal_error(exc: Exception, ctx: RequestContext) -> Response:
    """Render the error page for an unexpected exception.

    *ctx* is a fresh context; the failed one is ``ctx.original_request``.
    """
    request = ctx.request
    logger.exception("500 %s %s", request.method, request.path, exc_info=exc)
    trace = "".join(traceback.format_exception(exc))

    try:
        handler = find_error_handler(ctx.app.error_handlers, exc)
        if handler is not None and not isinstance(exc, HTTPError):
            response = await call_error_handler(handler, ctx, exc)
            if response.status == 200:
                response = response.with_status(500)
            return response

        ctx.write(await ctx.app.dispatch_error(ctx, exc, trace))
        return render_context(ctx)
    except Exception:
        logger.exception("Error handler failed for %s %s", request.method, request.path)
        return PLAIN_500
