"""Lazuli exception hierarchy.

Three failure classes flow through a request:

- ``RouteNotFound`` is a routing signal, answered by the app's default route.
- ``ValidationError`` is the yield-error channel, answered by the route's own
  ``capture_errors`` wrapper.
- Anything else is fatal and goes to the error boundary.

``HTTPError`` subclasses sit beside them and map straight to a status code.
"""

from collections.abc import Iterable
from dataclasses import dataclass


class LazuliError(Exception):
    """Base for all lazuli-specific errors."""


class ConfigurationError(LazuliError):
    """Raised when app configuration is invalid.

    Typically caught during ``App._freeze()`` or on first use of a lazily
    resolved view or action.
    """


class SignatureError(LazuliError):
    """A signed value failed verification."""


@dataclass(frozen=True, slots=True)
class HTTPError(LazuliError):
    """An error that maps directly to an HTTP status code.

    Raised by the router, middleware, or handlers. The ASGI handler catches
    these and dispatches to the matching ``@app.error()`` handler.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404: the requested resource does not exist."""

    def __init__(self, detail: str = "Not Found") -> None:
        super().__init__(status=404, detail=detail)


class RouteNotFound(NotFound):
    """No route matched the request path.

    Never rendered directly: the dispatcher catches it and calls the
    application's default route.
    """


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405: a route exists for the path but not for this HTTP method."""

    def __init__(self, allowed: frozenset[str], detail: str = "") -> None:
        allow_value = ", ".join(sorted(allowed))
        default_detail = f"Method not allowed. Allowed methods: {allow_value}"
        super().__init__(
            status=405,
            detail=detail or default_detail,
            headers=(("Allow", allow_value),),
        )


class ValidationError(LazuliError):
    """One or more expected, user-facing errors.

    Raised by ``yield_error`` and ``assert_error``; collected onto
    ``ctx.errors`` by ``capture_errors``.
    """

    def __init__(self, messages: str | Iterable[str]) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages: list[str] = [str(m) for m in messages]
        super().__init__("; ".join(self.messages))
