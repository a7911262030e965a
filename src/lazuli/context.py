"""Per-request context.

A ``RequestContext`` is created for every dispatch and dropped when the
response is sent. Handlers and before filters receive it (as ``ctx``) and
use it to read params, collect errors, write output and pass variables to
views::

    @app.get("user", "/users/:id")
    async def show(ctx: RequestContext, id: int):
        ctx.user = await load_user(id)
        return Directive(render="user_profile")

The current context is also published through a ContextVar so that helpers
deep in a call stack can reach it with ``get_context()``.

Thread safety:
    ``ContextVar`` is task-local under asyncio and thread-local under
    free-threading. A context is never shared between requests.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

from lazuli.errors import ConfigurationError, SignatureError
from lazuli.http.cookies import SetCookie
from lazuli.http.directive import UNSET, Directive
from lazuli.http.request import Request
from lazuli.http.response import Redirect, Response
from lazuli.util.encoding import decode_with_secret, encode_with_secret

if TYPE_CHECKING:
    from lazuli.app import App
    from lazuli.html import Widget
    from lazuli.routing.route import Route


context_var: ContextVar[RequestContext] = ContextVar("lazuli_context")
"""The context of the request being handled. Set by the ASGI handler."""


def get_context() -> RequestContext:
    """Return the current request context.

    Raises ``LookupError`` outside a request.
    """
    return context_var.get()


def get_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` outside a request.
    """
    return context_var.get().request


class Session(dict[str, Any]):
    """Session data that remembers whether it was changed."""

    modified: bool = False

    def __setitem__(self, key: str, value: Any) -> None:
        self.modified = True
        super().__setitem__(key, value)

    def __delitem__(self, key: str) -> None:
        self.modified = True
        super().__delitem__(key)

    def clear(self) -> None:
        self.modified = True
        super().clear()

    def pop(self, key: str, *default: Any) -> Any:
        self.modified = True
        return super().pop(key, *default)

    def setdefault(self, key: str, default: Any = None) -> Any:
        if key not in self:
            self.modified = True
        return super().setdefault(key, default)

    def update(self, *args: Any, **kwargs: Any) -> None:
        self.modified = True
        super().update(*args, **kwargs)


_FIELDS = (
    "_buffer",
    "_content_for",
    "_options",
    "_response",
    "_session",
    "_set_cookies",
    "_vars",
    "app",
    "errors",
    "json",
    "original_request",
    "params",
    "path_params",
    "request",
    "route",
)


class RequestContext:
    """Mutable state of one request in flight.

    Attributes:
        app: The application handling the request.
        request: The immutable ``Request``.
        route: The matched ``Route``, or ``None`` on the default route.
        params: Query, form and path parameters merged (path params win).
        path_params: Raw captures from the route pattern.
        errors: Messages collected by ``capture_errors``.
        json: Parsed JSON body, set by ``json_params``.
        original_request: On an error context, the context that failed.

    Any other attribute assigned to the context becomes a view variable,
    visible to widgets and templates rendered for this request.
    """

    __slots__ = _FIELDS

    def __init__(
        self,
        app: App,
        request: Request,
        *,
        route: Route | None = None,
        path_params: Mapping[str, str] | None = None,
        original_request: RequestContext | None = None,
    ) -> None:
        self.app = app
        self.request = request
        self.route = route
        self.path_params: dict[str, str] = dict(path_params or {})
        self.params: dict[str, Any] = {**request.query.to_dict(), **self.path_params}
        self.errors: list[str] = []
        self.json: Any = None
        self.original_request = original_request
        self._buffer: list[str] = []
        self._options: dict[str, Any] = {}
        self._response: Response | None = None
        self._content_for: dict[str, list[Any]] = {}
        self._vars: dict[str, Any] = {}
        self._session: Session | None = None
        self._set_cookies: list[SetCookie] = []

    # -- View variables --

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails, i.e. for view variables
        try:
            return object.__getattribute__(self, "_vars")[name]
        except KeyError:
            msg = f"{type(self).__name__!r} has no attribute {name!r}"
            raise AttributeError(msg) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FIELDS:
            object.__setattr__(self, name, value)
        else:
            self._vars[name] = value

    @property
    def vars(self) -> dict[str, Any]:
        """View variables assigned to the context."""
        return self._vars

    @property
    def route_name(self) -> str | None:
        return self.route.name if self.route is not None else None

    # -- Output --

    def write(self, *values: Any) -> None:
        """Write output for the response.

        Accepts strings, ``Directive`` objects, widgets, templates,
        ``Redirect``, ``Response``, JSON-able dicts/lists and
        ``(value, status[, headers])`` tuples. Writing anything from a before
        filter ends the request after that filter.
        """
        from lazuli.html import Widget
        from lazuli.templating.returns import Template

        for value in values:
            match value:
                case None:
                    continue
                case Response():
                    self._response = value
                case Directive():
                    self._merge(value)
                case str():
                    self._buffer.append(value)
                case Redirect(url=url, status=status, headers=headers):
                    self._merge(Directive(redirect_to=url, status=status, headers=dict(headers)))
                case Widget() | Template():
                    self._merge(Directive(render=value))
                case type() if issubclass(value, Widget):
                    self._merge(Directive(render=value))
                case dict() | list():
                    self._merge(Directive(json=value))
                case bytes():
                    self._response = Response(body=value, content_type="application/octet-stream")
                case (body, int() as status):
                    self.write(body)
                    self._merge(Directive(status=status))
                case (body, int() as status, Mapping() as headers):
                    self.write(body)
                    self._merge(Directive(status=status, headers=dict(headers)))
                case tuple():
                    self.write(*value)
                case _:
                    msg = f"Cannot write {type(value).__name__!r} to a response"
                    raise TypeError(msg)

    def _merge(self, directive: Directive) -> None:
        for name, value in directive.given():
            if name == "content":
                self._buffer.append(str(value))
            elif name == "headers":
                self._options.setdefault("headers", {}).update(value)
            else:
                self._options[name] = value

    @property
    def has_output(self) -> bool:
        """True once anything has been written."""
        return bool(self._buffer or self._options or self._response is not None)

    def option(self, name: str, default: Any = UNSET) -> Any:
        """A merged directive field, or *default* if never written."""
        return self._options.get(name, default)

    @property
    def response(self) -> Response | None:
        """A ``Response`` written to the context. Sent as-is."""
        return self._response

    @property
    def buffer(self) -> str:
        """Text written so far."""
        return "".join(self._buffer)

    # -- Content blocks shared between a view and its layout --

    def content_for(self, name: str, content: Any = None) -> Any:
        """Append *content* to block *name*, or return the block's parts."""
        if content is None:
            return list(self._content_for.get(name, ()))
        self._content_for.setdefault(name, []).append(content)
        return None

    def has_content_for(self, name: str) -> bool:
        return bool(self._content_for.get(name))

    @property
    def blocks(self) -> dict[str, list[Any]]:
        """Every content block by name."""
        return self._content_for

    # -- URLs --

    def url_for(self, name: str, query: Mapping[str, Any] | None = None, **params: Any) -> str:
        """Path of the named route, e.g. ``ctx.url_for("user", id=3)``."""
        return self.app.router.url_for(name, params, query)

    def build_url(
        self,
        path: str | None = None,
        *,
        query: str | Mapping[str, Any] | None = None,
        scheme: str | None = None,
        host: str | None = None,
        fragment: str | None = None,
    ) -> str:
        """Absolute URL on this request's scheme and host.

        *path* defaults to the current path. *query* is a raw string or a
        mapping to encode.
        """
        url = f"{scheme or self.request.scheme}://{host or self.request.host}"
        url += path if path is not None else self.request.path
        if isinstance(query, Mapping):
            query = urlencode(query, doseq=True)
        if query:
            url += f"?{query}"
        if fragment:
            url += f"#{fragment}"
        return url

    # -- HTML --

    def html(self, fn: Callable[[Widget], Any]) -> Widget:
        """Wrap a builder function as a widget rendered with this context."""
        from lazuli.html import Widget

        return Widget.from_function(fn)

    # -- Cookies and session --

    @property
    def cookies(self) -> Mapping[str, str]:
        return self.request.cookies

    def set_cookie(self, name: str, value: str, **attributes: Any) -> None:
        """Queue a ``Set-Cookie`` using the app's cookie attributes."""
        attrs = {**self.app.cookie_attributes_for(self, name, value), **attributes}
        self._set_cookies.append(SetCookie(name=name, value=value, **attrs))

    @property
    def session(self) -> Session:
        """Session dict stored in a signed cookie.

        Raises ``ConfigurationError`` if the app has no ``secret_key``.
        """
        if self._session is None:
            secret = self.app.config.secret_key
            if not secret:
                msg = "Sessions require AppConfig(secret_key=...)."
                raise ConfigurationError(msg)
            data: dict[str, Any] = {}
            raw = self.request.cookies.get(self.app.config.session_name)
            if raw:
                try:
                    loaded = decode_with_secret(raw, secret)
                except SignatureError:
                    loaded = None
                if isinstance(loaded, dict):
                    data = loaded
            self._session = Session(data)
        return self._session

    def outgoing_cookies(self) -> list[SetCookie]:
        """Cookies to send, including the session if it changed."""
        cookies = list(self._set_cookies)
        if self._session is not None and self._session.modified:
            name = self.app.config.session_name
            value = encode_with_secret(dict(self._session), self.app.config.secret_key)
            attrs = self.app.cookie_attributes_for(self, name, value)
            cookies.append(SetCookie(name=name, value=value, **attrs))
        return cookies
