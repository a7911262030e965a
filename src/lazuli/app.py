"""Lazuli application class.

Mutable during setup (route registration, filters, middleware).
Frozen at runtime when app.run() or __call__() is first invoked.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any
from urllib.parse import quote

from kida import Environment

from lazuli._internal.asgi import Receive, Scope, Send
from lazuli._internal.invoke import invoke
from lazuli._internal.types import ErrorHandler, Handler
from lazuli.actions import LazyAction, action_registry
from lazuli.config import AppConfig
from lazuli.context import RequestContext
from lazuli.errors import ConfigurationError
from lazuli.http.directive import Directive
from lazuli.middleware.protocol import Middleware
from lazuli.routing.route import ANY_METHOD, Route
from lazuli.routing.router import Router
from lazuli.server.handler import call_action, handle_request, run_filters
from lazuli.templating.integration import create_environment
from lazuli.util.autoload import LazyRegistry

logger = logging.getLogger("lazuli.app")

# A handler, or ``True``/a string naming an action module
type HandlerRef = Handler | bool | str


@dataclass(slots=True)
class _PendingRoute:
    """A route waiting to be compiled."""

    path: str
    handler: HandlerRef
    methods: frozenset[str]
    name: str | None


@dataclass(slots=True)
class _PendingInclude:
    """Another app whose routes are copied in at freeze time."""

    app: App
    path: str
    name: str


def _verbs(methods: list[str] | tuple[str, ...] | None) -> frozenset[str]:
    if not methods:
        return frozenset({ANY_METHOD})
    return frozenset(m.upper() for m in methods)


class App:
    """The lazuli application.

    Mutable during setup (route registration, filters, middleware).
    Frozen at runtime when ``app.run()`` or ``__call__()`` is first invoked.

    Composition:
        ``App(parent=base)`` or ``base.extend(**config)`` derives an app
        from another. At freeze time the route and filter tables of the
        whole ancestor chain are flattened root-first, so the derived
        app's routes override the ancestors' on name or pattern collision,
        and the ancestors' filters run first.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check to ensure exactly
        one thread compiles the app, even under free-threading where
        multiple ASGI workers could call ``__call__()`` concurrently on
        first request.
    """

    __slots__ = (
        "_actions",
        "_custom_kida_env",
        "_enabled",
        "_entries",
        "_error_handlers",
        "_filters",
        "_freeze_lock",
        "_frozen",
        "_kida_env",
        "_middleware",
        "_middleware_list",
        "_overrides",
        "_pending_filters",
        "_providers",
        # Compiled state (populated by _freeze)
        "_resolved_error_handlers",
        "_resolved_providers",
        "_router",
        "_shutdown_hooks",
        "_startup_hooks",
        "_template_filters",
        "_template_globals",
        "_views",
        "config",
        "parent",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        parent: App | None = None,
        kida_env: Environment | None = None,
    ) -> None:
        if config is None:
            config = parent.config if parent is not None else AppConfig()
        self.config: AppConfig = config
        self.parent = parent
        self._entries: list[_PendingRoute | _PendingInclude] = []
        self._pending_filters: list[Handler] = []
        self._middleware_list: list[Middleware] = []
        self._error_handlers: dict[int | type, ErrorHandler] = {}
        self._template_filters: dict[str, Callable[..., Any]] = {}
        self._template_globals: dict[str, Any] = {}
        self._startup_hooks: list[Callable[..., Any]] = []
        self._shutdown_hooks: list[Callable[..., Any]] = []
        self._providers: dict[Any, Callable[..., Any]] = {}
        self._overrides: dict[str, Callable[..., Any]] = {}
        self._enabled: set[str] = set()
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        self._custom_kida_env: Environment | None = kida_env

        # Name -> component, resolved on first use
        self._views: LazyRegistry = LazyRegistry(config.views_prefix)
        self._actions: LazyRegistry = action_registry(config.actions_prefix)

        # Compiled state, set by _freeze()
        self._router: Router | None = None
        self._filters: tuple[Handler, ...] = ()
        self._middleware: tuple[Middleware, ...] = ()
        self._resolved_error_handlers: dict[int | type, ErrorHandler] = {}
        self._resolved_providers: dict[Any, Callable[..., Any]] = {}
        self._kida_env: Environment | None = None

    # -- Route registration --

    def match(
        self,
        name_or_path: str,
        path_or_handler: HandlerRef | None = None,
        handler: HandlerRef | None = None,
    ) -> Any:
        """Register a route accepting every HTTP verb.

        Forms::

            app.match("/about", about)                 # unnamed
            app.match("about", "/about", about)        # named
            app.match("about", "/about", True)         # action module actions.about

            @app.match("about", "/about")              # decorator
            def about(ctx): ...

        A string second argument is the path, making the first the name.
        """
        return self._register(None, name_or_path, path_or_handler, handler)

    def get(self, name_or_path: str, path_or_handler: Any = None, handler: Any = None) -> Any:
        """Register a GET route. Same forms as ``match``."""
        return self._register(["GET"], name_or_path, path_or_handler, handler)

    def post(self, name_or_path: str, path_or_handler: Any = None, handler: Any = None) -> Any:
        """Register a POST route. Same forms as ``match``."""
        return self._register(["POST"], name_or_path, path_or_handler, handler)

    def put(self, name_or_path: str, path_or_handler: Any = None, handler: Any = None) -> Any:
        """Register a PUT route. Same forms as ``match``."""
        return self._register(["PUT"], name_or_path, path_or_handler, handler)

    def delete(self, name_or_path: str, path_or_handler: Any = None, handler: Any = None) -> Any:
        """Register a DELETE route. Same forms as ``match``."""
        return self._register(["DELETE"], name_or_path, path_or_handler, handler)

    def route(
        self,
        path: str,
        *,
        methods: list[str] | None = None,
        name: str | None = None,
    ) -> Callable[[Handler], Handler]:
        """Register a route handler via decorator.

        Args:
            path: URL path pattern (``:id``, ``{id}``, ``{id:int}``, ``*``).
            methods: HTTP methods. Defaults to ``["GET"]``.
            name: Optional route name for URL generation.
        """

        def decorator(func: Handler) -> Handler:
            self._add_route(path, func, methods or ["GET"], name)
            return func

        return decorator

    def _register(
        self,
        methods: list[str] | None,
        name_or_path: str,
        path_or_handler: Any,
        handler: Any,
    ) -> Any:
        if isinstance(path_or_handler, str):
            name: str | None = name_or_path
            path = path_or_handler
        else:
            name = None
            path = name_or_path
            if handler is None:
                handler = path_or_handler

        if handler is None:

            def decorator(func: Handler) -> Handler:
                self._add_route(path, func, methods, name)
                return func

            return decorator

        self._add_route(path, handler, methods, name)
        return None

    def _add_route(
        self,
        path: str,
        handler: HandlerRef,
        methods: list[str] | None,
        name: str | None,
    ) -> None:
        self._check_not_frozen()
        if handler is True and name is None:
            msg = f"Route {path!r} loads its action by name, so it needs a name"
            raise ConfigurationError(msg)
        self._entries.append(_PendingRoute(path, handler, _verbs(methods), name))

    def before_filter(self, func: Handler) -> Handler:
        """Register a filter that runs before every handler, via decorator.

        A filter that writes to the context (or returns a value) ends the
        request: later filters and the handler do not run.
        """
        self._check_not_frozen()
        self._pending_filters.append(func)
        return func

    def include(self, other: App, *, path: str = "", name: str = "") -> None:
        """Copy another app's routes into this one.

        Route paths are prefixed with *path* and route names with *name*.
        Each copied handler runs the other app's before filters first.
        Resolved at freeze time, so routes added to *other* later are
        included too.
        """
        self._check_not_frozen()
        self._entries.append(_PendingInclude(other, path, name))

    def extend(self, **config: Any) -> App:
        """A new app deriving from this one, with config fields replaced."""
        return App(replace(self.config, **config), parent=self)

    # -- Features --

    def enable(self, feature: str) -> None:
        """Import module *feature* and call its ``enable(app)`` if it has one.

        Enabling the same feature twice does nothing.
        """
        self._check_not_frozen()
        if feature in self._enabled:
            return
        module = importlib.import_module(feature)
        self._enabled.add(feature)
        hook = getattr(module, "enable", None)
        if callable(hook):
            hook(self)

    # -- Service injection --

    def provide(self, annotation: Any, factory: Callable[..., Any]) -> None:
        """Register a provider factory for dependency injection.

        When a handler parameter's type annotation matches *annotation*,
        lazuli calls *factory* (with no arguments) and injects the result::

            app.provide(Database, lambda: db)

            @app.get("/users")
            async def users(ctx, db: Database): ...
        """
        self._check_not_frozen()
        self._providers[annotation] = factory

    # -- Error handlers --

    def error(
        self,
        code_or_exception: int | type[Exception],
    ) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator.

        An ``int`` handles ``HTTPError`` with that status. An exception
        class handles that exception and its subclasses.
        """

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[code_or_exception] = func
            return func

        return decorator

    # -- Overridable request handlers --

    def default_route(self, func: Handler) -> Handler:
        """Replace the handler for requests no route matches."""
        return self._override("default_route", func)

    def handle_404(self, func: Handler) -> Handler:
        """Replace the not-found handler called by the default route."""
        return self._override("handle_404", func)

    def handle_error(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Replace the fatal error handler, called as ``func(ctx, err, trace)``."""
        return self._override("handle_error", func)

    def cookie_attributes(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Replace the cookie attributes hook, ``func(ctx, name, value) -> dict``."""
        return self._override("cookie_attributes", func)

    def _override(self, slot: str, func: Callable[..., Any]) -> Callable[..., Any]:
        self._check_not_frozen()
        self._overrides[slot] = func
        return func

    def _find_override(self, slot: str) -> Callable[..., Any] | None:
        app: App | None = self
        while app is not None:
            func = app._overrides.get(slot)
            if func is not None:
                return func
            app = app.parent
        return None

    async def dispatch_default_route(self, ctx: RequestContext) -> Any:
        """Answer a request no route matched.

        By default a path with trailing slashes redirects (301) to the path
        without them, query string kept; anything else goes to ``handle_404``.
        """
        override = self._find_override("default_route")
        if override is not None:
            return await call_action(override, ctx)

        path = ctx.request.path
        if len(path) > 1 and path.endswith("/"):
            # request.path is decoded; Location must be a valid URL
            stripped = quote(path.rstrip("/") or "/", safe="/:@!$&'()*+,;=")
            url = ctx.build_url(stripped, query=ctx.request.query.raw)
            return Directive(redirect_to=url, status=301)
        return await self.dispatch_404(ctx)

    async def dispatch_404(self, ctx: RequestContext) -> Any:
        """Not-found handler. The default raises a fatal ``RuntimeError``."""
        override = self._find_override("handle_404")
        if override is not None:
            return await call_action(override, ctx)
        msg = f"Failed to find route: {ctx.request.url}"
        raise RuntimeError(msg)

    async def dispatch_error(self, ctx: RequestContext, err: Exception, trace: str) -> Any:
        """Fatal error handler, run on a fresh context.

        The default exposes ``err`` and ``trace`` as view variables and
        renders the configured error page without a layout.
        """
        override = self._find_override("handle_error")
        if override is not None:
            return await invoke(override, ctx, err, trace)

        ctx.err = err
        ctx.trace = trace
        from lazuli.views.error import ErrorPage

        return Directive(status=500, layout=False, render=self.config.error_page or ErrorPage)

    def cookie_attributes_for(self, ctx: RequestContext, name: str, value: str) -> dict[str, Any]:
        """Attributes for an outgoing cookie, as ``SetCookie`` keyword arguments."""
        override = self._find_override("cookie_attributes")
        if override is not None:
            return dict(override(ctx, name, value) or {})
        return {
            "path": "/",
            "httponly": True,
            "samesite": "lax",
            "secure": ctx.request.scheme == "https",
        }

    # -- Middleware --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add a middleware to the pipeline."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    # -- Template integration --

    def template_filter(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template filter."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            filter_name = name or func.__name__
            self._template_filters[filter_name] = func
            return func

        return decorator

    def template_global(
        self,
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Register a kida template global."""

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._check_not_frozen()
            global_name = name or func.__name__
            self._template_globals[global_name] = func
            return func

        return decorator

    # -- Lifecycle hooks --

    def on_startup(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync startup hook via decorator.

        Hooks run in registration order during ASGI lifespan startup,
        before the server begins accepting HTTP requests.
        """
        self._check_not_frozen()
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[..., Any]) -> Callable[..., Any]:
        """Register an async or sync shutdown hook via decorator.

        Hooks run in registration order during ASGI lifespan shutdown.
        """
        self._check_not_frozen()
        self._shutdown_hooks.append(func)
        return func

    # -- Lookup --

    def find_action(self, name: str, *, resolve: bool = False) -> Handler | None:
        """The handler of the route called *name*, or ``None``.

        With *resolve*, an action loaded by name is imported and the
        function itself is returned.
        """
        for route in self.router.routes:
            if route.name == name:
                handler = route.handler
                if resolve and isinstance(handler, LazyAction):
                    return handler.resolve()
                return handler
        return None

    # -- Compiled state --

    @property
    def router(self) -> Router:
        self._ensure_frozen()
        assert self._router is not None
        return self._router

    @property
    def before_filters(self) -> tuple[Handler, ...]:
        self._ensure_frozen()
        return self._filters

    @property
    def middleware(self) -> tuple[Middleware, ...]:
        self._ensure_frozen()
        return self._middleware

    @property
    def error_handlers(self) -> dict[int | type, ErrorHandler]:
        self._ensure_frozen()
        return self._resolved_error_handlers

    @property
    def providers(self) -> dict[Any, Callable[..., Any]]:
        self._ensure_frozen()
        return self._resolved_providers

    @property
    def kida_env(self) -> Environment:
        self._ensure_frozen()
        assert self._kida_env is not None
        return self._kida_env

    @property
    def views(self) -> LazyRegistry:
        """Widget classes by view name, loaded from ``config.views_prefix``."""
        return self._views

    # -- Server --

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start the pounce development server.

        Compiles the app (freezing routes, filters, templates) and starts
        serving requests, with auto-reload when ``config.debug`` is set.
        """
        self._ensure_frozen()

        from lazuli.server.dev import run_dev_server

        run_dev_server(
            self,
            host or self.config.host,
            port or self.config.port,
            reload=self.config.debug,
            reload_include=self.config.reload_include,
            reload_dirs=self.config.reload_dirs,
        )

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point.

        Handles lifespan scopes directly, then delegates HTTP scopes to the
        request handler pipeline.
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()
        await handle_request(scope, receive, send, app=self)

    async def _handle_lifespan(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        """Run the ASGI lifespan protocol.

        Freezes the app at startup (before first HTTP request), then
        runs registered startup/shutdown hooks and signals completion
        back to the server.
        """
        self._ensure_frozen()

        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send(
                        {
                            "type": "lifespan.startup.failed",
                            "message": str(exc),
                        }
                    )
                    return

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def startup(self) -> None:
        """Run startup hooks, ancestors' first."""
        for hook in self._chain_hooks("_startup_hooks"):
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        """Run shutdown hooks, ancestors' first."""
        for hook in self._chain_hooks("_shutdown_hooks"):
            result = hook()
            if inspect.isawaitable(result):
                await result

    # -- Internal --

    def _chain(self) -> list[App]:
        """This app and its ancestors, root first."""
        chain: list[App] = []
        app: App | None = self
        while app is not None:
            chain.append(app)
            app = app.parent
        chain.reverse()
        return chain

    def _chain_hooks(self, attr: str) -> list[Callable[..., Any]]:
        return [hook for app in self._chain() for hook in getattr(app, attr)]

    def _resolved_filters(self) -> list[Handler]:
        return [f for app in self._chain() for f in app._pending_filters]

    def _resolved_routes(self, actions: LazyRegistry) -> list[Route]:
        """Flatten the route table of the ancestor chain and includes.

        Routes are returned in registration order, ancestors first, so the
        router's override rule lets later (derived) entries win. Action
        names are resolved against *actions*, the registry of the app being
        built.
        """
        routes: list[Route] = []
        for app in self._chain():
            for entry in app._entries:
                if isinstance(entry, _PendingInclude):
                    routes.extend(_included_routes(entry))
                    continue
                routes.append(
                    Route(
                        path=entry.path,
                        handler=_materialize(entry, actions),
                        methods=entry.methods,
                        name=entry.name,
                    )
                )
        return routes

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking.

        Under free-threading (3.14t), multiple ASGI worker threads could
        call __call__() concurrently on first request. This pattern ensures
        exactly one thread performs compilation.
        """
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Compile the app into its frozen runtime state.

        MUST only be called while holding _freeze_lock.
        """
        chain = self._chain()

        # 1. Compile route table
        router = Router()
        for route in self._resolved_routes(self._actions):
            router.add(route)
        router.compile()
        self._router = router

        # 2. Filters, middleware, error handlers and providers, root first
        self._filters = tuple(self._resolved_filters())
        self._middleware = tuple(mw for app in chain for mw in app._middleware_list)
        for app in chain:
            self._resolved_error_handlers.update(app._error_handlers)
            self._resolved_providers.update(app._providers)

        # 3. Initialize kida environment
        template_filters: dict[str, Callable[..., Any]] = {}
        template_globals: dict[str, Any] = {}
        for app in chain:
            template_filters.update(app._template_filters)
            template_globals.update(app._template_globals)

        if self._custom_kida_env is not None:
            self._kida_env = self._custom_kida_env
            if template_filters:
                self._kida_env.update_filters(template_filters)
            for name, value in template_globals.items():
                self._kida_env.add_global(name, value)
        else:
            self._kida_env = create_environment(self.config, template_filters, template_globals)

        self._frozen = True
        logger.debug(
            "Compiled %d routes, %d filters, %d middleware",
            len(router.routes),
            len(self._filters),
            len(self._middleware),
        )

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started serving requests. "
                "Register routes, filters, and middleware before calling app.run()."
            )
            raise RuntimeError(msg)


def _materialize(entry: _PendingRoute, actions: LazyRegistry) -> Handler:
    """Turn ``True`` or an action name into a lazily loaded handler."""
    handler = entry.handler
    if handler is True:
        assert entry.name is not None
        return LazyAction(entry.name, actions)
    if isinstance(handler, str):
        return LazyAction(handler, actions)
    if not callable(handler):
        msg = f"Route {entry.path!r} has a handler that is not callable: {handler!r}"
        raise ConfigurationError(msg)
    return handler


def _included_routes(entry: _PendingInclude) -> list[Route]:
    other = entry.app
    filters = tuple(other._resolved_filters())
    routes: list[Route] = []
    for route in other._resolved_routes(other._actions):
        handler = route.handler
        if filters:
            handler = _FilteredHandler(filters, handler)
        routes.append(
            Route(
                path=entry.path + route.path,
                handler=handler,
                methods=route.methods,
                name=entry.name + route.name if route.name is not None else None,
            )
        )
    return routes


@dataclass(frozen=True, slots=True)
class _FilteredHandler:
    """A handler from an included app, run behind that app's filters."""

    filters: tuple[Handler, ...]
    handler: Handler

    async def __call__(self, ctx: RequestContext) -> Any:
        if await run_filters(self.filters, ctx):
            return None
        return await call_action(self.handler, ctx)
