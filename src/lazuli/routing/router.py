"""Compiled router with trie-based path matching.

Routes are added to an ordered table during setup. ``compile()`` applies the
override rules and builds the trie; ``match()`` then walks it in priority
order: literal segment, parameter segments, splat.
"""

import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

from lazuli.errors import MethodNotAllowed, RouteNotFound
from lazuli.routing.params import CONVERTERS
from lazuli.routing.route import ANY_METHOD, PathSegment, Route, RouteMatch

_BRACE_PARAM = re.compile(r"^\{(?P<name>\w+)(?::(?P<type>\w+))?\}$")
_COLON_PARAM = re.compile(r"^:(?P<name>\w+)$")


def split_path(path: str) -> list[str]:
    """Split a request path into segments. ``/`` is the empty list."""
    if path in ("", "/"):
        return []
    return path.removeprefix("/").split("/")


def parse_path(path: str) -> list[PathSegment]:
    """Parse a route pattern into segments.

    Examples::

        "/users"            -> [PathSegment("users")]
        "/users/"           -> [PathSegment("users"), PathSegment("")]
        "/users/:id"        -> [..., PathSegment(":id", is_param=True, param_name="id")]
        "/users/{id:int}"   -> [..., PathSegment("{id:int}", True, "id", "int")]
        "/static/*"         -> [..., PathSegment("*", True, "splat", "path")]

    Raises ``ValueError`` for unknown converters, empty inner segments, or a
    splat that is not last.
    """
    parts = split_path(path)
    segments: list[PathSegment] = []
    for index, part in enumerate(parts):
        last = index == len(parts) - 1
        if part == "*":
            segment = PathSegment(part, is_param=True, param_name="splat", param_type="path")
        elif m := (_BRACE_PARAM.match(part) or _COLON_PARAM.match(part)):
            param_type = m.groupdict().get("type") or "str"
            if param_type not in CONVERTERS:
                msg = f"Unknown converter {param_type!r} in route {path!r}"
                raise ValueError(msg)
            segment = PathSegment(
                part, is_param=True, param_name=m["name"], param_type=param_type
            )
        elif not part and not last:
            msg = f"Empty segment in route {path!r}"
            raise ValueError(msg)
        else:
            segment = PathSegment(part)

        if segment.param_type == "path" and not last:
            msg = f"A splat must be the last segment of route {path!r}"
            raise ValueError(msg)
        segments.append(segment)
    return segments


def _shape(segments: list[PathSegment]) -> tuple[str, ...]:
    """Pattern identity ignoring parameter names."""
    return tuple(f"{{{s.param_type}}}" if s.is_param else s.value for s in segments)


class _TrieNode:
    """A node in the route trie. Mutable during compilation only."""

    __slots__ = ("children", "params", "routes_by_method", "splat")

    def __init__(self) -> None:
        self.children: dict[str, _TrieNode] = {}
        # One edge per converter type, in first-registration order
        self.params: list[_ParamEdge] = []
        self.splat: _TrieNode | None = None
        self.routes_by_method: dict[str, Route] = {}

    def register(self, route: Route) -> None:
        if route.accepts_any:
            # A later catch-all verb route overrides every earlier verb here
            self.routes_by_method.clear()
            self.routes_by_method[ANY_METHOD] = route
            return
        for method in route.methods:
            self.routes_by_method[method] = route

    def pick(self, method: str) -> Route | None:
        table = self.routes_by_method
        route = table.get(method)
        if route is None and method == "HEAD":
            route = table.get("GET")
        if route is None:
            route = table.get(ANY_METHOD)
        return route


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


class Router:
    """Ordered route table compiled into a trie.

    Usage::

        router = Router()
        router.add(Route("/users/:id", show_user, frozenset({"GET"}), name="user"))
        router.compile()
        match = router.match("GET", "/users/42")
        router.url_for("user", {"id": 42})   # "/users/42"
    """

    __slots__ = ("_by_name", "_compiled", "_root", "_segments", "_table")

    def __init__(self) -> None:
        self._table: list[Route] = []
        self._segments: dict[str, list[PathSegment]] = {}
        self._by_name: dict[str, Route] = {}
        self._root = _TrieNode()
        self._compiled = False

    def add(self, route: Route) -> None:
        """Add a route, overriding any earlier route it collides with.

        A route collides with an earlier one that has the same name, or the
        same pattern (parameter names ignored) and the same verbs.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        segments = self._parse(route.path)
        shape = _shape(segments)
        self._table = [
            existing
            for existing in self._table
            if not (
                (route.name is not None and existing.name == route.name)
                or (
                    existing.methods == route.methods
                    and _shape(self._parse(existing.path)) == shape
                )
            )
        ]
        self._table.append(route)

    def _parse(self, path: str) -> list[PathSegment]:
        segments = self._segments.get(path)
        if segments is None:
            segments = self._segments[path] = parse_path(path)
        return segments

    @property
    def routes(self) -> list[Route]:
        """All routes in the resolved table, in registration order."""
        return list(self._table)

    def compile(self) -> None:
        """Build the trie. No more routes can be added."""
        for route in self._table:
            node = self._root
            for seg in self._parse(route.path):
                if seg.param_type == "path" and seg.is_param:
                    if node.splat is None:
                        node.splat = _TrieNode()
                    node = node.splat
                elif seg.is_param:
                    node = self._param_node(node, seg.param_type)
                else:
                    node = node.children.setdefault(seg.value, _TrieNode())
            node.register(route)
            if route.name is not None:
                self._by_name[route.name] = route
        self._compiled = True

    @staticmethod
    def _param_node(node: _TrieNode, param_type: str) -> _TrieNode:
        for edge in node.params:
            if edge.param_type == param_type:
                return edge.node
        pattern, _ = CONVERTERS[param_type]
        edge = _ParamEdge(param_type, re.compile(f"^{pattern}$"), _TrieNode())
        node.params.append(edge)
        return edge.node

    # -- Matching --

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request method and path.

        Raises ``RouteNotFound`` if no route matches the path and
        ``MethodNotAllowed`` if routes match the path but none accepts
        *method*.
        """
        if not self._compiled:
            msg = "Router.match() called before compile()."
            raise RuntimeError(msg)

        method = method.upper()
        allowed: set[str] = set()
        for node, values in self._walk(self._root, split_path(path), 0, ()):
            route = node.pick(method)
            if route is not None:
                return RouteMatch(route=route, path_params=self._bind(route, values))
            allowed.update(node.routes_by_method)

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise RouteNotFound(f"No route matches {method} {path!r}")

    def _walk(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        values: tuple[str, ...],
    ) -> Iterator[tuple[_TrieNode, tuple[str, ...]]]:
        """Yield every terminal node matching *parts*, best candidate first."""
        if index == len(parts):
            if node.routes_by_method:
                yield node, values
            return

        part = parts[index]

        child = node.children.get(part)
        if child is not None:
            yield from self._walk(child, parts, index + 1, values)

        if part:
            for edge in node.params:
                if edge.regex.match(part):
                    yield from self._walk(edge.node, parts, index + 1, (*values, part))

        if node.splat is not None and node.splat.routes_by_method:
            remaining = "/".join(parts[index:])
            if remaining:
                yield node.splat, (*values, remaining)

    def _bind(self, route: Route, values: tuple[str, ...]) -> dict[str, str]:
        names = [seg.param_name or "" for seg in self._parse(route.path) if seg.is_param]
        return dict(zip(names, values, strict=True))

    # -- URL building --

    def url_for(
        self,
        name: str,
        params: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> str:
        """Build the path of the route called *name*.

        Raises ``KeyError`` for an unknown route name or a missing parameter.
        """
        try:
            route = self._by_name[name]
        except KeyError:
            msg = f"No route named {name!r}"
            raise KeyError(msg) from None

        params = params or {}
        pieces: list[str] = []
        for seg in self._parse(route.path):
            if not seg.is_param:
                pieces.append(seg.value)
                continue
            if seg.param_name not in params:
                msg = f"Route {name!r} requires parameter {seg.param_name!r}"
                raise KeyError(msg)
            safe = "/" if seg.param_type == "path" else ""
            pieces.append(quote(str(params[seg.param_name]), safe=safe))

        path = "/" + "/".join(pieces)
        if query:
            path = f"{path}?{urlencode(query, doseq=True)}"
        return path
