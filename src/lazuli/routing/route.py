"""Route and RouteMatch frozen dataclasses."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

# Verb set of a route registered without explicit methods.
ANY_METHOD = "*"


@dataclass(frozen=True, slots=True)
class PathSegment:
    """One ``/``-separated piece of a route pattern.

    Literal: ``users``. Capture: ``:id``, ``{id}``, ``{id:int}``.
    Splat: ``*`` or ``{rest:path}``. A pattern ending in ``/`` gets a final
    empty literal segment, so trailing slashes are significant.
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition."""

    path: str
    handler: Callable[..., Any]
    methods: frozenset[str]
    name: str | None = None

    @property
    def accepts_any(self) -> bool:
        return ANY_METHOD in self.methods


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    path_params: dict[str, str] = field(default_factory=dict)
