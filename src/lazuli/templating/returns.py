"""Template return type.

Handlers return (or ``render``) a ``Template`` to render a kida template
from the app's template directory::

    return Template("page.html", title="Home", items=items)

The request's view variables are merged under the given context, so
``ctx.user = ...`` is visible to the template as ``user``.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Template:
    """Render a full kida template."""

    name: str
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, name: str, /, **context: Any) -> None:
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "context", context)
