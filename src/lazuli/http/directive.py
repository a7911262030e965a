"""Response directives returned by handlers.

A handler may return a bare string, or a ``Directive`` describing what to
send::

    return Directive(json={"ok": True}, status=201)
    return Directive(render="user_profile", layout=False)
    return Directive(redirect_to=ctx.url_for("index"))

Fields left unset do not override anything already written to the request
context, so several directives (and strings) can be written in sequence.
When more than one content field ends up set, the renderer applies
``redirect_to`` > ``json`` > ``render`` > ``content``.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Final


class _Unset:
    """Marker for a directive field that was not given."""

    __slots__ = ()
    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = object.__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


@dataclass(frozen=True, slots=True)
class Directive:
    """What the renderer should produce for a request.

    Attributes:
        content: Body text, layout-wrapped like a bare string return.
        render: A view: name, ``True`` (route name), ``Widget`` class or
            instance, ``Template``, or kida template name ending in ``.html``.
        json: Value to serialize as JSON. Bypasses the layout.
        redirect_to: Location to redirect to. Bypasses everything else.
        status: Response status. Defaults to 200 (302 for redirects).
        layout: ``False`` disables the layout, anything else replaces it.
        content_type: Overrides the content type.
        headers: Extra response headers.
    """

    content: Any = UNSET
    render: Any = UNSET
    json: Any = UNSET
    redirect_to: Any = UNSET
    status: Any = UNSET
    layout: Any = UNSET
    content_type: Any = UNSET
    headers: Mapping[str, str] = field(default_factory=dict)

    def given(self) -> Iterator[tuple[str, Any]]:
        """Yield ``(name, value)`` for every field that was set."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "headers":
                if value:
                    yield f.name, value
            elif value is not UNSET:
                yield f.name, value
