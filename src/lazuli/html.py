"""HTML builder widgets.

A widget is a class whose ``content()`` method writes HTML through builder
methods named after tags::

    class UserCard(Widget):
        def content(self):
            with self.tag("div", class_=["card", {"admin": self.user.admin}]):
                self.h2(self.user.name)
                self.p("Joined ", self.joined)

    UserCard(user=user, joined="May").render_to_string()

Text children are escaped; ``Markup`` and ``raw()`` are written as-is.
Keyword attributes lose a trailing ``_`` and turn ``_`` into ``-``
(``class_`` -> ``class``, ``data_id`` -> ``data-id``).

When a widget is rendered for a request, the request's view variables are
readable as attributes (a variable named like a tag is reached through
``self.ctx``) and ``content_for`` blocks are shared with the request
context, which is how views hand content to their layout.
"""

from __future__ import annotations

import html
import importlib
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from kida import Environment
from kida.utils.html import Markup

if TYPE_CHECKING:
    from lazuli.context import RequestContext

VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)  # fmt: skip

HTML_ELEMENTS = VOID_ELEMENTS | frozenset(
    {
        "a", "abbr", "address", "article", "aside", "audio", "b", "bdi", "bdo",
        "blockquote", "body", "button", "canvas", "caption", "cite", "code",
        "colgroup", "data", "datalist", "dd", "del", "details", "dfn", "dialog",
        "div", "dl", "dt", "em", "fieldset", "figcaption", "figure", "footer",
        "form", "h1", "h2", "h3", "h4", "h5", "h6", "head", "header", "hgroup",
        "html", "i", "iframe", "ins", "kbd", "label", "legend", "li", "main",
        "map", "mark", "menu", "meter", "nav", "noscript", "object", "ol",
        "optgroup", "option", "output", "p", "picture", "pre", "progress", "q",
        "rp", "rt", "ruby", "s", "samp", "script", "search", "section", "select",
        "slot", "small", "span", "strong", "style", "sub", "summary", "sup",
        "table", "tbody", "td", "template", "textarea", "tfoot", "th", "thead",
        "time", "title", "tr", "u", "ul", "var", "video",
    }
)  # fmt: skip


def escape(value: Any) -> str:
    """Escape ``& < > " '`` for HTML.

    Values with ``__html__`` (``Markup``, widgets) are already HTML.
    """
    if hasattr(value, "__html__"):
        return value.__html__()
    return html.escape(str(value), quote=True)


def classnames(*values: Any) -> str:
    """Build a ``class`` attribute value.

    Accepts strings, nested lists/tuples and ``{name: condition}`` dicts::

        classnames("one", ["two", {"three": True, "four": False}])
        # "one two three"
    """
    names: list[str] = []
    _collect_classes(values, names)
    return " ".join(dict.fromkeys(names))


def _collect_classes(value: Any, names: list[str]) -> None:
    match value:
        case None | False:
            return
        case str():
            names.extend(value.split())
        case dict():
            names.extend(str(k) for k, on in value.items() if on)
        case list() | tuple() | set() | frozenset():
            for item in value:
                _collect_classes(item, names)
        case _:
            names.append(str(value))


def _attr_name(key: str) -> str:
    return key.removesuffix("_").replace("_", "-")


def format_attributes(attrs: dict[str, Any]) -> str:
    """Render attributes as `` name="value"`` pairs.

    ``True`` gives a bare attribute; ``None`` and ``False`` are omitted.
    """
    parts: list[str] = []
    for key, value in attrs.items():
        name = _attr_name(key)
        if name == "class":
            value = classnames(value) or None
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{escape(value)}"')
    return "".join(parts)


class Widget:
    """Composable renderable unit producing an HTML string.

    Keyword arguments given to the constructor become attributes, so they
    can supply render-time values or override methods.
    """

    # Set only while rendering
    _buffer: list[str] | None = None
    _ctx: RequestContext | None = None
    _blocks: dict[str, list[Any]] | None = None

    def __init__(self, **opts: Any) -> None:
        for name, value in opts.items():
            setattr(self, name, value)

    def content(self) -> None:
        """Write the widget's HTML. Subclasses override this."""

    # -- Rendering --

    def render(self, buffer: list[str], ctx: RequestContext | None = None) -> None:
        """Render ``content()`` into *buffer*."""
        previous = (self._buffer, self._ctx)
        self._buffer = buffer
        self._ctx = ctx
        try:
            self.content()
        finally:
            self._buffer, self._ctx = previous

    def render_to_string(self, ctx: RequestContext | None = None) -> str:
        buffer: list[str] = []
        self.render(buffer, ctx)
        return "".join(buffer)

    def __html__(self) -> str:
        return self.render_to_string(self._ctx)

    @property
    def ctx(self) -> RequestContext | None:
        """The request context when rendered for a request."""
        return self._ctx

    def __getattr__(self, name: str) -> Any:
        # Reached only when normal lookup fails
        if not name.startswith("_"):
            if name in HTML_ELEMENTS:
                return lambda *children, **attrs: self.element(name, *children, **attrs)
            ctx = self.__dict__.get("_ctx")
            if ctx is not None and name in ctx.vars:
                return ctx.vars[name]
        msg = f"{type(self).__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)

    # -- Builder --

    def _write(self, text: str) -> None:
        if self._buffer is None:
            msg = "Builder methods can only be used while the widget is rendering"
            raise RuntimeError(msg)
        self._buffer.append(text)

    def text(self, value: Any) -> None:
        """Write escaped text."""
        if value is not None:
            self._write(escape(value))

    def raw(self, value: Any) -> None:
        """Write *value* without escaping."""
        if value is not None:
            self._write(str(value))

    def element(self, name: str, *children: Any, **attrs: Any) -> None:
        """Write a complete element. A dict child adds attributes."""
        content: list[Any] = []
        for child in children:
            if isinstance(child, dict):
                attrs = {**child, **attrs}
            else:
                content.append(child)

        self._write(f"<{name}{format_attributes(attrs)}>")
        if name in VOID_ELEMENTS:
            return
        for child in content:
            self._write_child(child)
        self._write(f"</{name}>")

    @contextmanager
    def tag(self, name: str, **attrs: Any) -> Iterator[None]:
        """Open *name*, run the ``with`` body inside it, then close it::

            with self.tag("ul", class_="items"):
                for item in self.items:
                    self.li(item)
        """
        self._write(f"<{name}{format_attributes(attrs)}>")
        yield
        self._write(f"</{name}>")

    def _write_child(self, child: Any) -> None:
        match child:
            case None | False:
                return
            case Markup():
                self._write(str(child))
            case Widget():
                child.render(self._buffer, self._ctx)  # type: ignore[arg-type]
            case type() if issubclass(child, Widget):
                child().render(self._buffer, self._ctx)  # type: ignore[arg-type]
            case list() | tuple():
                for item in child:
                    self._write_child(item)
            case _ if callable(child):
                result = child()
                if result is not None:
                    self._write_child(result)
            case _:
                self.text(child)

    # -- Content blocks --

    def content_for(self, name: str, content: Any = None) -> None:
        """Append to block *name*, or write the block when no content is given.

        Strings are escaped when written; use ``Markup`` or a builder
        function for raw HTML. Repeated calls append.
        """
        blocks = self._content_blocks()
        if content is not None:
            blocks.setdefault(name, []).append(content)
            return
        for part in blocks.get(name, ()):
            self._write_child(part)

    def has_content_for(self, name: str) -> bool:
        return bool(self._content_blocks().get(name))

    def _content_blocks(self) -> dict[str, list[Any]]:
        if self._ctx is not None:
            return self._ctx.blocks
        if self._blocks is None:
            self._blocks = {}
        return self._blocks

    # -- Class composition --

    @classmethod
    def include(cls, *others: type | str) -> type[Widget]:
        """Copy the fields of other classes into this widget class.

        Fields the widget declares itself are never replaced; among included
        classes, later includes overwrite earlier ones. An included class's
        own base classes are flattened into the copy. A string names a class
        as ``"package.module:ClassName"``.
        """
        if "_declared" not in cls.__dict__:
            cls._declared = frozenset(cls.__dict__)
        for other in others:
            if isinstance(other, str):
                module_name, _, attr = other.partition(":")
                other = getattr(importlib.import_module(module_name), attr)
            for name, value in _flattened_fields(other).items():
                if name not in cls._declared:
                    setattr(cls, name, value)
        return cls

    @classmethod
    def extend(
        cls,
        name: str,
        fields: dict[str, Any] | Callable[[Any], None] | None = None,
        setup_fn: Callable[[type[Widget]], None] | None = None,
    ) -> type[Widget]:
        """Create a subclass. A callable *fields* becomes ``content``.

        *setup_fn*, if given, is called with the new class before it is
        returned.
        """
        if callable(fields):
            fields = {"content": fields}
        widget_cls = type(name, (cls,), dict(fields or {}))
        if setup_fn is not None:
            setup_fn(widget_cls)
        return widget_cls

    @classmethod
    def from_function(cls, fn: Callable[[Widget], Any]) -> Widget:
        """Widget whose content is ``fn(widget)``."""
        return _FunctionWidget(fn)


class _FunctionWidget(Widget):
    def __init__(self, fn: Callable[[Widget], Any]) -> None:
        self._fn = fn

    def content(self) -> None:
        result = self._fn(self)
        if result is not None:
            self._write_child(result)


def _flattened_fields(other: type) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for klass in reversed(other.__mro__):
        if klass in (object, Widget):
            continue
        for name, value in vars(klass).items():
            if name.startswith("__") and name.endswith("__"):
                continue
            if name == "_declared":
                continue
            fields[name] = value
    return fields


def render_html(fn: Callable[[Widget], Any]) -> str:
    """Run *fn* with a builder and return the HTML it wrote::

        render_html(lambda h: h.div("hi", class_="x"))   # '<div class="x">hi</div>'
    """
    return Widget.from_function(fn).render_to_string()


class TemplateWidget(Widget):
    """A widget backed by a kida template string.

    Widget attributes and the request's view variables are the template
    context.
    """

    source: str = ""
    _template: Any = None

    @classmethod
    def load(cls, source: str, name: str = "TemplateWidget") -> type[TemplateWidget]:
        """Compile *source* and return a widget class rendering it."""
        template = Environment().from_string(source)
        return type(name, (cls,), {"source": source, "_template": template})

    def template_context(self) -> dict[str, Any]:
        context: dict[str, Any] = {}
        if self._ctx is not None:
            context.update(self._ctx.vars)
        context.update({k: v for k, v in vars(self).items() if not k.startswith("_")})
        return context

    def content(self) -> None:
        template = self._template or Environment().from_string(self.source)
        self.raw(template.render(self.template_context()))
