"""The layout used when ``AppConfig.layout`` is left as ``None``."""

from lazuli.html import Widget


class DefaultLayout(Widget):
    """Minimal HTML5 page.

    Blocks: ``title`` (defaults to "Lazuli"), ``head`` and ``inner``.
    """

    default_title = "Lazuli"

    def content(self) -> None:
        self.raw("<!DOCTYPE html>")
        with self.tag("html", lang="en"):
            with self.tag("head"):
                self.meta(charset="UTF-8")
                with self.tag("title"):
                    if self.has_content_for("title"):
                        self.content_for("title")
                    else:
                        self.text(self.default_title)
                self.content_for("head")
            with self.tag("body"):
                self.content_for("inner")
