"""Page rendered for fatal errors."""

from lazuli.html import Widget


class ErrorPage(Widget):
    """Diagnostic page for a fatal error.

    Reads ``err`` and ``trace`` from the error context. With
    ``AppConfig.show_errors`` off, only a generic message is shown.
    """

    def content(self) -> None:
        ctx = self.ctx
        show = ctx is None or ctx.app.config.show_errors

        self.raw("<!DOCTYPE html>")
        with self.tag("html", lang="en"):
            with self.tag("head"):
                self.meta(charset="UTF-8")
                self.element("title", "Error")
                self.style(
                    "body{font-family:sans-serif;margin:2em}"
                    "pre{background:#f4f4f4;padding:1em;overflow:auto}"
                )
            with self.tag("body"):
                self.h1("Error")
                if not show:
                    self.p("Something went wrong. Please try again later.")
                    return
                err = getattr(self, "err", None)
                self.h2(str(err) if err is not None else "Unknown error")
                original = ctx.original_request if ctx is not None else None
                if original is not None:
                    self.p(f"{original.request.method} {original.request.url}")
                trace = getattr(self, "trace", None)
                if trace:
                    self.pre(trace)
