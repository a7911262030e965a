"""Built-in widgets: the default layout and the error page."""

from lazuli.views.error import ErrorPage
from lazuli.views.layout import DefaultLayout

__all__ = ["DefaultLayout", "ErrorPage"]
