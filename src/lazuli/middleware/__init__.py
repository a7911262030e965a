"""Middleware protocol."""

from lazuli.middleware.protocol import Middleware, Next

__all__ = ["Middleware", "Next"]
