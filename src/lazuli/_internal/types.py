"""Shared type aliases used across lazuli modules."""

from collections.abc import Callable
from typing import Any, TypeAlias

# Route handler or before filter: a user-defined function with variable signature
Handler: TypeAlias = Callable[..., Any]

# Error handler: receives (ctx, error?) and returns a response value
ErrorHandler: TypeAlias = Callable[..., Any]
