"""Call sync or async user callables uniformly.

Handlers, filters, error handlers and ``prepare_results`` hooks can all be
``def`` or ``async def``. The awaitable check lives here and nowhere else::

    result = await invoke(handler, ctx)
"""

import inspect
from typing import Any


async def invoke(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Call *func* and await the result if it is awaitable."""
    result = func(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
