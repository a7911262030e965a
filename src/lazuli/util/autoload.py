"""Lazy, memoized registry of importable components.

``autoload("models")`` gives a registry where the first lookup of a name
imports the matching module and later lookups return the cached value::

    models = autoload("models")
    models.HelloWorld        # imports models.hello_world, returns its HelloWorld
    models["foo_bar"]        # imports models.foo_bar, returns its FooBar (or the module)
"""

import importlib
import threading
from collections.abc import Callable
from types import ModuleType
from typing import Any


def _pick_class(module: ModuleType, name: str) -> Any:
    from lazuli.util import camelize

    return getattr(module, camelize(name), module)


class LazyRegistry:
    """Name -> component mapping resolved on first lookup.

    Args:
        prefix: Dotted package the modules live in.
        pick: Selects the component from an imported module, given the
            module and the underscored name. Defaults to the class named
            after the module (``user_profile`` -> ``UserProfile``), falling
            back to the module itself.
    """

    __slots__ = ("_cache", "_lock", "_pick", "prefix")

    def __init__(
        self,
        prefix: str,
        pick: Callable[[ModuleType, str], Any] | None = None,
    ) -> None:
        self.prefix = prefix
        self._pick = pick or _pick_class
        self._cache: dict[str, Any] = {}
        self._lock = threading.Lock()

    def module_name(self, name: str) -> str:
        from lazuli.util import underscore

        return f"{self.prefix}.{underscore(name)}" if self.prefix else underscore(name)

    def __getitem__(self, name: str) -> Any:
        key = name
        try:
            return self._cache[key]
        except KeyError:
            pass
        with self._lock:
            if key not in self._cache:
                from lazuli.util import underscore

                module = importlib.import_module(self.module_name(name))
                self._cache[key] = self._pick(module, underscore(name))
            return self._cache[key]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except ModuleNotFoundError as exc:
            raise AttributeError(name) from exc

    def __contains__(self, name: object) -> bool:
        return name in self._cache

    def __repr__(self) -> str:
        return f"LazyRegistry({self.prefix!r}, loaded={sorted(self._cache)!r})"


def autoload(prefix: str, pick: Callable[[ModuleType, str], Any] | None = None) -> LazyRegistry:
    """Create a ``LazyRegistry`` for modules under *prefix*."""
    return LazyRegistry(prefix, pick)


def missing_module(exc: ModuleNotFoundError, module: str) -> bool:
    """True when *exc* is about *module* or one of its parent packages.

    Tells a missing view or action module apart from a broken import
    inside one.
    """
    return exc.name is not None and (module == exc.name or module.startswith(exc.name + "."))
